"""In-place ext4 to Btrfs conversion inside a LUKS container.

The LUKS layer is left untouched; only the filesystem inside the opened mapper
device is converted with ``btrfs-convert``. The ``ext2_saved`` subvolume that
btrfs-convert leaves behind allows a rollback until it is deleted.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

MAPPER_DIR = Path("/dev/mapper")
DEFAULT_MAPPER = "ext_btrfs"
DEFAULT_FSTAB_OPTIONS = "defaults,compress=zstd"
REQUIRED_COMMANDS = ("cryptsetup", "btrfs-convert", "btrfs", "blkid", "lsblk", "mount", "umount")


class ConversionAborted(RuntimeError):
    """The operator declined to continue."""


@dataclass(frozen=True)
class ConvertOptions:
    """None means ask interactively."""

    mapper: str | None = None
    mount_point: Path | None = None
    fsck: bool | None = None
    fstab: bool | None = None
    fstab_options: str | None = None
    remove_saved: bool | None = None
    assume_yes: bool = False


@dataclass
class ConversionResult:
    mapper_device: Path
    mount_point: Path | None = None
    fstab_line: str | None = None
    saved_removed: bool = False


def fstab_entry(uuid: str, mount_point: Path, options: str) -> str:
    return f"UUID={uuid}  {mount_point}  btrfs  {options}  0  0"


def blkid_value(ctx: "AdmContext", tag: str, device: Path) -> str:
    result = ctx.shell.query(
        ["blkid", "-s", tag, "-o", "value", str(device)], operation=f"read {tag} of {device}"
    )
    return result.first_line if result.ok else ""


def mountpoints(ctx: "AdmContext", device: Path) -> list[str]:
    result = ctx.shell.query(
        ["lsblk", "-no", "MOUNTPOINT", str(device)], operation=f"list mounts of {device}"
    )
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def _decide(ctx: "AdmContext", value: bool | None, question: str) -> bool:
    return value if value is not None else ctx.prompt.confirm(question, default=False)


def _continue_anyway(ctx: "AdmContext", options: ConvertOptions) -> None:
    if options.assume_yes:
        return
    if not ctx.prompt.confirm("Continue anyway?", default=False):
        raise ConversionAborted("Aborted by user.")


def open_mapper(ctx: "AdmContext", device: Path, name: str) -> Path:
    mapper = MAPPER_DIR / name
    if ctx.host.is_block_device(mapper):
        ctx.feedback.info(f"LUKS mapper '{mapper}' already exists, assuming it's already opened.")
        return mapper
    ctx.feedback.info(f"You will be prompted for the LUKS passphrase for {device}")
    ctx.shell.run(["cryptsetup", "open", str(device), name], operation="open LUKS volume")
    if not ctx.host.is_block_device(mapper) and not ctx.dry_run:
        raise RuntimeError(f"Mapper device '{mapper}' not found after cryptsetup open.")
    return mapper


def update_fstab(ctx: "AdmContext", line: str, uuid: str) -> bool:
    """Append line to fstab after a timestamped backup, unless uuid is already listed."""
    fstab = ctx.config.paths.fstab
    content = fstab.read_text(encoding="utf-8") if fstab.exists() else ""
    if f"UUID={uuid}" in content:
        ctx.feedback.info(f"{fstab} already has an entry for UUID={uuid}; not modifying it.")
        return False
    if ctx.dry_run:
        ctx.feedback.info(f"Would append to {fstab}: {line}")
        return False

    backup = fstab.with_name(f"{fstab.name}.bak-{ctx.time.stamp()}")
    ctx.feedback.info(f"Creating backup of {fstab} at {backup}")
    backup.write_text(content, encoding="utf-8")
    if content and not content.endswith("\n"):
        content += "\n"
    fstab.write_text(content + line + "\n", encoding="utf-8")
    ctx.feedback.info(f"Entry added to {fstab}.")
    return True


def remove_ext2_saved(ctx: "AdmContext", mount_point: Path, options: ConvertOptions) -> bool:
    feedback = ctx.feedback
    feedback.warn("If you delete ext2_saved, you CANNOT revert using btrfs-convert.")
    if not _decide(
        ctx, options.remove_saved, "Do you want to delete ext2_saved NOW (NOT recommended early)?"
    ):
        feedback.info("Keeping ext2_saved.")
        return False

    saved = mount_point / "ext2_saved"
    if not saved.is_dir() and not ctx.dry_run:
        feedback.warn(f"'{saved}' does not exist; nothing to delete.")
        return False
    if options.remove_saved is None and not ctx.prompt.confirm(
        f"Final confirmation: delete '{saved}'?", default=False
    ):
        feedback.warn("Aborted deletion of ext2_saved.")
        return False

    ctx.shell.run(["btrfs", "subvolume", "delete", str(saved)], operation="delete ext2_saved")
    feedback.info("ext2_saved deleted.")
    ctx.shell.run(
        ["btrfs", "filesystem", "defragment", "-r", str(mount_point)],
        operation="defragment",
        check=False,
    )
    ctx.shell.run(["btrfs", "balance", "start", str(mount_point)], operation="balance", check=False)
    return True


def convert_luks(ctx: "AdmContext", device: Path, options: ConvertOptions) -> ConversionResult:
    """Convert the ext4 filesystem inside a LUKS partition to Btrfs.

    Raises:
        ConversionAborted: If the operator declines a confirmation
        RuntimeError: If device checks or a conversion step fail
    """
    feedback = ctx.feedback

    if not ctx.host.is_block_device(device):
        raise RuntimeError(f"'{device}' is not a block device.")

    luks_type = blkid_value(ctx, "TYPE", device)
    if luks_type != "crypto_LUKS":
        feedback.warn(f"'{device}' is not detected as crypto_LUKS (TYPE='{luks_type}').")
        _continue_anyway(ctx, options)

    name = options.mapper or ctx.prompt.ask(
        "Name for the opened LUKS mapper", default=DEFAULT_MAPPER
    )
    mapper = open_mapper(ctx, device, name or DEFAULT_MAPPER)
    result = ConversionResult(mapper_device=mapper)

    fstype = blkid_value(ctx, "TYPE", mapper)
    feedback.info(f"Detected filesystem type inside {mapper}: {fstype or 'unknown'}")
    if fstype != "ext4":
        feedback.warn("Filesystem is not ext4. btrfs-convert is intended for ext2/3/4.")
        _continue_anyway(ctx, options)

    mounted = mountpoints(ctx, mapper)
    if mounted:
        feedback.info(f"Device is currently mounted at: {', '.join(mounted)}")
        if not (options.assume_yes or ctx.prompt.confirm("Unmount all these mountpoints now?")):
            raise ConversionAborted("Cannot continue while the device is mounted.")
        for mp in mounted:
            feedback.info(f"Unmounting {mp} ...")
            ctx.shell.run(["umount", mp], operation=f"unmount {mp}")

    if _decide(ctx, options.fsck, f"Run fsck.ext4 -f on {mapper} now?"):
        ctx.shell.run(["fsck.ext4", "-f", str(mapper)], operation="check ext4 filesystem")
    else:
        feedback.info("Skipping fsck.ext4.")

    feedback.info(f"This will modify the filesystem inside {mapper}; the LUKS layer is unchanged.")
    feedback.warn("Power loss, hardware issues, or bugs may still cause DATA LOSS.")
    if not options.assume_yes and not ctx.prompt.confirm(
        f"Do you REALLY want to run btrfs-convert on {mapper}?", default=False
    ):
        raise ConversionAborted("Aborting conversion.")
    ctx.shell.run(["btrfs-convert", str(mapper)], operation="convert ext4 to Btrfs")

    mapper_name = mapper.name
    mount_point = options.mount_point or Path(
        ctx.prompt.ask("Mount point", default=str(ctx.config.paths.mount_root / mapper_name))
    )
    ctx.shell.run(["mkdir", "-p", str(mount_point)], operation="create mount point")
    ctx.shell.run(
        ["mount", "-t", "btrfs", str(mapper), str(mount_point)], operation="mount Btrfs"
    )
    feedback.info(f"Mounted {mapper} on {mount_point}")
    result.mount_point = mount_point

    if _decide(ctx, options.fstab, "Add an fstab entry for this Btrfs filesystem?"):
        uuid = blkid_value(ctx, "UUID", mapper)
        if not uuid:
            feedback.warn(f"Could not get UUID for {mapper}; not touching fstab.")
        else:
            fs_options = options.fstab_options or ctx.prompt.ask(
                "Filesystem options", default=DEFAULT_FSTAB_OPTIONS
            )
            line = fstab_entry(uuid, mount_point, fs_options or DEFAULT_FSTAB_OPTIONS)
            if update_fstab(ctx, line, uuid):
                result.fstab_line = line

    feedback.info("Conversion to Btrfs is done and the filesystem is mounted.")
    result.saved_removed = remove_ext2_saved(ctx, mount_point, options)
    return result
