from pathlib import Path

import click

from admkit.cli.ensure import Ensure
from admkit.cli.output import user_output
from admkit.core.context import AdmContext
from admkit.core.luks_btrfs import (
    REQUIRED_COMMANDS,
    ConversionAborted,
    ConvertOptions,
    convert_luks,
)


@click.group("btrfs")
def btrfs_group() -> None:
    """Btrfs conversion helpers."""


@btrfs_group.command("convert-luks")
@click.argument("device", type=click.Path(path_type=Path))
@click.option("--mapper", help="Name for the opened LUKS mapper (default: ext_btrfs).")
@click.option("--mount-point", type=click.Path(path_type=Path), help="Where to mount the result.")
@click.option("--fsck/--no-fsck", default=None, help="Run fsck.ext4 -f before converting.")
@click.option("--fstab/--no-fstab", default=None, help="Add an fstab entry after converting.")
@click.option("--fstab-options", help="Mount options for the fstab entry.")
@click.option(
    "--remove-saved/--keep-saved",
    default=None,
    help="Delete the ext2_saved rollback subvolume afterwards.",
)
@click.option("-y", "--yes", "assume_yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_obj
def convert_luks_cmd(
    ctx: AdmContext,
    device: Path,
    mapper: str | None,
    mount_point: Path | None,
    fsck: bool | None,
    fstab: bool | None,
    fstab_options: str | None,
    remove_saved: bool | None,
    assume_yes: bool,
) -> None:
    """Convert the ext4 filesystem inside the LUKS partition DEVICE to Btrfs.

    Options left unset are asked for interactively.
    """
    Ensure.is_root(ctx)
    Ensure.command_available(ctx, *REQUIRED_COMMANDS)

    options = ConvertOptions(
        mapper=mapper,
        mount_point=mount_point,
        fsck=fsck,
        fstab=fstab,
        fstab_options=fstab_options,
        remove_saved=remove_saved,
        assume_yes=assume_yes,
    )
    try:
        result = convert_luks(ctx, device, options)
    except ConversionAborted as e:
        user_output(click.style(str(e), fg="yellow"))
        raise SystemExit(1) from None
    except RuntimeError as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from None

    user_output(f"Btrfs filesystem on {result.mapper_device} mounted at {result.mount_point}")
    if result.fstab_line:
        user_output(f"fstab: {result.fstab_line}")
