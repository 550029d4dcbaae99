from pathlib import Path

import pytest

from admkit.core.context import AdmContext
from admkit.core.luks_btrfs import (
    ConversionAborted,
    ConvertOptions,
    convert_luks,
    fstab_entry,
    update_fstab,
)
from tests.fakes.host import FakeHost
from tests.fakes.prompt import FakePrompt
from tests.fakes.shell import FakeShell, ok
from tests.test_utils.config import config_in

DEVICE = Path("/dev/sdb1")
MAPPER = Path("/dev/mapper/data")
UUID = "5f3a1c2e-8b7d-4e6f-9a0b-1c2d3e4f5a6b"


def blk_shell(mounted: str = "") -> FakeShell:
    return FakeShell(
        results={
            ("blkid", "-s", "TYPE", "-o", "value", str(DEVICE)): ok("crypto_LUKS\n"),
            ("blkid", "-s", "TYPE", "-o", "value", str(MAPPER)): ok("ext4\n"),
            ("blkid", "-s", "UUID"): ok(f"{UUID}\n"),
            ("lsblk",): ok(mounted),
        }
    )


def test_fstab_entry_format() -> None:
    assert fstab_entry(UUID, Path("/mnt/data"), "defaults,compress=zstd") == (
        f"UUID={UUID}  /mnt/data  btrfs  defaults,compress=zstd  0  0"
    )


def test_update_fstab_backs_up_and_appends(tmp_path: Path) -> None:
    config = config_in(tmp_path)
    fstab = config.paths.fstab
    fstab.parent.mkdir(parents=True)
    fstab.write_text("proc /proc proc defaults 0 0", encoding="utf-8")
    ctx = AdmContext.for_test(config=config)
    line = fstab_entry(UUID, Path("/mnt/data"), "defaults")

    assert update_fstab(ctx, line, UUID) is True
    assert update_fstab(ctx, line, UUID) is False

    assert fstab.read_text(encoding="utf-8") == f"proc /proc proc defaults 0 0\n{line}\n"
    backup = fstab.with_name("fstab.bak-20240115-143000")
    assert backup.read_text(encoding="utf-8") == "proc /proc proc defaults 0 0"


def test_non_block_device_is_rejected() -> None:
    ctx = AdmContext.for_test(host=FakeHost())

    with pytest.raises(RuntimeError, match="not a block device"):
        convert_luks(ctx, DEVICE, ConvertOptions(assume_yes=True))


def test_convert_with_all_answers_given(tmp_path: Path) -> None:
    config = config_in(tmp_path)
    config.paths.fstab.parent.mkdir(parents=True)
    shell = blk_shell()
    mount_point = tmp_path / "mnt" / "data"
    ctx = AdmContext.for_test(
        shell=shell, host=FakeHost(block_devices=[DEVICE, MAPPER]), config=config
    )

    result = convert_luks(
        ctx,
        DEVICE,
        ConvertOptions(
            mapper="data",
            mount_point=mount_point,
            fsck=True,
            fstab=True,
            remove_saved=False,
            assume_yes=True,
        ),
    )

    assert result.mapper_device == MAPPER
    assert result.fstab_line == fstab_entry(UUID, mount_point, "defaults,compress=zstd")
    assert not result.saved_removed
    assert shell.run_calls == [
        ["fsck.ext4", "-f", str(MAPPER)],
        ["btrfs-convert", str(MAPPER)],
        ["mkdir", "-p", str(mount_point)],
        ["mount", "-t", "btrfs", str(MAPPER), str(mount_point)],
    ]
    assert result.fstab_line in config.paths.fstab.read_text(encoding="utf-8")


def test_unopened_volume_is_opened_with_cryptsetup(tmp_path: Path) -> None:
    shell = blk_shell()
    ctx = AdmContext.for_test(
        shell=shell, host=FakeHost(block_devices=[DEVICE]), config=config_in(tmp_path)
    )

    with pytest.raises(RuntimeError, match="not found after cryptsetup open"):
        convert_luks(ctx, DEVICE, ConvertOptions(mapper="data", assume_yes=True))

    assert shell.run_calls == [["cryptsetup", "open", str(DEVICE), "data"]]


def test_mounted_mapper_is_unmounted_first(tmp_path: Path) -> None:
    shell = blk_shell(mounted="/media/data\n")
    ctx = AdmContext.for_test(
        shell=shell,
        host=FakeHost(block_devices=[DEVICE, MAPPER]),
        config=config_in(tmp_path),
    )

    convert_luks(
        ctx,
        DEVICE,
        ConvertOptions(
            mapper="data",
            mount_point=tmp_path / "data",
            fsck=False,
            fstab=False,
            remove_saved=False,
            assume_yes=True,
        ),
    )

    assert shell.run_calls[0] == ["umount", "/media/data"]


def test_declining_conversion_changes_nothing(tmp_path: Path) -> None:
    shell = blk_shell()
    prompt = FakePrompt({"Continue anyway?": True})
    mapper = Path("/dev/mapper/ext_btrfs")
    ctx = AdmContext.for_test(
        shell=shell,
        prompt=prompt,
        host=FakeHost(block_devices=[DEVICE, mapper]),
        config=config_in(tmp_path),
    )

    with pytest.raises(ConversionAborted):
        convert_luks(ctx, DEVICE, ConvertOptions())

    assert not shell.ran("btrfs-convert")
    assert any("REALLY" in q for q in prompt.questions)


def test_removing_ext2_saved_after_confirmation(tmp_path: Path) -> None:
    mount_point = tmp_path / "data"
    (mount_point / "ext2_saved").mkdir(parents=True)
    shell = blk_shell()
    ctx = AdmContext.for_test(
        shell=shell,
        host=FakeHost(block_devices=[DEVICE, MAPPER]),
        config=config_in(tmp_path),
    )

    result = convert_luks(
        ctx,
        DEVICE,
        ConvertOptions(
            mapper="data",
            mount_point=mount_point,
            fsck=False,
            fstab=False,
            remove_saved=True,
            assume_yes=True,
        ),
    )

    assert result.saved_removed
    assert ["btrfs", "subvolume", "delete", str(mount_point / "ext2_saved")] in shell.run_calls
