from pathlib import Path

from click.testing import CliRunner

from admkit.cli.cli import cli
from admkit.core.context import AdmContext
from tests.fakes.shell import FakeShell, ok
from tests.test_utils.config import config_in

FPR = "AAAA0123456789ABCDEF0123456789ABCDEF0123"
COLONS = f"sec:u:4096:1:0123456789ABCDEF:1705329100:::u:::scESC:::+:::23::0:\nfpr:::::::::{FPR}:\n"


def test_contradictory_flags_fail() -> None:
    result = CliRunner().invoke(
        cli, ["gpg", "setup", "--no-pqc", "--pqc-only"], obj=AdmContext.for_test()
    )

    assert result.exit_code == 1
    assert "mutually exclusive" in result.output


def test_keygen_prints_keys_and_passphrase_hint(tmp_path: Path) -> None:
    shell = FakeShell(
        installed={"gpg": "/usr/bin/gpg"},
        results={
            ("gpg", "--version"): ok("gpg (GnuPG) 2.2.40\n"),
            ("gpg", "--list-secret-keys"): ok(COLONS),
        },
    )
    ctx = AdmContext.for_test(shell=shell, config=config_in(tmp_path))

    result = CliRunner().invoke(
        cli,
        ["gpg", "setup", "--keygen-only", "--no-upload", "--name", "Ada", "--email", "a@b.c"],
        obj=ctx,
    )

    assert result.exit_code == 0, result.output
    assert f"RSA 4096-bit: 0123456789ABCDEF  fingerprint {FPR}" in result.output
    assert f"gpg --edit-key {FPR} passwd" in result.output
    assert not shell.ran("gpg", "--keyserver")


def test_install_only_prints_no_keys(tmp_path: Path) -> None:
    shell = FakeShell(installed={"gpg": "/usr/bin/gpg", "apk": "/sbin/apk"})
    ctx = AdmContext.for_test(shell=shell, config=config_in(tmp_path))

    result = CliRunner().invoke(cli, ["gpg", "setup", "--install-only"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert "Generated keys" not in result.output
    assert ["apk", "add", "gnupg"] in shell.run_calls
