import pytest

from admkit.cli.privesc import program_name, run
from tests.fakes.shell import FakeShell

BOTH = {"run0": "/usr/bin/run0", "doas": "/usr/bin/doas"}


def test_program_name_follows_symlink_name() -> None:
    assert program_name("/usr/local/bin/sudoedit") == "sudoedit"
    assert program_name("/usr/local/bin/visudo") == "visudo"
    assert program_name("/usr/local/bin/admkit-sudo") == "sudo"


def test_sudo_execs_backend() -> None:
    shell = FakeShell(installed=BOTH)

    code = run(["/usr/local/bin/sudo", "apt-get", "update"], shell, {"ADMKIT_PRIVESC": "doas"})

    assert code == 0
    assert shell.exec_calls == [
        (["doas", "apt-get", "update"], {"SUDO_VIA_RUN0": "1", "SUDO_PREFER_RUN0": "1"})
    ]


def test_errors_are_prefixed_with_program(capsys: pytest.CaptureFixture[str]) -> None:
    code = run(["/usr/local/bin/sudoedit"], FakeShell(installed=BOTH), {})

    assert code == 1
    assert "sudoedit-wrapper: Usage: sudoedit FILE..." in capsys.readouterr().err


def test_no_backend(capsys: pytest.CaptureFixture[str]) -> None:
    assert run(["sudo", "id"], FakeShell(), {}) == 1
    assert "sudo-wrapper: neither 'run0' nor 'doas'" in capsys.readouterr().err
