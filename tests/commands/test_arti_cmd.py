from pathlib import Path

import pytest
from click.testing import CliRunner

from admkit.cli.cli import cli
from admkit.core.arti_service import EXAMPLE_CONFIG_URL
from admkit.core.context import AdmContext
from tests.fakes.host import FakeHost
from tests.fakes.http import FakeHttp
from tests.fakes.shell import FakeShell
from tests.test_utils.config import config_in

SYSTEMCTL = {"systemctl": "/usr/bin/systemctl"}


@pytest.fixture(autouse=True)
def _no_xdg_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("XDG_CONFIG_HOME", "XDG_DATA_HOME", "XDG_STATE_HOME"):
        monkeypatch.delenv(var, raising=False)


def test_install_service_uses_invoking_users_home(tmp_path: Path) -> None:
    home = tmp_path / "home" / "alice"
    config = home / ".config" / "arti" / "arti.toml"
    config.parent.mkdir(parents=True)
    config.write_text("# old\n", encoding="utf-8")
    ctx = AdmContext.for_test(
        shell=FakeShell(installed=SYSTEMCTL),
        http=FakeHttp({EXAMPLE_CONFIG_URL: "# example\n"}),
        host=FakeHost(euid=1000, user="alice", homes={"alice": home}),
        config=config_in(tmp_path),
    )

    result = CliRunner().invoke(cli, ["arti", "install-service"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert (home / ".config" / "systemd" / "user" / "arti.service").is_file()
    assert "Previous configuration saved as" in result.output


def test_install_service_needs_systemctl(tmp_path: Path) -> None:
    ctx = AdmContext.for_test(config=config_in(tmp_path))

    result = CliRunner().invoke(cli, ["arti", "install-service"], obj=ctx)

    assert result.exit_code == 1
    assert "systemctl" in result.output


def test_download_failure_exits_with_error(tmp_path: Path) -> None:
    ctx = AdmContext.for_test(
        shell=FakeShell(installed=SYSTEMCTL),
        host=FakeHost(homes={"tester": tmp_path / "home"}),
        config=config_in(tmp_path),
    )

    result = CliRunner().invoke(cli, ["arti", "install-service"], obj=ctx)

    assert result.exit_code == 1
    assert "Error: Failed to download" in result.output
