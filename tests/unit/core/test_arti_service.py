from pathlib import Path

import pytest

from admkit.core.arti_service import (
    EXAMPLE_CONFIG_URL,
    UserDirs,
    install_arti_service,
    render_unit,
)
from admkit.core.context import AdmContext
from tests.fakes.http import FakeHttp
from tests.fakes.shell import FakeShell, failed
from tests.fakes.user_feedback import FakeUserFeedback
from tests.test_utils.config import config_in

EXAMPLE = "[proxy]\nsocks_listen = 9150\n"


def test_user_dirs_follow_xdg_variables() -> None:
    home = Path("/home/alice")
    dirs = UserDirs.from_env({"XDG_CONFIG_HOME": "/cfg", "XDG_STATE_HOME": ""}, home)

    assert dirs.unit_dir == Path("/cfg/systemd/user")
    assert dirs.config_file == Path("/cfg/arti/arti.toml")
    assert dirs.arti_dirs == (
        Path("/cfg/arti"),
        home / ".local/share/arti",
        home / ".local/state/arti",
    )


def test_render_unit_points_at_binary_and_config() -> None:
    unit = render_unit(Path("/usr/local/bin/arti"), Path("/h/.config/arti/arti.toml"))

    assert "ExecStart=/usr/local/bin/arti proxy -c /h/.config/arti/arti.toml\n" in unit
    assert "WantedBy=default.target" in unit


def test_install_writes_unit_dirs_and_config(tmp_path: Path) -> None:
    dirs = UserDirs.from_env({}, tmp_path)
    shell = FakeShell(installed={"arti": "/opt/bin/arti"})
    ctx = AdmContext.for_test(
        shell=shell, http=FakeHttp({EXAMPLE_CONFIG_URL: EXAMPLE}), config=config_in(tmp_path)
    )

    report = install_arti_service(ctx, dirs)

    assert report.backup is None
    assert "ExecStart=/opt/bin/arti proxy" in report.unit.read_text(encoding="utf-8")
    assert report.unit.stat().st_mode & 0o777 == 0o640
    assert dirs.unit_dir.stat().st_mode & 0o777 == 0o750
    for path in dirs.arti_dirs:
        assert path.stat().st_mode & 0o777 == 0o750
    assert dirs.config_file.read_text(encoding="utf-8") == EXAMPLE
    assert shell.run_calls == [
        ["systemctl", "--user", "daemon-reload"],
        ["systemctl", "--user", "enable", "--now", "arti.service"],
    ]


def test_existing_config_is_backed_up_with_timestamp(tmp_path: Path) -> None:
    dirs = UserDirs.from_env({}, tmp_path)
    dirs.config_file.parent.mkdir(parents=True)
    dirs.config_file.write_text("# mine\n", encoding="utf-8")
    ctx = AdmContext.for_test(
        http=FakeHttp({EXAMPLE_CONFIG_URL: EXAMPLE}), config=config_in(tmp_path)
    )

    report = install_arti_service(ctx, dirs)

    assert report.backup == dirs.config_file.with_name("arti.toml.bak.20240115143000")
    assert report.backup.read_text(encoding="utf-8") == "# mine\n"
    assert dirs.config_file.read_text(encoding="utf-8") == EXAMPLE


def test_failed_download_keeps_existing_config(tmp_path: Path) -> None:
    dirs = UserDirs.from_env({}, tmp_path)
    dirs.config_file.parent.mkdir(parents=True)
    dirs.config_file.write_text("# mine\n", encoding="utf-8")
    shell = FakeShell()
    ctx = AdmContext.for_test(shell=shell, http=FakeHttp(), config=config_in(tmp_path))

    with pytest.raises(RuntimeError, match="404 Not Found"):
        install_arti_service(ctx, dirs)

    assert dirs.config_file.read_text(encoding="utf-8") == "# mine\n"
    assert shell.run_calls == []


def test_failed_enable_is_reported(tmp_path: Path) -> None:
    shell = FakeShell(results={("systemctl", "--user", "enable"): failed(1)})
    ctx = AdmContext.for_test(
        shell=shell, http=FakeHttp({EXAMPLE_CONFIG_URL: EXAMPLE}), config=config_in(tmp_path)
    )

    with pytest.raises(RuntimeError, match="Failed to enable arti"):
        install_arti_service(ctx, UserDirs.from_env({}, tmp_path))


def test_dry_run_touches_nothing(tmp_path: Path) -> None:
    dirs = UserDirs.from_env({}, tmp_path)
    feedback = FakeUserFeedback()
    http = FakeHttp()
    ctx = AdmContext.for_test(
        http=http, feedback=feedback, config=config_in(tmp_path), dry_run=True
    )

    install_arti_service(ctx, dirs)

    assert not dirs.unit_dir.exists()
    assert http.download_calls == []
    assert f"Would install {dirs.unit_dir / 'arti.service'}" in feedback.infos
