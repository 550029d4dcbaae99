from pathlib import Path

import pytest

from admkit.core.context import AdmContext
from admkit.core.logs import clean_logs, find_files
from tests.fakes.user_feedback import FakeUserFeedback
from tests.test_utils.config import config_in


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path


def test_find_files_matches_names_recursively(tmp_path: Path) -> None:
    syslog = _touch(tmp_path / "syslog.1.gz")
    nested = _touch(tmp_path / "apt" / "history.log.2.gz")
    _touch(tmp_path / "syslog")
    (tmp_path / "dir.gz").mkdir()

    assert list(find_files(tmp_path, "*.gz")) == [syslog, nested]


def test_find_files_skips_symlinks(tmp_path: Path) -> None:
    target = _touch(tmp_path / "real.gz")
    (tmp_path / "link.gz").symlink_to(target)

    assert list(find_files(tmp_path, "*.gz")) == [target]


def test_find_files_missing_root_yields_nothing(tmp_path: Path) -> None:
    assert list(find_files(tmp_path / "absent", "*.gz")) == []


def test_clean_logs_deletes_gz_and_old(tmp_path: Path) -> None:
    config = config_in(tmp_path)
    gz = _touch(config.paths.log_root / "syslog.1.gz")
    kept = _touch(config.paths.log_root / "syslog")
    old = _touch(tmp_path / "etc" / "passwd.old")
    ctx = AdmContext.for_test(config=config)

    result = clean_logs(ctx)

    assert set(result.deleted) == {gz, old}
    assert not gz.exists()
    assert not old.exists()
    assert kept.exists()


def test_clean_logs_dry_run_only_lists(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config = config_in(tmp_path)
    gz = _touch(config.paths.log_root / "syslog.1.gz")
    feedback = FakeUserFeedback()
    ctx = AdmContext.for_test(config=config, feedback=feedback, dry_run=True)

    result = clean_logs(ctx)

    assert result.matched == (gz,)
    assert result.deleted == ()
    assert gz.exists()
    assert capsys.readouterr().out.splitlines() == [str(gz)]
