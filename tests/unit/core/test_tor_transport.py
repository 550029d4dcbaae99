from pathlib import Path

from admkit.core.apt.tor_transport import (
    enable_tor_transport,
    rewrite_list,
    rewrite_sources,
    torify_uris,
)
from admkit.core.context import AdmContext
from tests.fakes.shell import FakeShell
from tests.test_utils.config import config_in

SOURCES_LIST = """\
# main archive
deb http://deb.debian.org/debian bookworm main
deb-src https://deb.debian.org/debian bookworm main
deb tor+http://already.onion/debian bookworm main
"""

DEB822 = """\
Types: deb
URIs: http://deb.debian.org/debian https://security.debian.org/debian-security
Suites: bookworm
Components: main
"""


def test_torify_skips_existing_tor_uris() -> None:
    assert torify_uris("http://a https://b tor+http://c") == (
        "tor+http://a tor+https://b tor+http://c"
    )


def test_rewrite_list_only_touches_deb_lines() -> None:
    rewritten = rewrite_list(SOURCES_LIST + "# see http://example.org\n")

    assert "deb tor+http://deb.debian.org/debian bookworm main\n" in rewritten
    assert "deb-src tor+https://deb.debian.org/debian bookworm main\n" in rewritten
    assert "deb tor+http://already.onion/debian" in rewritten
    assert "# see http://example.org\n" in rewritten


def test_rewrite_sources_rewrites_every_uri_in_field() -> None:
    rewritten = rewrite_sources(DEB822)

    assert (
        "URIs: tor+http://deb.debian.org/debian tor+https://security.debian.org/debian-security\n"
        in rewritten
    )
    assert "Suites: bookworm\n" in rewritten


def test_rewrite_is_idempotent() -> None:
    once = rewrite_sources(DEB822)

    assert rewrite_sources(once) == once
    assert rewrite_list(rewrite_list(SOURCES_LIST)) == rewrite_list(SOURCES_LIST)


def _write_sources(root: Path) -> tuple[Path, Path]:
    config = config_in(root)
    sources_list = config.paths.apt_sources_list
    sources_list.parent.mkdir(parents=True)
    sources_list.write_text(SOURCES_LIST, encoding="utf-8")
    deb822 = config.paths.apt_sources_dir / "debian.sources"
    deb822.parent.mkdir(parents=True)
    deb822.write_text(DEB822, encoding="utf-8")
    return sources_list, deb822


def test_enable_backs_up_and_rewrites(tmp_path: Path) -> None:
    sources_list, deb822 = _write_sources(tmp_path)
    shell = FakeShell(installed={"apt-get": "/usr/bin/apt-get"})
    ctx = AdmContext.for_test(shell=shell, config=config_in(tmp_path))

    result = enable_tor_transport(ctx)

    assert set(result.rewritten) == {sources_list, deb822}
    assert result.backup_dir == tmp_path / "etc" / "apt" / "tor-transport-backup-20240115-143000"
    assert (result.backup_dir / "sources.list").read_text(encoding="utf-8") == SOURCES_LIST
    assert (result.backup_dir / "sources.list.d" / "debian.sources").exists()
    assert "tor+http://deb.debian.org" in sources_list.read_text(encoding="utf-8")
    assert ["apt-get", "install", "-y", "apt-transport-tor", "tor"] in shell.run_calls


def test_enable_twice_makes_no_second_backup(tmp_path: Path) -> None:
    _write_sources(tmp_path)
    ctx = AdmContext.for_test(
        shell=FakeShell(installed={"apt-get": "/usr/bin/apt-get"}), config=config_in(tmp_path)
    )
    enable_tor_transport(ctx)

    second = enable_tor_transport(ctx)

    assert second.backup_dir is None
    assert second.rewritten == ()


def test_dry_run_leaves_files_alone(tmp_path: Path) -> None:
    sources_list, _ = _write_sources(tmp_path)
    ctx = AdmContext.for_test(
        shell=FakeShell(installed={"apt-get": "/usr/bin/apt-get"}),
        config=config_in(tmp_path),
        dry_run=True,
    )

    result = enable_tor_transport(ctx)

    assert len(result.rewritten) == 2
    assert sources_list.read_text(encoding="utf-8") == SOURCES_LIST
    assert not (tmp_path / "etc" / "apt" / "tor-transport-backup-20240115-143000").exists()
