from pathlib import Path

import pytest

from admkit.core.config import AdmConfig
from admkit.core.context import AdmContext
from admkit.core.errors import UnsupportedSystemError
from admkit.core.updaters import UPDATERS, run_update
from admkit.core.updaters.argon import CASE_URL, EEPROM_URL, ArgonOneUpdater, scripts_digest
from admkit.core.updaters.base import normalize_version
from admkit.core.updaters.cargo_crates import (
    ArtiUpdater,
    OniuxUpdater,
    installed_crate_version,
)
from admkit.core.updaters.fastfetch import deb_url
from admkit.core.updaters.golang import VERSION_URL, GoUpdater, ensure_profile_path, go_arch
from admkit.core.updaters.monero import (
    MoneroUpdater,
    expected_hash,
    monero_platform,
    render_conf,
    tarball_name,
)
from admkit.core.updaters.msedit import MseditUpdater, select_asset
from admkit.core.updaters.source_builds import (
    KrohnkiteUpdater,
    LyrebirdUpdater,
    XdTorrentUpdater,
)
from tests.fakes.host import FakeHost
from tests.fakes.http import FakeHttp
from tests.fakes.shell import FakeShell, failed, ok
from tests.fakes.user_feedback import FakeUserFeedback
from tests.test_utils.config import config_in

GO_VERSION_TEXT = "go1.22.2\ntime 2024-04-02T20:55:33Z\n"


def test_normalize_version_drops_prefixes() -> None:
    assert normalize_version("v1.2.3") == "1.2.3"
    assert normalize_version("go1.22.2") == "1.22.2"
    assert normalize_version(" 1.2.3\n") == "1.2.3"
    assert normalize_version("version") == "version"


def test_registry_names_every_tool() -> None:
    assert sorted(UPDATERS) == [
        "argon-one",
        "arti",
        "btop",
        "fastfetch",
        "golang",
        "krohnkite",
        "lyrebird",
        "monero",
        "msedit",
        "oniux",
        "xd-torrent",
    ]
    assert not UPDATERS["krohnkite"].requires_root
    assert not UPDATERS["arti"].requires_root
    assert UPDATERS["argon-one"].reboot_after_install


def test_up_to_date_go_downloads_nothing() -> None:
    shell = FakeShell(results={("go", "version"): ok("go version go1.22.2 linux/amd64\n")})
    http = FakeHttp({VERSION_URL: GO_VERSION_TEXT})
    feedback = FakeUserFeedback()
    ctx = AdmContext.for_test(shell=shell, http=http, feedback=feedback)

    outcome = run_update(ctx, GoUpdater())

    assert not outcome.updated
    assert outcome.installed == "go1.22.2"
    assert http.download_calls == []
    assert shell.run_calls == []
    assert "golang is already up to date. Nothing to do." in feedback.infos


def test_go_install_extracts_and_updates_profile(tmp_path: Path) -> None:
    config = config_in(tmp_path)
    config.paths.profile.parent.mkdir(parents=True)
    config.paths.profile.write_text("export PATH=/usr/bin\n", encoding="utf-8")
    shell = FakeShell()
    http = FakeHttp(
        {
            VERSION_URL: GO_VERSION_TEXT,
            "https://go.dev/dl/go1.22.2.linux-arm64.tar.gz": b"tarball",
        }
    )
    ctx = AdmContext.for_test(
        shell=shell, http=http, config=config, host=FakeHost(machine="aarch64")
    )

    outcome = run_update(ctx, GoUpdater())

    prefix = config.paths.install_prefix
    assert outcome.updated
    assert outcome.installed is None
    assert ["rm", "-rf", str(prefix / "go")] in shell.run_calls
    assert shell.ran("tar", "-C", str(prefix), "-xzf")
    assert "/usr/local/go/bin" in config.paths.profile.read_text(encoding="utf-8")


def test_force_reinstalls_current_version(tmp_path: Path) -> None:
    shell = FakeShell(results={("go", "version"): ok("go version go1.22.2 linux/amd64\n")})
    http = FakeHttp(
        {
            VERSION_URL: GO_VERSION_TEXT,
            "https://go.dev/dl/go1.22.2.linux-amd64.tar.gz": b"tarball",
        }
    )
    ctx = AdmContext.for_test(shell=shell, http=http, config=config_in(tmp_path))

    outcome = run_update(ctx, GoUpdater(), force=True)

    assert outcome.updated
    assert [url for url, _ in http.download_calls] == [
        "https://go.dev/dl/go1.22.2.linux-amd64.tar.gz"
    ]


def test_dry_run_reports_without_installing() -> None:
    shell = FakeShell()
    http = FakeHttp({VERSION_URL: GO_VERSION_TEXT})
    feedback = FakeUserFeedback()
    ctx = AdmContext.for_test(shell=shell, http=http, feedback=feedback, dry_run=True)

    outcome = run_update(ctx, GoUpdater())

    assert not outcome.updated
    assert "Would install golang go1.22.2" in feedback.infos
    assert http.download_calls == []
    assert shell.run_calls == []


def test_go_arch_mapping() -> None:
    assert go_arch("x86_64") == "amd64"
    assert go_arch("armv7l") == "armv6l"
    assert go_arch("ppc64el") == "ppc64le"
    with pytest.raises(UnsupportedSystemError, match="sparc64"):
        go_arch("sparc64")


def test_ensure_profile_path_backs_up_once(tmp_path: Path) -> None:
    profile = tmp_path / "profile"
    profile.write_text("umask 022\n", encoding="utf-8")
    ctx = AdmContext.for_test()

    assert ensure_profile_path(ctx, profile) is True
    assert ensure_profile_path(ctx, profile) is False

    backup = tmp_path / "profile.bak.20240115143000"
    assert backup.read_text(encoding="utf-8") == "umask 022\n"
    assert profile.read_text(encoding="utf-8").count("/usr/local/go/bin") == 1


def test_ensure_profile_path_missing_profile_warns(tmp_path: Path) -> None:
    feedback = FakeUserFeedback()
    ctx = AdmContext.for_test(feedback=feedback)

    assert ensure_profile_path(ctx, tmp_path / "profile") is False
    assert feedback.warnings


def test_fastfetch_deb_url() -> None:
    assert deb_url("2.21.0", "aarch64") == (
        "https://github.com/fastfetch-cli/fastfetch/releases/download/2.21.0/"
        "fastfetch-linux-aarch64.deb"
    )


def test_msedit_select_asset_and_comparison() -> None:
    urls = [
        "https://x/edit-1.2.0-aarch64-windows.zip",
        "https://x/edit-1.2.0-x86_64-linux-gnu.tar.zst",
        "https://x/edit-1.2.0-x86_64-linux-gnu.tar.gz",
    ]

    assert select_asset(urls, "x86_64") == "https://x/edit-1.2.0-x86_64-linux-gnu.tar.gz"
    assert select_asset(urls, "aarch64") is None
    assert MseditUpdater().is_up_to_date("1.2.1", "1.2.0")
    assert not MseditUpdater().is_up_to_date("1.2.0", "1.10.0")


def test_monero_expected_hash_picks_filename() -> None:
    digest = "A" * 64
    text = (
        "# This GPG-signed message exists to confirm the SHA256 sums of Monero binaries.\n"
        f"{'b' * 64}  monero-linux-x86-v0.18.3.4.tar.bz2\n"
        f"{digest}  monero-linux-x64-v0.18.3.4.tar.bz2\n"
    )

    assert expected_hash(text, "monero-linux-x64-v0.18.3.4.tar.bz2") == "a" * 64
    assert expected_hash(text, "monero-linux-armv8-v0.18.3.4.tar.bz2") is None


def test_monero_platform_and_tarball() -> None:
    assert tarball_name(monero_platform("armv7l"), "v0.18.3.4") == (
        "monero-linux-armv7-v0.18.3.4.tar.bz2"
    )
    with pytest.raises(UnsupportedSystemError):
        monero_platform("s390x")


def test_monero_version_check_matches_tag_in_output() -> None:
    updater = MoneroUpdater()

    assert updater.is_up_to_date("Monero 'Fluorine Fermi' (v0.18.3.4-release)", "v0.18.3.4")
    assert not updater.is_up_to_date("Monero 'Fluorine Fermi' (v0.18.3.3-release)", "v0.18.3.4")


def test_monero_conf_points_at_data_and_log_dirs(tmp_path: Path) -> None:
    monero = config_in(tmp_path).monero

    conf = render_conf(monero)

    assert f"data-dir={monero.data_dir}\n" in conf
    assert f"log-file={monero.log_dir / 'monerod.log'}\n" in conf
    assert "db-sync-mode=safe\n" in conf


def test_source_build_clones_when_checkout_missing(tmp_path: Path) -> None:
    config = config_in(tmp_path)
    shell = FakeShell(results={("git", "ls-remote"): ok("abc123\tHEAD\n")})
    ctx = AdmContext.for_test(shell=shell, config=config)

    outcome = run_update(ctx, XdTorrentUpdater())

    src = config.paths.source_dir / "XD"
    assert outcome.latest == "abc123"
    assert shell.run_calls == [
        ["git", "clone", "https://github.com/majestrate/XD.git", str(src)],
        ["make"],
        ["make", "install"],
    ]
    assert shell.run_cwds[1:] == [src, src]
    assert (src / ".git" / "admkit-installed").read_text(encoding="utf-8") == "abc123\n"


def _installed_build(config: AdmConfig, checkout: str, revision: str) -> None:
    git_dir = config.paths.source_dir / checkout / ".git"
    git_dir.mkdir(parents=True)
    (git_dir / "admkit-installed").write_text(f"{revision}\n", encoding="utf-8")


def test_source_build_matching_install_is_not_rebuilt(tmp_path: Path) -> None:
    config = config_in(tmp_path)
    _installed_build(config, "XD", "abc123")
    bin_dir = config.paths.install_prefix / "bin"
    bin_dir.mkdir(parents=True)
    (bin_dir / "XD").write_bytes(b"elf")
    shell = FakeShell(results={("git", "ls-remote"): ok("abc123\tHEAD\n")})
    ctx = AdmContext.for_test(shell=shell, config=config)

    outcome = run_update(ctx, XdTorrentUpdater())

    assert not outcome.updated
    assert shell.run_calls == []


def test_missing_binary_is_rebuilt_even_when_revision_matches(tmp_path: Path) -> None:
    config = config_in(tmp_path)
    _installed_build(config, "lyrebird", "abc123")
    src = config.paths.source_dir / "lyrebird"
    (src / "lyrebird").write_bytes(b"elf")
    shell = FakeShell(results={("git", "ls-remote"): ok("abc123\tHEAD\n")})
    ctx = AdmContext.for_test(shell=shell, config=config)

    outcome = run_update(ctx, LyrebirdUpdater())

    target = config.paths.install_prefix / "bin" / "lyrebird"
    assert outcome.updated
    assert ["make", "build"] in shell.run_calls
    assert shell.run_calls[-1] == ["install", "-m", "0755", str(src / "lyrebird"), str(target)]


def test_failed_build_keeps_previous_revision(tmp_path: Path) -> None:
    config = config_in(tmp_path)
    _installed_build(config, "XD", "old456")
    shell = FakeShell(
        results={("git", "ls-remote"): ok("abc123\tHEAD\n"), ("make",): failed(2)}
    )
    ctx = AdmContext.for_test(shell=shell, config=config)

    with pytest.raises(RuntimeError, match="Failed to build xd-torrent"):
        run_update(ctx, XdTorrentUpdater())

    stamp = config.paths.source_dir / "XD" / ".git" / "admkit-installed"
    assert stamp.read_text(encoding="utf-8") == "old456\n"
    assert XdTorrentUpdater().installed_version(ctx) is None


def test_krohnkite_upgrades_installed_package(tmp_path: Path) -> None:
    config = config_in(tmp_path)
    src = config.paths.source_dir / "Krohnkite"
    (src / ".git").mkdir(parents=True)
    (src / "builds").mkdir()
    (src / "builds" / "krohnkite-0.9.8.kwinscript").write_bytes(b"zip")
    shell = FakeShell(results={("kpackagetool6", "-t", "KWin/Script", "-s"): ok("krohnkite\n")})
    ctx = AdmContext.for_test(shell=shell, config=config)

    KrohnkiteUpdater().install(ctx, "abc123")

    assert shell.run_calls[-1] == [
        "kpackagetool6",
        "-t",
        "KWin/Script",
        "-u",
        str(src / "builds" / "krohnkite-0.9.8.kwinscript"),
    ]
    assert ["git", "-C", str(src), "reset", "--hard", "origin/HEAD"] in shell.run_calls


ARTI_URL = "https://gitlab.torproject.org/tpo/core/arti.git"
ARTI_TAGS = (
    "1a2b\trefs/tags/arti-v1.4.5\n"
    "3c4d\trefs/tags/arti-v1.4.6\n"
    "5e6f\trefs/tags/arti-v1.4.6^{}\n"
)
ARTI_LIST = f"arti v1.4.5 ({ARTI_URL}?tag=arti-v1.4.5#1a2b):\n    arti\n"


def test_installed_crate_version_reads_cargo_list() -> None:
    listing = "lsd v1.1.5:\n    lsd\n" + ARTI_LIST

    assert installed_crate_version(listing, "arti") == "1.4.5"
    assert installed_crate_version(listing, "lsd") == "1.1.5"
    assert installed_crate_version(listing, "oniux") is None


def test_arti_latest_tag_ignores_peeled_refs() -> None:
    shell = FakeShell(results={("git", "ls-remote", "--tags"): ok(ARTI_TAGS)})
    ctx = AdmContext.for_test(shell=shell)

    assert ArtiUpdater().latest_version(ctx) == "arti-v1.4.6"
    assert shell.query_calls[0][-1] == "refs/tags/arti-v*"


def test_arti_without_tags_is_an_error() -> None:
    ctx = AdmContext.for_test(shell=FakeShell(results={("git", "ls-remote"): ok("")}))

    with pytest.raises(RuntimeError, match="arti-v"):
        ArtiUpdater().latest_version(ctx)


def test_arti_matching_crate_is_left_alone() -> None:
    shell = FakeShell(
        results={
            ("git", "ls-remote", "--tags"): ok(ARTI_TAGS),
            ("cargo", "install", "--list"): ok(ARTI_LIST.replace("1.4.5", "1.4.6")),
        }
    )
    ctx = AdmContext.for_test(shell=shell)

    outcome = run_update(ctx, ArtiUpdater())

    assert not outcome.updated
    assert shell.run_calls == []


def test_arti_builds_as_user_and_installs_with_escalation(tmp_path: Path) -> None:
    shell = FakeShell(
        installed={"run0": "/usr/bin/run0"},
        results={
            ("git", "ls-remote", "--tags"): ok(ARTI_TAGS),
            ("cargo", "install", "--list"): ok(ARTI_LIST),
        },
    )
    config = config_in(tmp_path)
    ctx = AdmContext.for_test(shell=shell, host=FakeHost(euid=1000), config=config)

    outcome = run_update(ctx, ArtiUpdater())

    assert outcome.updated
    assert outcome.installed == "1.4.5"
    assert shell.run_calls == [
        [
            "env",
            "-u",
            "LD_PRELOAD",
            "cargo",
            "install",
            "--locked",
            "--features=full",
            "--git",
            ARTI_URL,
            "--tag",
            "arti-v1.4.6",
            "arti",
        ],
        [
            "run0",
            "install",
            "-m",
            "0755",
            str(config.paths.cargo_home / "bin" / "arti"),
            str(config.paths.install_prefix / "bin"),
        ],
    ]


def test_oniux_builds_without_features_as_root(tmp_path: Path) -> None:
    shell = FakeShell(
        results={("git", "ls-remote", "--tags"): ok("9f8e\trefs/tags/v0.5.0\n")},
    )
    ctx = AdmContext.for_test(shell=shell, config=config_in(tmp_path))

    run_update(ctx, OniuxUpdater())

    build, install = shell.run_calls
    assert not any(arg.startswith("--features") for arg in build)
    assert build[-3:] == ["--tag", "v0.5.0", "oniux"]
    built = tmp_path / "home" / ".cargo" / "bin" / "oniux"
    assert install[:4] == ["install", "-m", "0755", str(built)]


def test_argon_scripts_run_once_per_upstream_change(tmp_path: Path) -> None:
    shell = FakeShell()
    http = FakeHttp({EEPROM_URL: "echo eeprom\n", CASE_URL: "echo case\n"})
    config = config_in(tmp_path)
    ctx = AdmContext.for_test(shell=shell, http=http, config=config)

    first = run_update(ctx, ArgonOneUpdater())
    second = run_update(ctx, ArgonOneUpdater())

    assert first.updated
    assert not second.updated
    assert [Path(cmd[1]).name for cmd in shell.run_calls] == ["argon-eeprom.sh", "argon1.sh"]
    assert all(cmd[0] == "bash" for cmd in shell.run_calls)
    stamp = config.paths.state_dir / "argon-one.installed"
    expected = scripts_digest(b"echo eeprom\n", b"echo case\n")
    assert stamp.read_text(encoding="utf-8") == f"{expected}\n"


def test_argon_failed_script_is_not_recorded(tmp_path: Path) -> None:
    shell = FakeShell(results={("bash",): failed(1)})
    http = FakeHttp({EEPROM_URL: "eeprom", CASE_URL: "case"})
    config = config_in(tmp_path)
    ctx = AdmContext.for_test(shell=shell, http=http, config=config)

    with pytest.raises(RuntimeError, match="Failed to run argon-eeprom.sh"):
        run_update(ctx, ArgonOneUpdater())

    assert not (config.paths.state_dir / "argon-one.installed").exists()


def test_argon_unreachable_download_server_fails_before_running() -> None:
    shell = FakeShell()
    ctx = AdmContext.for_test(shell=shell, http=FakeHttp())

    with pytest.raises(RuntimeError, match="404 Not Found"):
        run_update(ctx, ArgonOneUpdater())

    assert shell.run_calls == []
