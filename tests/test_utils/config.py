"""Config builders that point every system path into a temporary directory."""

from pathlib import Path

from admkit.core.config import (
    AdmConfig,
    ClamavConfig,
    GitHubConfig,
    MoneroConfig,
    PathsConfig,
    WebsiteConfig,
)

DEBIAN_BOOKWORM = """\
PRETTY_NAME="Debian GNU/Linux 12 (bookworm)"
NAME="Debian GNU/Linux"
VERSION_ID="12"
VERSION_CODENAME=bookworm
ID=debian
"""


def paths_in(root: Path) -> PathsConfig:
    """PathsConfig mirroring the real layout under root."""
    etc = root / "etc"
    return PathsConfig(
        os_release=etc / "os-release",
        apt_sources_list=etc / "apt" / "sources.list",
        apt_sources_dir=etc / "apt" / "sources.list.d",
        apt_keyrings_dir=etc / "apt" / "keyrings",
        share_keyrings_dir=root / "usr" / "share" / "keyrings",
        apt_backup_root=etc / "apt",
        log_root=root / "var" / "log",
        old_files_root=root,
        report_dir=root / "var" / "log" / "debian",
        etc_dir=etc,
        etc_backup_root=root / "var" / "backups" / "apt-config-backups",
        install_prefix=root / "usr" / "local",
        profile=etc / "profile",
        systemd_dir=etc / "systemd" / "system",
        fstab=etc / "fstab",
        mount_root=root / "mnt",
        source_dir=root / "home" / "src",
        gpg_conf_source=root / "gpg-conf",
        gnupg_home=root / "home" / ".gnupg",
        cargo_home=root / "home" / ".cargo",
        state_dir=root / "var" / "lib" / "admkit",
    )


def clamav_in(root: Path) -> ClamavConfig:
    return ClamavConfig(
        freshclam_conf=root / "etc" / "freshclam.conf",
        scan_conf=root / "etc" / "clamd.d" / "scan.conf",
        database_dir=root / "var" / "lib" / "clamav",
        log_dir=root / "var" / "log" / "clamav",
        quarantine_dir=root / "var" / "spool" / "quarantine",
        socket_dir=root / "run" / "clamd.scan",
    )


def config_in(
    root: Path,
    *,
    website: WebsiteConfig | None = None,
    github: GitHubConfig | None = None,
    monero: MoneroConfig | None = None,
    clamav: ClamavConfig | None = None,
) -> AdmConfig:
    return AdmConfig(
        paths=paths_in(root),
        website=website if website is not None else WebsiteConfig(repo_dir=root / "www"),
        github=github if github is not None else GitHubConfig(base_dir=root / "git"),
        monero=monero
        if monero is not None
        else MoneroConfig(
            bin_dir=root / "usr" / "bin",
            data_dir=root / "var" / "lib" / "monero",
            log_dir=root / "var" / "log" / "monero",
            conf=root / "etc" / "monerod.conf",
        ),
        clamav=clamav if clamav is not None else clamav_in(root),
    )


def write_os_release(root: Path, content: str = DEBIAN_BOOKWORM) -> Path:
    path = root / "etc" / "os-release"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
