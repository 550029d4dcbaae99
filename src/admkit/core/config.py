"""Configuration data structures and loading.

Provides immutable config loaded from ``~/.config/admkit/config.toml`` (or
``$ADMKIT_CONFIG``). Every path a tool reads or writes lives here, so tests and
unusual hosts can point admkit somewhere other than the live system.

Precedence, lowest to highest: built-in defaults, the TOML file, environment
variables listed in ENV_OVERRIDES.
"""

import dataclasses
import os
import tomllib
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomlkit


@dataclass(frozen=True)
class PathsConfig:
    """Well-known system locations."""

    os_release: Path = Path("/etc/os-release")
    apt_sources_list: Path = Path("/etc/apt/sources.list")
    apt_sources_dir: Path = Path("/etc/apt/sources.list.d")
    apt_keyrings_dir: Path = Path("/etc/apt/keyrings")
    share_keyrings_dir: Path = Path("/usr/share/keyrings")
    apt_backup_root: Path = Path("/etc/apt")
    log_root: Path = Path("/var/log")
    old_files_root: Path = Path("/")
    report_dir: Path = Path("/var/log/debian")
    etc_dir: Path = Path("/etc")
    etc_backup_root: Path = Path("/var/backups/apt-config-backups")
    install_prefix: Path = Path("/usr/local")
    profile: Path = Path("/etc/profile")
    systemd_dir: Path = Path("/etc/systemd/system")
    fstab: Path = Path("/etc/fstab")
    mount_root: Path = Path("/mnt")
    source_dir: Path = Path("~/.local/src")
    gpg_conf_source: Path = Path("gpg-conf")
    gnupg_home: Path = Path("~/.gnupg")
    cargo_home: Path = Path("~/.cargo")
    state_dir: Path = Path("/var/lib/admkit")


@dataclass(frozen=True)
class WebsiteConfig:
    """Settings for ``admkit website sync``."""

    gh_user: str = "admin"
    repo_dir: Path = Path("/var/www/website")
    repo_slug: str = ""
    branch: str = "main"
    service: str = "apache2"
    zip_url: str = ""

    @property
    def resolved_zip_url(self) -> str:
        """ZIP_URL if set, else the GitHub branch archive of repo_slug."""
        if self.zip_url:
            return self.zip_url
        if self.repo_slug:
            return f"https://github.com/{self.repo_slug}/archive/refs/heads/{self.branch}.zip"
        return ""


@dataclass(frozen=True)
class GitHubConfig:
    """Settings for ``admkit github sync-repos``."""

    owner: str = ""
    base_dir: Path = Path("~/git")


@dataclass(frozen=True)
class MoneroConfig:
    """Layout of the monerod installation."""

    user: str = "monero"
    bin_dir: Path = Path("/usr/bin")
    data_dir: Path = Path("/var/lib/monero")
    log_dir: Path = Path("/var/log/monero")
    conf: Path = Path("/etc/monerod.conf")


@dataclass(frozen=True)
class ClamavConfig:
    """Where ``admkit clamav setup`` puts ClamAV state, and which account owns it."""

    user: str = "clamscan"
    freshclam_conf: Path = Path("/etc/freshclam.conf")
    scan_conf: Path = Path("/etc/clamd.d/scan.conf")
    database_dir: Path = Path("/var/lib/clamav")
    log_dir: Path = Path("/var/log/clamav")
    quarantine_dir: Path = Path("/var/spool/quarantine")
    socket_dir: Path = Path("/run/clamd.scan")


@dataclass(frozen=True)
class AdmConfig:
    """Immutable configuration data.

    Loaded once at CLI entry point and stored in AdmContext.
    """

    paths: PathsConfig = field(default_factory=PathsConfig)
    website: WebsiteConfig = field(default_factory=WebsiteConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    monero: MoneroConfig = field(default_factory=MoneroConfig)
    clamav: ClamavConfig = field(default_factory=ClamavConfig)


SECTIONS: dict[str, type] = {
    "paths": PathsConfig,
    "website": WebsiteConfig,
    "github": GitHubConfig,
    "monero": MoneroConfig,
    "clamav": ClamavConfig,
}

ENV_OVERRIDES: dict[str, str] = {
    "GH_USER": "website.gh_user",
    "REPO_DIR": "website.repo_dir",
    "REPO_SLUG": "website.repo_slug",
    "BRANCH": "website.branch",
    "SERVICE": "website.service",
    "ZIP_URL": "website.zip_url",
    "OWNER": "github.owner",
    "BASE_DIR": "github.base_dir",
}


def default_config_path(env: Mapping[str, str]) -> Path:
    override = env.get("ADMKIT_CONFIG")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "admkit" / "config.toml"


def config_keys() -> list[str]:
    """All settable keys in ``section.name`` form, in declaration order."""
    keys: list[str] = []
    for section, cls in SECTIONS.items():
        keys.extend(f"{section}.{f.name}" for f in dataclasses.fields(cls))
    return keys


def _field_type(key: str) -> type:
    section, name = _split_key(key)
    for f in dataclasses.fields(SECTIONS[section]):
        if f.name == name:
            return f.type  # type: ignore[return-value]
    raise KeyError(key)


def _split_key(key: str) -> tuple[str, str]:
    section, sep, name = key.partition(".")
    if not sep or section not in SECTIONS:
        raise KeyError(key)
    if name not in {f.name for f in dataclasses.fields(SECTIONS[section])}:
        raise KeyError(key)
    return section, name


def _coerce(key: str, value: Any) -> Any:
    target = _field_type(key)
    if target is Path:
        return Path(str(value)).expanduser()
    if not isinstance(value, str):
        raise ValueError(f"Expected a string for '{key}', got {type(value).__name__}")
    return value


def build_config(data: Mapping[str, Any], env: Mapping[str, str]) -> AdmConfig:
    """Build AdmConfig from parsed TOML data and environment overrides.

    Raises:
        ValueError: If the data contains unknown sections or keys
    """
    values: dict[str, dict[str, Any]] = {section: {} for section in SECTIONS}

    for section, table in data.items():
        if section not in SECTIONS or not isinstance(table, Mapping):
            raise ValueError(f"Unknown config section: {section}")
        for name, value in table.items():
            key = f"{section}.{name}"
            try:
                values[section][name] = _coerce(key, value)
            except KeyError:
                raise ValueError(f"Unknown config key: {key}") from None

    for var, key in ENV_OVERRIDES.items():
        if env.get(var):
            section, name = _split_key(key)
            values[section][name] = _coerce(key, env[var])

    # Defaults with "~" are expanded too
    sections = {}
    for section, cls in SECTIONS.items():
        instance = cls(**values[section])
        expanded = {
            f.name: getattr(instance, f.name).expanduser()
            for f in dataclasses.fields(cls)
            if isinstance(getattr(instance, f.name), Path)
        }
        sections[section] = dataclasses.replace(instance, **expanded)
    return AdmConfig(**sections)


def get_value(config: AdmConfig, key: str) -> Any:
    section, name = _split_key(key)
    return getattr(getattr(config, section), name)


class ConfigStore(ABC):
    """Abstract interface for config file access."""

    @abstractmethod
    def path(self) -> Path:
        """Location of the config file (for messages)."""

    @abstractmethod
    def load(self, env: Mapping[str, str]) -> AdmConfig:
        """Load config, falling back to defaults when the file is missing.

        Raises:
            ValueError: If the file is malformed or has unknown keys
        """

    @abstractmethod
    def set_value(self, key: str, value: str) -> None:
        """Persist a single ``section.name`` value.

        Raises:
            KeyError: If key is not a known setting
        """


class FilesystemConfigStore(ConfigStore):
    """Reads with tomllib and writes with tomlkit so comments survive edits."""

    def __init__(self, config_path: Path) -> None:
        self._path = config_path

    def path(self) -> Path:
        return self._path

    def load(self, env: Mapping[str, str]) -> AdmConfig:
        if not self._path.exists():
            return build_config({}, env)
        try:
            data = tomllib.loads(self._path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {self._path}: {e}") from e
        return build_config(data, env)

    def set_value(self, key: str, value: str) -> None:
        section, name = _split_key(key)

        if self._path.exists():
            doc = tomlkit.parse(self._path.read_text(encoding="utf-8"))
        else:
            doc = tomlkit.document()
            doc.add(tomlkit.comment("admkit configuration"))

        if section not in doc:
            doc[section] = tomlkit.table()
        doc[section][name] = value  # type: ignore[index]

        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(tomlkit.dumps(doc), encoding="utf-8")


def load_from_environment(env: Mapping[str, str] | None = None) -> tuple[ConfigStore, AdmConfig]:
    """Resolve the config file from the environment and load it."""
    env = os.environ if env is None else env
    store = FilesystemConfigStore(default_config_path(env))
    return store, store.load(env)
