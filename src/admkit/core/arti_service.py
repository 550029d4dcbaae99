"""Run Arti as a systemd user service.

The unit goes into ``$XDG_CONFIG_HOME/systemd/user`` and reads
``$XDG_CONFIG_HOME/arti/arti.toml``, which is refreshed from Arti's example
configuration. An existing configuration is kept as ``arti.toml.bak.<ts>``.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

UNIT_NAME = "arti.service"
EXAMPLE_CONFIG_URL = (
    "https://gitlab.torproject.org/tpo/core/arti/-/raw/main/crates/arti/src/"
    "arti-example-config.toml"
)

UNIT_TEMPLATE = """\
[Unit]
Description=Arti Tor client
After=network-online.target
Wants=network-online.target

[Service]
Type=simple
ExecStart={arti} proxy -c {config}
Restart=on-failure
RestartSec=5

[Install]
WantedBy=default.target
"""


@dataclass(frozen=True)
class UserDirs:
    """XDG base directories of the invoking user."""

    config_home: Path
    data_home: Path
    state_home: Path

    @classmethod
    def from_env(cls, env: Mapping[str, str], home: Path) -> "UserDirs":
        def pick(var: str, default: str) -> Path:
            value = env.get(var)
            return Path(value) if value else home / default

        return cls(
            config_home=pick("XDG_CONFIG_HOME", ".config"),
            data_home=pick("XDG_DATA_HOME", ".local/share"),
            state_home=pick("XDG_STATE_HOME", ".local/state"),
        )

    @property
    def unit_dir(self) -> Path:
        return self.config_home / "systemd" / "user"

    @property
    def arti_dirs(self) -> tuple[Path, Path, Path]:
        return (self.config_home / "arti", self.data_home / "arti", self.state_home / "arti")

    @property
    def config_file(self) -> Path:
        return self.config_home / "arti" / "arti.toml"


@dataclass(frozen=True)
class ArtiServiceReport:
    unit: Path
    config: Path
    backup: Path | None


def render_unit(arti: Path, config: Path) -> str:
    return UNIT_TEMPLATE.format(arti=arti, config=config)


def install_arti_service(ctx: "AdmContext", dirs: UserDirs) -> ArtiServiceReport:
    """Install, configure, enable and start the Arti user service.

    Raises:
        RuntimeError: If the example configuration cannot be downloaded or
            systemctl fails
    """
    feedback = ctx.feedback
    found = ctx.shell.which("arti")
    arti = Path(found) if found else ctx.config.paths.install_prefix / "bin" / "arti"
    unit = dirs.unit_dir / UNIT_NAME
    config = dirs.config_file
    backup = None
    if config.exists():
        backup = config.with_name(f"{config.name}.bak.{ctx.time.now():%Y%m%d%H%M%S}")

    if ctx.dry_run:
        feedback.info(f"Would install {unit}")
        if backup is not None:
            feedback.info(f"Would back up {config} to {backup}")
        feedback.info(f"Would download {EXAMPLE_CONFIG_URL} to {config}")
    else:
        feedback.info(f"Installing {unit}")
        dirs.unit_dir.mkdir(mode=0o750, parents=True, exist_ok=True)
        dirs.unit_dir.chmod(0o750)
        unit.write_text(render_unit(arti, config), encoding="utf-8")
        unit.chmod(0o640)

        for path in dirs.arti_dirs:
            path.mkdir(mode=0o750, parents=True, exist_ok=True)
            path.chmod(0o750)

        feedback.info(f"Downloading example configuration to {config}")
        fresh = config.with_name(f"{config.name}.new")
        ctx.http.download(EXAMPLE_CONFIG_URL, fresh)
        if backup is not None:
            feedback.info(f"Backing up {config} to {backup}")
            config.rename(backup)
        fresh.rename(config)

    ctx.shell.run(["systemctl", "--user", "daemon-reload"], operation="reload user units")
    ctx.shell.run(
        ["systemctl", "--user", "enable", "--now", UNIT_NAME], operation="enable arti"
    )
    feedback.success(f"Arti is running as a user service ({UNIT_NAME}).")
    return ArtiServiceReport(unit=unit, config=config, backup=backup)
