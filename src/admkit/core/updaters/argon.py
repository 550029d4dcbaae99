"""Argon ONE V3 case support for the Raspberry Pi.

Argon40 publishes no versions, only installer scripts. The "version" is a short
SHA-256 of the current EEPROM and case scripts; after both have run it is
recorded under the admkit state directory, so the scripts run again only when
Argon40 changes them (or with --force).
"""

import hashlib
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from admkit.core.updaters.base import Updater

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

EEPROM_URL = "https://download.argon40.com/argon-eeprom.sh"
CASE_URL = "https://download.argon40.com/argon1.sh"
SCRIPTS = (("argon-eeprom.sh", EEPROM_URL), ("argon1.sh", CASE_URL))


def scripts_digest(*scripts: bytes) -> str:
    digest = hashlib.sha256()
    for script in scripts:
        digest.update(script)
    return digest.hexdigest()[:12]


class ArgonOneUpdater(Updater):
    name = "argon-one"
    description = "Argon ONE V3 EEPROM and case scripts (Raspberry Pi)"
    required_commands = ("bash",)
    reboot_after_install = True

    def stamp_path(self, ctx: "AdmContext") -> Path:
        return ctx.config.paths.state_dir / "argon-one.installed"

    def installed_version(self, ctx: "AdmContext") -> str | None:
        stamp = self.stamp_path(ctx)
        if not stamp.is_file():
            return None
        return stamp.read_text(encoding="utf-8").strip() or None

    def latest_version(self, ctx: "AdmContext") -> str:
        return scripts_digest(*(ctx.http.fetch_bytes(url) for _, url in SCRIPTS))

    def install(self, ctx: "AdmContext", version: str) -> None:
        with tempfile.TemporaryDirectory(prefix="admkit-argon-") as tmp:
            for filename, url in SCRIPTS:
                script = Path(tmp) / filename
                ctx.feedback.info(f"Running {url}...")
                ctx.http.download(url, script)
                ctx.shell.run(["bash", str(script)], operation=f"run {filename}")

        stamp = self.stamp_path(ctx)
        stamp.parent.mkdir(parents=True, exist_ok=True)
        stamp.write_text(f"{version}\n", encoding="utf-8")
