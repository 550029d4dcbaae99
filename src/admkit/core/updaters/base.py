"""Shared update driver.

An updater knows how to read the installed version of one tool, how to find
the latest upstream version, and how to install a given version. The driver
compares the two and only installs when they differ (or when forced).
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

logger = logging.getLogger(__name__)

_PREFIX = re.compile(r"^(?:go|v|V)(?=\d)")


def normalize_version(version: str) -> str:
    """Drop a leading ``v`` or ``go`` so ``v1.2.3``, ``go1.2.3`` and ``1.2.3`` compare equal."""
    return _PREFIX.sub("", version.strip())


@dataclass(frozen=True)
class UpdateOutcome:
    name: str
    installed: str | None
    latest: str
    updated: bool


class Updater(ABC):
    """One updatable tool."""

    name: str
    description: str = ""
    required_commands: tuple[str, ...] = ()
    requires_root: bool = True
    reboot_after_install: bool = False

    @abstractmethod
    def installed_version(self, ctx: "AdmContext") -> str | None:
        """Currently installed version, or None when not installed."""

    @abstractmethod
    def latest_version(self, ctx: "AdmContext") -> str:
        """Latest upstream version.

        Raises:
            RuntimeError: If it cannot be determined
        """

    @abstractmethod
    def install(self, ctx: "AdmContext", version: str) -> None:
        """Download, build (where needed) and install version."""

    def is_up_to_date(self, installed: str, latest: str) -> bool:
        return normalize_version(installed) == normalize_version(latest)


def run_update(ctx: "AdmContext", updater: Updater, force: bool = False) -> UpdateOutcome:
    """Bring one tool up to date.

    When the installed version already matches the latest one, nothing is
    downloaded or built unless force is set.

    Raises:
        RuntimeError: If version discovery or installation fails
    """
    feedback = ctx.feedback

    feedback.info(f"Checking latest {updater.name} release...")
    latest = updater.latest_version(ctx)
    feedback.info(f"Latest {updater.name} version: {latest}")

    installed = updater.installed_version(ctx)
    if installed:
        feedback.info(f"Currently installed {updater.name} version: {installed}")
        if updater.is_up_to_date(installed, latest) and not force:
            feedback.info(f"{updater.name} is already up to date. Nothing to do.")
            return UpdateOutcome(updater.name, installed, latest, updated=False)
    else:
        feedback.info(f"{updater.name} is not currently installed.")

    if ctx.dry_run:
        feedback.info(f"Would install {updater.name} {latest}")
        return UpdateOutcome(updater.name, installed, latest, updated=False)

    logger.debug("installing %s %s (installed: %s)", updater.name, latest, installed)
    updater.install(ctx, latest)
    feedback.success(f"{updater.name} {latest} installed successfully.")
    return UpdateOutcome(updater.name, installed, latest, updated=True)
