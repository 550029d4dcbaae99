"""APT and dpkg helpers shared by the repository and maintenance commands."""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from admkit.core.errors import UnsupportedSystemError
from admkit.core.shell.abc import CommandResult

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

NONINTERACTIVE = {"DEBIAN_FRONTEND": "noninteractive"}


def detect_apt(ctx: "AdmContext") -> str:
    """Return "apt-get" or "apt", whichever is installed (apt-get preferred).

    Raises:
        UnsupportedSystemError: If neither is available
    """
    for name in ("apt-get", "apt"):
        if ctx.shell.has(name):
            return name
    raise UnsupportedSystemError(
        "neither 'apt-get' nor 'apt' is available. "
        "Only Debian-like/Ubuntu-like systems are supported."
    )


def native_architecture(ctx: "AdmContext") -> str:
    """Native dpkg architecture (amd64, arm64, ...).

    Raises:
        UnsupportedSystemError: If dpkg cannot report it
    """
    result = ctx.shell.query(["dpkg", "--print-architecture"], operation="detect dpkg architecture")
    arch = result.first_line
    if not result.ok or not arch:
        raise UnsupportedSystemError("could not detect native APT architecture.")
    return arch


def is_installed(ctx: "AdmContext", package: str) -> bool:
    """Whether dpkg reports the package as installed."""
    result = ctx.shell.query(["dpkg", "-s", package], operation=f"query package {package}")
    return result.ok and "Status: install ok installed" in result.stdout


def apt_update(ctx: "AdmContext", apt: str) -> None:
    ctx.shell.run([apt, "update"], operation="update APT index", env=NONINTERACTIVE)


def apt_install(
    ctx: "AdmContext",
    apt: str,
    packages: Sequence[str],
    extra_args: Sequence[str] = (),
    check: bool = True,
) -> CommandResult:
    """Install packages non-interactively."""
    return ctx.shell.run(
        [apt, "install", "-y", *extra_args, *packages],
        operation=f"install {' '.join(packages)}",
        env=NONINTERACTIVE,
        check=check,
    )


def ensure_packages(ctx: "AdmContext", apt: str, packages: Sequence[str]) -> list[str]:
    """Install whichever of packages dpkg does not report as installed.

    Returns:
        The packages that were installed
    """
    missing = [pkg for pkg in packages if not is_installed(ctx, pkg)]
    for pkg in missing:
        ctx.feedback.info(f"Installing {pkg}...")
        apt_install(ctx, apt, [pkg])
    return missing
