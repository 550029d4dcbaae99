"""Precondition checks for CLI commands.

Each check either returns quietly or prints a red "Error:" line and exits with
status 1, so commands can state what they need up front.
"""

from typing import TYPE_CHECKING, NoReturn

import click

from admkit.cli.output import user_output

if TYPE_CHECKING:
    from admkit.core.context import AdmContext


def fail(error_message: str) -> NoReturn:
    """Print a styled error and exit with status 1."""
    user_output(click.style("Error: ", fg="red") + error_message)
    raise SystemExit(1)


class Ensure:
    """Helper class for asserting preconditions with consistent error handling."""

    @staticmethod
    def is_root(ctx: "AdmContext", program: str = "admkit") -> None:
        """Ensure the effective user is root.

        Skipped under --dry-run so operators can preview a run unprivileged.

        Example:
            >>> Ensure.is_root(ctx)
        """
        if ctx.dry_run:
            return
        if not ctx.host.is_root():
            fail(f"This command must be run as root. Try: sudo {program}")

    @staticmethod
    def command_available(ctx: "AdmContext", *names: str) -> None:
        """Ensure every named command is on PATH.

        Example:
            >>> Ensure.command_available(ctx, "dpkg", "gpg")
        """
        for name in names:
            if not ctx.shell.has(name):
                fail(f"required command '{name}' is not installed or not in PATH.")

    @staticmethod
    def first_available(ctx: "AdmContext", *names: str) -> str:
        """Return the first command on PATH among names, or exit.

        Example:
            >>> apt = Ensure.first_available(ctx, "apt-get", "apt")
        """
        for name in names:
            if ctx.shell.has(name):
                return name
        fail(f"none of {', '.join(repr(n) for n in names)} is available.")
