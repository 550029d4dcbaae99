"""No-op wrapper for shell operations.

Read-only operations (query, which) are delegated to the wrapped
implementation. Mutating operations print what would run instead.
"""

from collections.abc import Mapping, Sequence
from pathlib import Path

import click

from admkit.cli.output import user_output
from admkit.core.shell.abc import CommandResult, Shell
from admkit.core.subprocess import format_command

DRY_RUN_PREFIX = click.style("[DRY RUN] ", fg="yellow")


class DryRunShell(Shell):
    """Wrapper that prints mutating commands instead of executing them.

    Usage:
        real_ops = RealShell()
        noop_ops = DryRunShell(real_ops)

        # Prints message instead of installing
        noop_ops.run(["apt-get", "install", "-y", "tor"], operation="install tor")
    """

    def __init__(self, wrapped: Shell) -> None:
        self._wrapped = wrapped

    def run(
        self,
        cmd: Sequence[str],
        *,
        operation: str,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        capture: bool = False,
        input: str | None = None,
    ) -> CommandResult:
        location = f" (in {cwd})" if cwd is not None else ""
        user_output(DRY_RUN_PREFIX + f"Would run: {format_command(cmd)}{location}")
        return CommandResult(returncode=0)

    def query(
        self,
        cmd: Sequence[str],
        *,
        operation: str,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        return self._wrapped.query(cmd, operation=operation, cwd=cwd, env=env)

    def which(self, name: str) -> str | None:
        return self._wrapped.which(name)

    def exec(self, cmd: Sequence[str], env: Mapping[str, str] | None = None) -> int:
        user_output(DRY_RUN_PREFIX + f"Would exec: {format_command(cmd)}")
        return 0
