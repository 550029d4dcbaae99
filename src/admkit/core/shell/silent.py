"""Quiet command execution that only speaks up on failure.

Used by ``--silent`` for cron jobs: output of every mutating command is
captured, and replayed to stderr only when the command fails.
"""

from collections.abc import Mapping, Sequence
from pathlib import Path

from admkit.cli.output import user_output
from admkit.core.shell.abc import CommandResult, Shell
from admkit.core.subprocess import describe_failure

REPLAY_HEADER = "‼️ Error during command, captured output:"


class SilentShell(Shell):
    """Wrapper that captures command output and replays it on error."""

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
        try:
            result = self._wrapped.run(
                cmd,
                operation=operation,
                cwd=cwd,
                env=env,
                check=False,
                capture=True,
                input=input,
            )
        except RuntimeError:
            user_output(REPLAY_HEADER)
            raise

        if check and not result.ok:
            replay(result)
            raise RuntimeError(describe_failure(operation, cmd, result.returncode))
        return result

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
        return self._wrapped.exec(cmd, env=env)


def replay(result: CommandResult) -> None:
    """Print the captured output of a failed command under the replay header."""
    user_output(REPLAY_HEADER)
    if result.stdout:
        user_output(result.stdout.rstrip("\n"))
    if result.stderr:
        user_output(result.stderr.rstrip("\n"))
