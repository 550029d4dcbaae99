"""Production shell implementation using subprocess."""

import logging
import os
import shutil
from collections.abc import Mapping, Sequence
from pathlib import Path

from admkit.core.shell.abc import CommandResult, Shell
from admkit.core.subprocess import format_command, run_subprocess_with_context

logger = logging.getLogger(__name__)

# Matches the PATH the tools pin so cron and systemd timers find sbin binaries.
SYSTEM_PATH = "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"


def build_env(extra: Mapping[str, str] | None) -> dict[str, str]:
    env = dict(os.environ)
    if "PATH" not in env or not env["PATH"]:
        env["PATH"] = SYSTEM_PATH
    if extra:
        env.update(extra)
    return env


class RealShell(Shell):
    """Runs commands on the host."""

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
        logger.debug("run: %s", format_command(cmd))
        result = run_subprocess_with_context(
            cmd,
            operation_context=operation,
            cwd=cwd,
            env=build_env(env),
            capture_output=capture,
            check=check,
            input=input,
        )
        return CommandResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )

    def query(
        self,
        cmd: Sequence[str],
        *,
        operation: str,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        logger.debug("query: %s", format_command(cmd))
        try:
            result = run_subprocess_with_context(
                cmd,
                operation_context=operation,
                cwd=cwd,
                env=build_env(env),
                check=False,
            )
        except RuntimeError as e:
            # Only raised for a missing binary when check=False
            logger.debug("query failed: %s", e)
            return CommandResult(returncode=127, stdout="", stderr=str(e))
        return CommandResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )

    def which(self, name: str) -> str | None:
        return shutil.which(name, path=build_env(None)["PATH"])

    def exec(self, cmd: Sequence[str], env: Mapping[str, str] | None = None) -> int:
        logger.debug("exec: %s", format_command(cmd))
        os.execvpe(cmd[0], list(cmd), build_env(env))
