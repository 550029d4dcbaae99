"""Process execution for the real shell.

A failing tool must always tell the operator which step broke, the exact
command line and whatever the tool printed, so every spawn goes through
run_subprocess_with_context and every failure message through describe_failure.
"""

import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path


def format_command(cmd: Sequence[str]) -> str:
    """Render a command for log and error messages."""
    return " ".join(str(arg) for arg in cmd)


def _decoded(output: str | bytes | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        output = output.decode("utf-8", errors="replace")
    return output.strip()


def describe_failure(
    operation: str,
    cmd: Sequence[str],
    returncode: int,
    stdout: str | bytes | None = None,
    stderr: str | bytes | None = None,
) -> str:
    """Build the multi-line message carried by a failed-command RuntimeError."""
    lines = [
        f"Failed to {operation}",
        f"Command: {format_command(cmd)}",
        f"Exit code: {returncode}",
    ]
    for label, output in (("stdout", stdout), ("stderr", stderr)):
        text = _decoded(output)
        if text:
            lines.append(f"{label}: {text}")
    return "\n".join(lines)


def run_subprocess_with_context(
    cmd: Sequence[str],
    operation_context: str,
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    capture_output: bool = True,
    check: bool = True,
    input: str | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run cmd, turning launch and exit failures into RuntimeError.

    Args:
        cmd: Command and arguments to execute
        operation_context: What the command is for, phrased to follow
            "Failed to" (e.g. "install tor packages")
        cwd: Working directory for the child
        env: Full environment for the child (None inherits ours)
        capture_output: Capture stdout/stderr instead of streaming them
        check: Raise when the exit status is non-zero
        input: Text fed to the child on stdin

    Raises:
        RuntimeError: If the binary is missing, or it exits non-zero with check
    """
    argv = [str(arg) for arg in cmd]
    try:
        return subprocess.run(
            argv,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            capture_output=capture_output,
            text=True,
            encoding="utf-8",
            check=check,
            input=input,
        )
    except subprocess.CalledProcessError as e:
        raise RuntimeError(
            describe_failure(operation_context, argv, e.returncode, e.stdout, e.stderr)
        ) from e
    except FileNotFoundError as e:
        raise RuntimeError(
            f"Command not found while trying to {operation_context}: {argv[0]}"
            f"\nFull command: {format_command(argv)}"
        ) from e
