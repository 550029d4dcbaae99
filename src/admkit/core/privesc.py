"""sudo-compatible front end for run0 and doas.

Installed as ``admkit-sudo`` and symlinked as ``sudo``, ``sudoedit`` and
``visudo``; the name it was invoked under picks the behavior.
"""

import os
import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from admkit.core.shell.abc import Shell

REAL_VISUDO = Path("/usr/sbin/visudo")
BACKENDS = ("run0", "doas")


class PrivescError(RuntimeError):
    pass


@dataclass(frozen=True)
class PrivescCommand:
    argv: list[str]
    env: dict[str, str] = field(default_factory=dict)


def choose_backend(shell: Shell, env: Mapping[str, str]) -> str:
    """run0 unless ADMKIT_PRIVESC=doas or run0 is missing.

    Raises:
        PrivescError: If neither backend is installed
    """
    preferred = env.get("ADMKIT_PRIVESC", "run0")
    order = [preferred] + [b for b in BACKENDS if b != preferred]
    for backend in order:
        if backend in BACKENDS and shell.has(backend):
            return backend
    raise PrivescError("neither 'run0' nor 'doas' is installed or in PATH.")


def find_visudo(shell: Shell, self_path: str, real: Path = REAL_VISUDO) -> str:
    if real.is_file() and os.access(real, os.X_OK):
        return str(real)
    found = shell.which("visudo")
    if found and os.path.realpath(found) != os.path.realpath(self_path):
        return found
    raise PrivescError(
        "could not locate the real 'visudo' binary. "
        f"Expected {real} or another executable visudo in PATH."
    )


def editor_command(shell: Shell, env: Mapping[str, str]) -> list[str]:
    editor = env.get("SUDO_EDITOR") or env.get("VISUAL") or env.get("EDITOR") or "vi"
    argv = shlex.split(editor)
    if not argv:
        raise PrivescError("editor is empty.")
    if not shell.has(argv[0]):
        raise PrivescError(f"editor '{argv[0]}' not found in PATH.")
    return argv


def build_command(
    prog_name: str,
    args: Sequence[str],
    *,
    shell: Shell,
    env: Mapping[str, str],
    self_path: str,
    real_visudo: Path = REAL_VISUDO,
) -> PrivescCommand:
    """Translate a sudo/sudoedit/visudo invocation into a backend command.

    Raises:
        PrivescError: If no backend, editor or real visudo is available, or
            sudoedit was called without files
    """
    backend = choose_backend(shell, env)

    if prog_name == "visudo":
        visudo = find_visudo(shell, self_path, real_visudo)
        return PrivescCommand([backend, visudo, *args], {"VISUDO_VIA_RUN0": "1"})

    if prog_name == "sudoedit":
        if not args:
            raise PrivescError("Usage: sudoedit FILE...")
        return PrivescCommand(
            [backend, *editor_command(shell, env), *args], {"SUDOEDIT_VIA_RUN0": "1"}
        )

    return PrivescCommand(
        [backend, *args], {"SUDO_VIA_RUN0": "1", "SUDO_PREFER_RUN0": "1"}
    )


def run_privileged(shell: Shell, command: PrivescCommand) -> int:
    """Replace this process with the backend command."""
    return shell.exec(command.argv, env=command.env)
