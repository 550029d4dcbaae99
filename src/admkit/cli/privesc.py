"""Entry point of the ``admkit-sudo`` console script.

The script is meant to be symlinked as ``sudo``, ``sudoedit`` and ``visudo``.
It takes no options of its own; every argument is handed to the backend.
"""

import os
import sys
from pathlib import Path

import click

from admkit.cli.output import user_output
from admkit.core.privesc import PrivescError, build_command, run_privileged
from admkit.core.shell import RealShell, Shell

SHIM_NAMES = {"sudo", "sudoedit", "visudo"}


def program_name(argv0: str) -> str:
    """Name the shim was invoked under; ``admkit-sudo`` behaves like ``sudo``."""
    name = Path(argv0).name
    return name if name in SHIM_NAMES else "sudo"


def run(argv: list[str], shell: Shell, env: dict[str, str]) -> int:
    prog = program_name(argv[0])
    try:
        command = build_command(
            prog, argv[1:], shell=shell, env=env, self_path=os.path.abspath(argv[0])
        )
    except PrivescError as e:
        user_output(click.style("Error: ", fg="red") + f"{prog}-wrapper: {e}")
        return 1
    return run_privileged(shell, command)


def main() -> None:
    """CLI entry point used by the `admkit-sudo` console script."""
    sys.exit(run(sys.argv, RealShell(), dict(os.environ)))
