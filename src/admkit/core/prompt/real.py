"""Prompts backed by click.

When stdin is not a terminal (cron, systemd timers, pipes) every question is
answered with its default instead of blocking.
"""

import sys
from collections.abc import Sequence

import click

from admkit.core.prompt.abc import Prompt


class RealPrompt(Prompt):
    def __init__(self, interactive: bool | None = None) -> None:
        self._interactive = sys.stdin.isatty() if interactive is None else interactive

    def confirm(self, message: str, default: bool = False) -> bool:
        if not self._interactive:
            return default
        return click.confirm(message, default=default, err=True)

    def ask(self, message: str, default: str | None = None) -> str:
        if not self._interactive:
            return default or ""
        return click.prompt(message, default=default, err=True, show_default=default is not None)

    def choose(self, message: str, choices: Sequence[str], default: str) -> str:
        if not self._interactive:
            return default
        return click.prompt(
            message,
            type=click.Choice(list(choices)),
            default=default,
            err=True,
        )
