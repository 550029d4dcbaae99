"""Output utilities for CLI commands with clear intent.

user_output goes to stderr (progress, diagnostics, errors) and machine_output
goes to stdout (data another program may consume, e.g. file listings).
"""

import os
import sys
from datetime import datetime
from typing import Any

import click

LEVEL_STYLES: dict[str, tuple[str, str]] = {
    "INFO": ("green", "✅"),
    "WARN": ("yellow", "⚠️"),
    "ERROR": ("red", "❌"),
}


def user_output(message: Any = "", nl: bool = True) -> None:
    """Write a message meant for the human running the command (stderr)."""
    click.echo(message, nl=nl, err=True)


def machine_output(message: Any = "", nl: bool = True) -> None:
    """Write a message meant for programs consuming our output (stdout)."""
    click.echo(message, nl=nl)


def should_use_color() -> bool:
    """Color only when stderr is a terminal and NO_COLOR is not "1"."""
    if os.environ.get("NO_COLOR", "0") == "1":
        return False
    return sys.stderr.isatty()


def format_log_line(level: str, message: str, timestamp: datetime, color: bool) -> str:
    """Render a log line as ``YYYY-mm-dd HH:MM:SS [LEVEL] <icon> message``.

    Args:
        level: One of INFO, WARN or ERROR
        message: Text to log
        timestamp: Time printed at the start of the line
        color: Whether to colorize the level tag

    Returns:
        The formatted line without trailing newline
    """
    fg, icon = LEVEL_STYLES[level]
    tag = f"[{level}]"
    if color:
        tag = click.style(tag, fg=fg)
    return f"{timestamp:%Y-%m-%d %H:%M:%S} {tag} {icon} {message}"
