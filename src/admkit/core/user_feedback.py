"""User-facing progress output with mode awareness."""

from abc import ABC, abstractmethod

from admkit.cli.output import format_log_line, should_use_color, user_output
from admkit.core.time.abc import Time


class UserFeedback(ABC):
    """Provides user-facing log lines that are mode-aware.

    Operations call ctx.feedback methods instead of printing, so the same code
    works interactively, under ``--silent`` and in tests.

    Two modes:
    - Interactive: every line is shown, timestamped and color-coded
    - Silent: info/success lines are dropped, warnings and errors still shown
    """

    @abstractmethod
    def info(self, message: str) -> None:
        """Show a progress line."""

    @abstractmethod
    def success(self, message: str) -> None:
        """Show a completion line."""

    @abstractmethod
    def warn(self, message: str) -> None:
        """Show a non-fatal problem (always shown)."""

    @abstractmethod
    def error(self, message: str) -> None:
        """Show an error (always shown)."""


class InteractiveFeedback(UserFeedback):
    """Timestamped ``[INFO]``/``[WARN]``/``[ERROR]`` lines on stderr."""

    def __init__(self, time: Time, color: bool | None = None) -> None:
        self._time = time
        self._color = should_use_color() if color is None else color

    def _emit(self, level: str, message: str) -> None:
        user_output(format_log_line(level, message, self._time.now(), self._color))

    def info(self, message: str) -> None:
        self._emit("INFO", message)

    def success(self, message: str) -> None:
        self._emit("INFO", message)

    def warn(self, message: str) -> None:
        self._emit("WARN", message)

    def error(self, message: str) -> None:
        self._emit("ERROR", message)


class SuppressedFeedback(InteractiveFeedback):
    """Silent mode: only warnings and errors reach the terminal."""

    def info(self, message: str) -> None:
        pass

    def success(self, message: str) -> None:
        pass
