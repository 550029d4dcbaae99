"""Interactive prompt interface."""

from abc import ABC, abstractmethod
from collections.abc import Sequence


class Prompt(ABC):
    """Abstract interface for asking the operator questions."""

    @abstractmethod
    def confirm(self, message: str, default: bool = False) -> bool:
        """Ask a yes/no question."""

    @abstractmethod
    def ask(self, message: str, default: str | None = None) -> str:
        """Ask for free-form text."""

    @abstractmethod
    def choose(self, message: str, choices: Sequence[str], default: str) -> str:
        """Ask the operator to pick one of choices."""
