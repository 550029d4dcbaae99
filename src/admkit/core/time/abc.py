"""Clock abstraction.

Timestamps end up in backup names, report names and log lines; tests inject a
fixed clock so those names are predictable.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class Time(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Return the current local time."""
        ...

    def stamp(self) -> str:
        """Return a ``YYYYmmdd-HHMMSS`` timestamp for file and directory names."""
        return self.now().strftime("%Y%m%d-%H%M%S")

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        """Block for seconds; retry loops wait through this."""
        ...
