"""Host facts interface.

Read-only questions about the machine admkit runs on: who we are, what CPU
architecture this is, which init system is PID 1.
"""

from abc import ABC, abstractmethod
from pathlib import Path


class Host(ABC):
    @abstractmethod
    def effective_uid(self) -> int:
        """Effective user id of this process."""

    @abstractmethod
    def machine(self) -> str:
        """Kernel machine name, as printed by ``uname -m``."""

    @abstractmethod
    def init_process(self) -> str:
        """Command name of PID 1 ("" when it cannot be read)."""

    @abstractmethod
    def user_home(self, user: str) -> Path | None:
        """Home directory of user from the passwd database."""

    @abstractmethod
    def cpu_count(self) -> int:
        """Number of CPUs available for parallel builds."""

    @abstractmethod
    def is_block_device(self, path: Path) -> bool:
        """Whether path is a block device node."""

    @abstractmethod
    def user_name(self) -> str:
        """Login name of the effective user."""

    @abstractmethod
    def hostname(self) -> str:
        """Network name of this machine."""

    def is_root(self) -> bool:
        return self.effective_uid() == 0
