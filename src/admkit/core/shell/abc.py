"""Shell operations interface.

Every external program admkit drives goes through this interface. Commands that
change the system use run(); commands that only inspect it use query(), which
keeps working under --dry-run so version checks and detection still happen.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CommandResult:
    """Outcome of an external command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def first_line(self) -> str:
        """First non-empty stdout line, stripped ("" when there is none)."""
        for line in self.stdout.splitlines():
            stripped = line.strip()
            if stripped:
                return stripped
        return ""


class Shell(ABC):
    """Abstract interface for running external commands."""

    @abstractmethod
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
        """Run a command that modifies system state.

        Args:
            cmd: Command and arguments
            operation: Human-readable description used in error messages
            cwd: Working directory
            env: Extra environment variables layered over the current environment
            check: Raise RuntimeError on non-zero exit
            capture: Capture stdout/stderr instead of streaming to the terminal
            input: Text passed on stdin

        Returns:
            CommandResult of the command

        Raises:
            RuntimeError: If check is True and the command fails or is missing
        """

    @abstractmethod
    def query(
        self,
        cmd: Sequence[str],
        *,
        operation: str,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run a read-only command and capture its output.

        Never raises for a non-zero exit. A missing binary yields returncode 127.
        """

    @abstractmethod
    def which(self, name: str) -> str | None:
        """Return the absolute path of an executable on PATH, or None."""

    @abstractmethod
    def exec(self, cmd: Sequence[str], env: Mapping[str, str] | None = None) -> int:
        """Replace the current process with cmd.

        Real implementations do not return. Test and dry-run implementations
        return an exit code instead.
        """

    def has(self, name: str) -> bool:
        """Check whether an executable is available on PATH."""
        return self.which(name) is not None
