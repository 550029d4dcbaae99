"""Domain errors raised by admkit operations.

Operational failures derive from RuntimeError so commands can report them with
a single ``except RuntimeError`` block. Malformed input is a ValueError.
"""


class UnsupportedSystemError(RuntimeError):
    """The running distribution, release or architecture is not supported."""


class VerificationError(RuntimeError):
    """A downloaded artifact failed signature or checksum verification."""


class LockHeldError(RuntimeError):
    """Another process holds the lock directory."""

    def __init__(self, lock_path: object) -> None:
        super().__init__(f"Lock is held: {lock_path}")
        self.lock_path = lock_path


class ReportParseError(ValueError):
    """A sysclean report line could not be interpreted."""

    def __init__(self, line_number: int, line: str, reason: str) -> None:
        super().__init__(f"line {line_number}: {reason}: {line!r}")
        self.line_number = line_number
        self.line = line
        self.reason = reason
