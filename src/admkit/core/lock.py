"""Directory based run lock.

``mkdir`` is atomic, so the first process to create the lock directory owns it.
The directory is removed when the block exits, whether normally, through an
exception, or because SIGINT/SIGTERM arrived.
"""

import logging
import signal
import threading
from pathlib import Path
from types import FrameType, TracebackType

from admkit.core.errors import LockHeldError

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class LockDir:
    """Context manager holding a lock directory.

    Example:
        >>> with LockDir(repo_dir / ".sync.lock"):
        ...     sync()

    Raises:
        LockHeldError: On enter, if another process holds the lock
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._previous: dict[int, object] = {}
        self._held = False

    def __enter__(self) -> "LockDir":
        try:
            self.path.mkdir()
        except FileExistsError:
            raise LockHeldError(self.path) from None
        self._held = True
        logger.debug("acquired lock %s", self.path)
        self._install_handlers()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._restore_handlers()
        self.release()

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self.path.rmdir()
        except FileNotFoundError:
            logger.debug("lock %s already removed", self.path)
        logger.debug("released lock %s", self.path)

    def _on_signal(self, signum: int, frame: FrameType | None) -> None:
        logger.debug("received signal %d while holding %s", signum, self.path)
        self.release()
        if signum == signal.SIGINT:
            raise KeyboardInterrupt
        raise SystemExit(128 + signum)

    def _install_handlers(self) -> None:
        # signal.signal only works from the main thread
        if threading.current_thread() is not threading.main_thread():
            return
        for signum in HANDLED_SIGNALS:
            self._previous[signum] = signal.signal(signum, self._on_signal)

    def _restore_handlers(self) -> None:
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous.clear()
