import os
import signal
from pathlib import Path

import pytest

from admkit.core.errors import LockHeldError
from admkit.core.lock import LockDir


def test_lock_directory_exists_only_while_held(tmp_path: Path) -> None:
    lock = tmp_path / ".sync.lock"

    with LockDir(lock):
        assert lock.is_dir()

    assert not lock.exists()


def test_second_holder_is_rejected(tmp_path: Path) -> None:
    lock = tmp_path / ".sync.lock"

    with LockDir(lock):
        with pytest.raises(LockHeldError) as exc_info:
            with LockDir(lock):
                pass

    assert exc_info.value.lock_path == lock
    assert not lock.exists()


def test_lock_released_on_exception(tmp_path: Path) -> None:
    lock = tmp_path / ".sync.lock"

    with pytest.raises(ValueError):
        with LockDir(lock):
            raise ValueError("boom")

    assert not lock.exists()


def test_stale_lock_from_other_process_blocks(tmp_path: Path) -> None:
    lock = tmp_path / ".sync.lock"
    lock.mkdir()

    with pytest.raises(LockHeldError):
        with LockDir(lock):
            pass

    assert lock.is_dir()


def test_sigterm_releases_lock_and_restores_handler(tmp_path: Path) -> None:
    lock = tmp_path / ".sync.lock"
    before = signal.getsignal(signal.SIGTERM)

    with pytest.raises(SystemExit) as exc_info:
        with LockDir(lock):
            os.kill(os.getpid(), signal.SIGTERM)

    assert exc_info.value.code == 128 + signal.SIGTERM
    assert not lock.exists()
    assert signal.getsignal(signal.SIGTERM) == before


def test_sigint_releases_lock_as_keyboard_interrupt(tmp_path: Path) -> None:
    lock = tmp_path / ".sync.lock"
    before = signal.getsignal(signal.SIGINT)

    with pytest.raises(KeyboardInterrupt):
        with LockDir(lock):
            os.kill(os.getpid(), signal.SIGINT)

    assert not lock.exists()
    assert signal.getsignal(signal.SIGINT) == before
