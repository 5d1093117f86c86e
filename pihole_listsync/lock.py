"""Advisory process lock so only one run touches the database at a time."""

import fcntl
import logging
import os
from typing import Optional

from pihole_listsync.exceptions import LockError

logger = logging.getLogger(__name__)


class ProcessLock:
    """Non-blocking exclusive ``flock`` on ``path``, usable as a context manager."""

    def __init__(self, path: str):
        if not path:
            raise LockError("Lock file not defined!")
        self.path = path
        self._fd: Optional[int] = None

    @property
    def locked(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        lock_dir = os.path.dirname(self.path)
        try:
            if lock_dir:
                os.makedirs(lock_dir, exist_ok=True)
            fd = os.open(self.path, os.O_CREAT | os.O_RDWR, 0o644)
        except OSError as e:
            raise LockError(f"Unable to access path or lock file: {self.path} ({e})") from e

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            raise LockError("Another process is already running!", held=True) from None
        except OSError as e:
            os.close(fd)
            raise LockError(f"Unable to lock {self.path}: {e}") from e

        self._fd = fd
        logger.debug(f"Acquired process lock through file: {self.path}")

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        try:
            os.unlink(self.path)
        except OSError as e:
            logger.debug(f"Could not remove lock file {self.path}: {e}")

    def __enter__(self) -> "ProcessLock":
        self.acquire()
        return self

    def __exit__(self, *exc) -> None:
        self.release()
