"""Process-wide run lock — non-blocking ``flock`` on a lock file."""

from __future__ import annotations

import fcntl
import os
from pathlib import Path
from types import TracebackType

import structlog

from pvehealth.core.exceptions import LockHeldError

logger = structlog.get_logger(__name__)


class RunLock:
    """Exclusive, non-blocking lock serializing agent invocations.

    Usage::

        with RunLock(path):
            ...

    Raises ``LockHeldError`` on entry if another process holds the lock.
    The kernel drops the lock if the holder dies, so no stale-lock cleanup
    is needed.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._fd: int | None = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            os.close(fd)
            raise LockHeldError(f"run lock held: {self._path}") from exc
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd
        logger.debug("run_lock_acquired", path=str(self._path))

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug("run_lock_released", path=str(self._path))

    def __enter__(self) -> RunLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
