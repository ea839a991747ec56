"""Single-instance guard for scheduled runs.

Overlapping cron invocations would both read and rewrite the state file.
The lock is an advisory ``flock`` held for the whole run; the kernel
drops it if the process dies.
"""

import fcntl
import logging
import os
from pathlib import Path

from bookwatch.errors import LockHeldError

logger = logging.getLogger(__name__)


class RunLock:
    """Context manager holding an exclusive lock on ``path``."""

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)
        self._fd: int | None = None

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            os.close(fd)
            raise LockHeldError(f"another run holds {self.path}") from exc

        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd
        logger.debug("Acquired run lock %s", self.path)

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()
