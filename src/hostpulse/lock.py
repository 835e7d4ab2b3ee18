from __future__ import annotations

import fcntl
import os
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .errors import LockContention


@dataclass(frozen=True)
class HeldLock:
    path: Path
    fd: int


@contextmanager
def acquire_exclusive(path: Path) -> Iterator[HeldLock]:
    """
    Take the host-wide advisory lock at ``path`` or fail at once.

    Uses ``flock`` on a fresh open file description, so a second holder in the
    same process conflicts just like one in another process. The lock is
    released when the descriptor closes, including after a crash.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(path), os.O_RDWR | os.O_CREAT, 0o644)
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            raise LockContention(f"{path} is held by another invocation") from None
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode("ascii"))
        yield HeldLock(path=path, fd=fd)
    finally:
        os.close(fd)
