"""Cross-process lock file for mutating rig operations.

Every CLI invocation is its own process, so the in-process guard alone can't
keep two `rig-manager install` runs apart. The lock file is taken
non-blocking: a second process fails fast instead of queueing.

- POSIX: `fcntl.flock` on the whole file.
- Windows: `msvcrt.locking` on the first byte.

The kernel drops the lock when the holder dies, so a crashed run never leaves
a stale lock behind. The file also records the holder's PID and operation
label so the rejection can say what is running.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import IO

if sys.platform.startswith("win"):
    import msvcrt
else:
    import fcntl

logger = logging.getLogger(__name__)


class ProcessLock:
    def __init__(self, path: Path) -> None:
        self.path = path
        self._file: IO[str] | None = None

    @property
    def held(self) -> bool:
        return self._file is not None

    def acquire(self, label: str) -> bool:
        """Take the lock for `label`. Returns False if another holder has it."""

        if self._file is not None:
            return False
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # "a+" creates the file without truncating the current holder's record.
        handle = open(self.path, "a+", encoding="utf-8")
        try:
            _lock(handle)
        except OSError:
            handle.close()
            return False

        handle.seek(0)
        handle.truncate()
        handle.write(f"{os.getpid()}\n{label}\n")
        handle.flush()
        self._file = handle
        logger.debug("Acquired %s for '%s' (PID %s)", self.path, label, os.getpid())
        return True

    def release(self) -> None:
        if self._file is None:
            return
        handle, self._file = self._file, None
        try:
            _unlock(handle)
        finally:
            handle.close()
        logger.debug("Released %s", self.path)

    def holder(self) -> str | None:
        """Label recorded by the current holder, if it can be read."""

        try:
            lines = self.path.read_text(encoding="utf-8").splitlines()
        except OSError:
            return None
        if len(lines) < 2 or not lines[1].strip():
            return None
        return f"{lines[1].strip()} (PID {lines[0].strip()})"


if sys.platform.startswith("win"):

    def _lock(handle: IO[str]) -> None:
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)

    def _unlock(handle: IO[str]) -> None:
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)

else:

    def _lock(handle: IO[str]) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)

    def _unlock(handle: IO[str]) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
