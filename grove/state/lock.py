"""State locking for Grove.

Every mutation of the registry or link graph runs under one exclusive,
bounded-wait advisory lock over the state directory. The OS-level lock is a
``filelock.FileLock``; next to it we keep a small JSON note describing the
current holder so a timed-out caller can say who is in the way.
"""

import json
import logging
import os
import socket
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from filelock import FileLock, Timeout

from grove.errors import LockTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class LockInfo:
    """Information about the current lock holder."""
    pid: int
    timestamp: str
    hostname: Optional[str] = None

    def describe(self) -> str:
        host = f" on {self.hostname}" if self.hostname else ""
        return f"PID {self.pid}{host} since {self.timestamp}"


class StateLock:
    """Exclusive advisory lock with a bounded wait."""

    def __init__(self, lock_file: Path, timeout: float = 10.0):
        """
        Args:
            lock_file: Path of the OS lock file
            timeout: Seconds to wait before giving up with LockTimeoutError
        """
        self.lock_file = Path(lock_file)
        self.info_file = self.lock_file.with_name(self.lock_file.name + ".info")
        self.timeout = timeout
        self._lock = FileLock(str(self.lock_file), timeout=timeout)

    @property
    def is_held(self) -> bool:
        """True if this process currently holds the lock."""
        return self._lock.is_locked

    @contextmanager
    def hold(self) -> Iterator[None]:
        """Acquire for the duration of the block (reentrant per process).

        Raises:
            LockTimeoutError: if the lock is not obtained within ``timeout``.
        """
        first = not self._lock.is_locked
        try:
            self._lock.acquire()
        except Timeout as e:
            holder = self.get_lock_info()
            raise LockTimeoutError(
                self.lock_file, self.timeout, holder.describe() if holder else None
            ) from e

        try:
            if first:
                logger.debug("Acquired state lock %s", self.lock_file)
                self._write_info()
            yield
        finally:
            if self._lock.lock_counter == 1:
                self._clear_info()
            self._lock.release()
            if not self._lock.is_locked:
                logger.debug("Released state lock %s", self.lock_file)

    def get_lock_info(self) -> Optional[LockInfo]:
        """Read the holder note, if any."""
        try:
            with open(self.info_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return LockInfo(**data)
        except (OSError, ValueError, TypeError):
            return None

    def _write_info(self) -> None:
        info = LockInfo(
            pid=os.getpid(),
            timestamp=datetime.now().isoformat(),
            hostname=self._get_hostname(),
        )
        try:
            with open(self.info_file, 'w', encoding='utf-8') as f:
                json.dump(asdict(info), f, indent=2)
        except OSError as e:
            # The note is advisory; the OS lock is what excludes writers.
            logger.debug("Could not write lock note %s: %s", self.info_file, e)

    def _clear_info(self) -> None:
        try:
            self.info_file.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug("Could not remove lock note %s: %s", self.info_file, e)

    def _get_hostname(self) -> Optional[str]:
        try:
            return socket.gethostname()
        except OSError:
            return None
