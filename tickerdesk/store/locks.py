"""Advisory locking for the shared JSON record files.

Two layers guard every read-modify-write cycle:

1. `LockManager` - process-local, keyed by file path. Waiters poll with a
   small randomized backoff, give up with `LockTimeout`, and force-release a
   lock whose holder kept it longer than `max_hold` (the holder is presumed
   hung or crashed).
2. `FileLock` - an exclusive `fcntl.flock` on a sidecar `<file>.lock`, so
   separate agent processes writing the same file are serialized too.

Usage:
    locks = get_lock_manager()

    async with locks.hold(path):
        ...  # critical section
"""

from __future__ import annotations

import asyncio
import errno
import os
import random
import sys
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Union

from tickerdesk.core.config import settings
from tickerdesk.core.exceptions import LockTimeout
from tickerdesk.core.logging import get_logger


logger = get_logger("store.lock")

_fcntl: Optional[Any] = None


def _get_fcntl():
    """Lazy import fcntl (Unix only)."""
    global _fcntl
    if _fcntl is None and sys.platform != "win32":
        import fcntl

        _fcntl = fcntl
    return _fcntl


def lock_key(path: Union[str, Path]) -> str:
    """Normalize a path so aliases of the same file share one lock."""
    return os.path.abspath(os.fspath(path))


@dataclass
class _Hold:
    token: str
    acquired_at: float


class LockManager:
    """
    In-process advisory lock table keyed by file path.

    At most one critical section per path is active at a time within one
    process, unless the holder overstays `max_hold` and is evicted.
    """

    def __init__(
        self,
        timeout: float | None = None,
        max_hold: float | None = None,
        retry_min: float | None = None,
        retry_max: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            timeout: Max seconds to wait for a lock before LockTimeout
            max_hold: Seconds after which a held lock is force-released
            retry_min: Lower bound of the randomized poll interval
            retry_max: Upper bound of the randomized poll interval
            clock: Monotonic time source (injectable for tests)
        """
        self.timeout = settings.lock_timeout if timeout is None else timeout
        self.max_hold = settings.lock_max_hold if max_hold is None else max_hold
        self.retry_min = settings.lock_retry_min if retry_min is None else retry_min
        self.retry_max = settings.lock_retry_max if retry_max is None else retry_max
        self._clock = clock
        self._held: dict[str, _Hold] = {}

    def is_locked(self, path: Union[str, Path]) -> bool:
        return lock_key(path) in self._held

    def held_for(self, path: Union[str, Path]) -> float | None:
        """Seconds the current holder has kept the lock, or None if free."""
        hold = self._held.get(lock_key(path))
        if hold is None:
            return None
        return self._clock() - hold.acquired_at

    async def acquire(self, path: Union[str, Path]) -> str:
        """
        Acquire the lock for `path`.

        Returns a token identifying this hold; pass it back to `release`.

        Raises:
            LockTimeout: if the lock stays busy for longer than `timeout`
        """
        key = lock_key(path)
        start = self._clock()

        while key in self._held:
            hold = self._held[key]

            if self._clock() - hold.acquired_at >= self.max_hold:
                logger.warning(
                    f"Lock on {key} exceeded max duration of {self.max_hold}s. Forcing release."
                )
                self._held.pop(key, None)
                break

            waited = self._clock() - start
            if waited >= self.timeout:
                raise LockTimeout(key, waited)

            await asyncio.sleep(random.uniform(self.retry_min, self.retry_max))

        token = uuid.uuid4().hex
        self._held[key] = _Hold(token=token, acquired_at=self._clock())
        logger.debug(f"Lock acquired: {key}")
        return token

    def release(self, path: Union[str, Path], token: str | None = None) -> bool:
        """
        Release the lock for `path`. Releasing an unheld lock is a no-op.

        When `token` is given, the lock is only released if it still belongs
        to that hold; an evicted holder cannot release its successor's lock.
        """
        key = lock_key(path)
        hold = self._held.get(key)
        if hold is None:
            return False
        if token is not None and hold.token != token:
            logger.warning(f"Lock release skipped (token mismatch, lock was reassigned): {key}")
            return False
        del self._held[key]
        logger.debug(f"Lock released: {key}")
        return True

    @asynccontextmanager
    async def hold(self, path: Union[str, Path]):
        """Context manager around acquire/release."""
        token = await self.acquire(path)
        try:
            yield token
        finally:
            self.release(path, token)


class FileLock:
    """
    Cross-process exclusive lock on a sidecar `<file>.lock`.

    Polls a non-blocking `flock` so the event loop is never blocked. On
    platforms without fcntl the lock is a no-op and only the in-process
    LockManager applies.
    """

    def __init__(
        self,
        path: Union[str, Path],
        retry_min: float | None = None,
        retry_max: float | None = None,
    ):
        target = Path(path)
        self.lock_path = target.with_name(target.name + ".lock")
        self.retry_min = settings.lock_retry_min if retry_min is None else retry_min
        self.retry_max = settings.lock_retry_max if retry_max is None else retry_max
        self._fd: Optional[int] = None

    @property
    def is_locked(self) -> bool:
        return self._fd is not None

    def _try_lock(self) -> bool:
        fcntl = _get_fcntl()
        if fcntl is None:
            return True

        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.lock_path), os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            os.close(fd)
            if e.errno in (errno.EWOULDBLOCK, errno.EAGAIN, errno.EACCES):
                return False
            raise
        self._fd = fd
        return True

    async def acquire(self, timeout: float) -> None:
        """
        Acquire the sidecar lock within `timeout` seconds.

        Raises:
            LockTimeout: if another process keeps the lock for too long
        """
        start = time.monotonic()
        while not self._try_lock():
            waited = time.monotonic() - start
            if waited >= timeout:
                raise LockTimeout(str(self.lock_path), waited)
            await asyncio.sleep(random.uniform(self.retry_min, self.retry_max))
        logger.debug(f"File lock acquired: {self.lock_path}")

    def release(self) -> None:
        if self._fd is None:
            return
        fcntl = _get_fcntl()
        try:
            if fcntl is not None:
                fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
            logger.debug(f"File lock released: {self.lock_path}")


# Process-wide lock table shared by every RecordStore in this process
_lock_manager: LockManager | None = None


def get_lock_manager() -> LockManager:
    """Get or create the process-wide LockManager."""
    global _lock_manager
    if _lock_manager is None:
        _lock_manager = LockManager()
    return _lock_manager
