"""Tests for the in-process lock table and the cross-process file lock."""

from __future__ import annotations

import asyncio

import pytest

from tickerdesk.core.exceptions import LockTimeout
from tickerdesk.store import FileLock, LockManager


class FakeMonotonic:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestLockManager:
    """Tests for LockManager."""

    @pytest.mark.asyncio
    async def test_acquire_and_release(self, tmp_path):
        """A released lock can be acquired again."""
        locks = LockManager(timeout=1, max_hold=5, retry_min=0.001, retry_max=0.002)
        path = tmp_path / "tickers.json"

        token = await locks.acquire(path)
        assert locks.is_locked(path)
        assert locks.release(path, token) is True
        assert not locks.is_locked(path)

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self, tmp_path):
        """Releasing an unheld lock is a no-op."""
        locks = LockManager(timeout=1, max_hold=5)
        assert locks.release(tmp_path / "x.json") is False

    @pytest.mark.asyncio
    async def test_aliases_share_one_lock(self, tmp_path, monkeypatch):
        """Relative and absolute paths to the same file map to one lock."""
        monkeypatch.chdir(tmp_path)
        locks = LockManager(timeout=1, max_hold=5)
        await locks.acquire("tickers.json")
        assert locks.is_locked(tmp_path / "tickers.json")

    @pytest.mark.asyncio
    async def test_mutual_exclusion(self, tmp_path):
        """Two concurrent holders never overlap inside the critical section."""
        locks = LockManager(timeout=2, max_hold=10, retry_min=0.001, retry_max=0.003)
        path = tmp_path / "tickers.json"
        inside = 0
        max_inside = 0

        async def worker():
            nonlocal inside, max_inside
            async with locks.hold(path):
                inside += 1
                max_inside = max(max_inside, inside)
                await asyncio.sleep(0.02)
                inside -= 1

        await asyncio.gather(*(worker() for _ in range(5)))
        assert max_inside == 1
        assert not locks.is_locked(path)

    @pytest.mark.asyncio
    async def test_second_acquire_waits_for_release(self, tmp_path):
        """The second acquire only succeeds after the first release."""
        locks = LockManager(timeout=2, max_hold=10, retry_min=0.001, retry_max=0.003)
        path = tmp_path / "tickers.json"
        token = await locks.acquire(path)

        waiter = asyncio.create_task(locks.acquire(path))
        await asyncio.sleep(0.05)
        assert not waiter.done()

        locks.release(path, token)
        second = await asyncio.wait_for(waiter, timeout=1)
        assert second != token

    @pytest.mark.asyncio
    async def test_timeout_raises_lock_timeout(self, tmp_path):
        """A lock that stays busy past the timeout raises LockTimeout."""
        locks = LockManager(timeout=0.05, max_hold=10, retry_min=0.001, retry_max=0.003)
        path = tmp_path / "tickers.json"
        await locks.acquire(path)

        with pytest.raises(LockTimeout) as exc_info:
            await locks.acquire(path)
        assert exc_info.value.error_code == "LOCK_TIMEOUT"
        assert exc_info.value.path.endswith("tickers.json")

    @pytest.mark.asyncio
    async def test_stale_lock_is_force_released(self, tmp_path):
        """A holder exceeding max_hold is evicted and the waiter gets the lock."""
        clock = FakeMonotonic()
        locks = LockManager(timeout=100, max_hold=20, retry_min=0.001, retry_max=0.002, clock=clock)
        path = tmp_path / "tickers.json"
        stale_token = await locks.acquire(path)

        clock.now = 21.0
        new_token = await asyncio.wait_for(locks.acquire(path), timeout=1)

        assert new_token != stale_token
        assert locks.held_for(path) == 0.0

    @pytest.mark.asyncio
    async def test_evicted_holder_cannot_release_successor(self, tmp_path):
        """Release with a stale token leaves the new holder's lock in place."""
        clock = FakeMonotonic()
        locks = LockManager(timeout=100, max_hold=20, retry_min=0.001, retry_max=0.002, clock=clock)
        path = tmp_path / "tickers.json"
        stale_token = await locks.acquire(path)
        clock.now = 25.0
        await locks.acquire(path)

        assert locks.release(path, stale_token) is False
        assert locks.is_locked(path)


class TestFileLock:
    """Tests for the fcntl sidecar lock."""

    @pytest.mark.asyncio
    async def test_sidecar_lock_file(self, tmp_path):
        """The lock lives next to the data file."""
        lock = FileLock(tmp_path / "tickers.json", retry_min=0.001, retry_max=0.002)
        await lock.acquire(timeout=1)
        try:
            assert lock.is_locked
            assert (tmp_path / "tickers.json.lock").exists()
        finally:
            lock.release()
        assert not lock.is_locked

    @pytest.mark.asyncio
    async def test_second_holder_times_out(self, tmp_path):
        """A second descriptor cannot take the lock while the first holds it."""
        first = FileLock(tmp_path / "tickers.json", retry_min=0.001, retry_max=0.002)
        second = FileLock(tmp_path / "tickers.json", retry_min=0.001, retry_max=0.002)
        await first.acquire(timeout=1)
        try:
            with pytest.raises(LockTimeout):
                await second.acquire(timeout=0.05)
        finally:
            first.release()

        await second.acquire(timeout=1)
        second.release()
