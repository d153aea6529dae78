"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from tickerdesk.core.config import Settings
from tickerdesk.store import LockManager, RecordStore


@pytest.fixture
def config(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway data directory."""
    return Settings(
        data_dir=tmp_path,
        alerts_enabled=False,
        debounce_seconds=0.05,
        watch_poll_interval=0.02,
        lock_timeout=2.0,
        lock_max_hold=5.0,
        lock_retry_min=0.001,
        lock_retry_max=0.005,
        apca_api_key_id="test-key",
        apca_api_secret_key="test-secret",
        poly_api_key="test-poly",
        unwanted_keywords=["Why Is", "Here's Why"],
    )


@pytest.fixture
def locks(config: Settings) -> LockManager:
    return LockManager(
        timeout=config.lock_timeout,
        max_hold=config.lock_max_hold,
        retry_min=config.lock_retry_min,
        retry_max=config.lock_retry_max,
    )


@pytest.fixture
def store(locks: LockManager) -> RecordStore:
    return RecordStore(locks=locks, cross_process=True)


@pytest.fixture
def write_json(config: Settings) -> Callable[[str, Any], Path]:
    """Seed a file in the data directory."""

    def _write(name: str, data: Any) -> Path:
        path = config.path(name)
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def read_json(config: Settings) -> Callable[[str], Any]:
    def _read(name: str) -> Any:
        return json.loads(config.path(name).read_text(encoding="utf-8"))

    return _read


class FixedClock:
    """Settable wall clock returning aware local datetimes."""

    def __init__(self, moment: datetime):
        self.moment = moment.astimezone()

    def __call__(self) -> datetime:
        return self.moment

    def set(self, moment: datetime) -> None:
        self.moment = moment.astimezone()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 5, 10, 9, 30))


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Factory for AsyncClients whose requests are answered by a handler."""

    def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _client
