"""Tests for the per-day processed ticker set."""

from __future__ import annotations

from datetime import datetime

import pytest

from tickerdesk.core.clock import local_midnight
from tickerdesk.store import ProcessedSet, load_document


class TestProcessedSet:
    """Tests for ProcessedSet."""

    @pytest.mark.asyncio
    async def test_add_persists_with_stamp(self, store, tmp_path, clock):
        path = tmp_path / "shorts-processed_tickers.json"
        processed = ProcessedSet(path, store, clock)

        await processed.add("MSFT", "AAPL")

        doc = load_document(path)
        assert doc["tickers"] == ["AAPL", "MSFT"]
        assert doc["wipedAt"] == local_midnight(clock()).isoformat()
        assert "AAPL" in processed

    @pytest.mark.asyncio
    async def test_load_same_day(self, store, tmp_path, clock):
        path = tmp_path / "shorts-processed_tickers.json"
        await ProcessedSet(path, store, clock).add("AAPL")

        reloaded = ProcessedSet(path, store, clock)
        assert await reloaded.load() == {"AAPL"}
        assert reloaded.pending(["AAPL", "TSLA"]) == ["TSLA"]

    @pytest.mark.asyncio
    async def test_load_discards_previous_day(self, store, tmp_path, clock):
        path = tmp_path / "shorts-processed_tickers.json"
        await ProcessedSet(path, store, clock).add("AAPL")

        clock.set(datetime(2024, 5, 11, 8, 0))
        reloaded = ProcessedSet(path, store, clock)
        assert await reloaded.load() == set()

    @pytest.mark.asyncio
    async def test_wiped_file_loads_empty(self, store, tmp_path, clock):
        """The daily reset writes {} which carries no stamp."""
        path = tmp_path / "shorts-processed_tickers.json"
        path.write_text("{}")
        processed = ProcessedSet(path, store, clock)
        assert await processed.load() == set()

    @pytest.mark.asyncio
    async def test_in_memory_rollover(self, store, tmp_path, clock):
        path = tmp_path / "shorts-processed_tickers.json"
        processed = ProcessedSet(path, store, clock)
        await processed.add("AAPL")

        clock.set(datetime(2024, 5, 11, 0, 1))
        assert "AAPL" not in processed
        assert len(processed) == 0

    @pytest.mark.asyncio
    async def test_unchanged_add_skips_write(self, store, tmp_path, clock):
        path = tmp_path / "shorts-processed_tickers.json"
        processed = ProcessedSet(path, store, clock)
        await processed.add("AAPL")
        path.unlink()

        await processed.add("AAPL")
        assert not path.exists()
