"""Per-agent persisted set of tickers already handled today."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterable

from tickerdesk.core.clock import Clock, local_midnight, now_local
from tickerdesk.core.logging import get_logger

from .record_store import RecordStore, get_record_store


logger = get_logger("store.processed")


class ProcessedSet:
    """
    Symbols an agent has finished with since the last daily reset.

    Persisted as ``{"wipedAt": <ISO midnight>, "tickers": [...]}``. A file
    stamped with an earlier day (or wiped to {}) loads as an empty set, so
    the set invalidates itself when the day rolls over, even across restarts.
    """

    def __init__(
        self,
        path: Path,
        store: RecordStore | None = None,
        clock: Clock = now_local,
    ):
        self.path = path
        self.store = store or get_record_store()
        self._clock = clock
        self._tickers: set[str] = set()
        self._day: datetime = local_midnight(clock())

    def __contains__(self, ticker: str) -> bool:
        self._roll_over()
        return ticker in self._tickers

    def __len__(self) -> int:
        self._roll_over()
        return len(self._tickers)

    def _roll_over(self) -> None:
        today = local_midnight(self._clock())
        if today > self._day:
            logger.info(f"New day, forgetting {len(self._tickers)} processed tickers ({self.path.name})")
            self._tickers.clear()
            self._day = today

    async def load(self) -> set[str]:
        """Load the persisted set, discarding it if it belongs to an earlier day."""
        document = await self.store.read(self.path)
        self._day = local_midnight(self._clock())

        stamp = document.get("wipedAt")
        try:
            wiped_at = local_midnight(datetime.fromisoformat(stamp)) if stamp else None
        except (TypeError, ValueError):
            logger.warning(f"Ignoring bad wipedAt {stamp!r} in {self.path.name}")
            wiped_at = None

        if wiped_at is None or wiped_at < self._day:
            self._tickers = set()
        else:
            self._tickers = set(document.get("tickers", []))
        return set(self._tickers)

    async def add(self, *tickers: str) -> None:
        await self.update(tickers)

    async def update(self, tickers: Iterable[str]) -> None:
        self._roll_over()
        before = len(self._tickers)
        self._tickers.update(tickers)
        if len(self._tickers) == before:
            return
        await self.store.write(
            self.path,
            {"wipedAt": self._day.isoformat(), "tickers": sorted(self._tickers)},
        )

    def pending(self, tickers: Iterable[str]) -> list[str]:
        """Tickers from `tickers` not yet processed today, order preserved."""
        self._roll_over()
        return [t for t in tickers if t not in self._tickers]
