"""News agent: continuous round-robin over the ticker pool."""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Any

from tickerdesk.core.config import Settings
from tickerdesk.core.exceptions import FetchFailure, RateLimited, TickerDeskError
from tickerdesk.domain import filter_news, merge_news
from tickerdesk.services import AdaptiveThrottle, AlertPlayer, DecreaseMode, ThrottleConfig
from tickerdesk.services.sources import AlpacaNewsSource
from tickerdesk.store import Document, RecordStore
from tickerdesk.store.paths import NEWS_FILE

from .base import Agent


NEWS_THROTTLE = ThrottleConfig(
    name="news",
    initial_delay=0.01,
    min_delay=0.01,
    max_delay=10.0,
    backoff_multiplier=2.0,
    mode=DecreaseMode.LINEAR,
    step=0.05,
    success_threshold=5,
    min_delay_increment=0.01,
    max_min_delay=2.0,
)


def batched(items: list[str], size: int) -> list[list[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class NewsAgent(Agent):
    """
    Polls the news API for every ticker, one batch of symbols per request.

    New items are filtered by headline keywords, deduplicated by id and
    stored in news.json as ``{symbol: [item, ...]}`` newest first.

    Args:
        test_mode: Query the local test server instead of the live API
    """

    name = "news"

    def __init__(
        self,
        source: AlpacaNewsSource | None = None,
        throttle: AdaptiveThrottle | None = None,
        alerts: AlertPlayer | None = None,
        store: RecordStore | None = None,
        config: Settings | None = None,
        test_mode: bool = False,
        **kwargs,
    ):
        super().__init__(store, config, **kwargs)
        self.test_mode = test_mode
        self.source = source or AlpacaNewsSource(
            base_url=self.config.alpaca_test_news_url if test_mode else None
        )
        self.throttle = throttle or AdaptiveThrottle(NEWS_THROTTLE)
        self.alerts = alerts or AlertPlayer()
        self.pool: list[str] = []
        self.news_added = 0
        self.last_status: dict[str, int | str] = {}

    @property
    def news_path(self) -> Path:
        return self.config.path(NEWS_FILE)

    async def setup(self) -> None:
        if not self.test_mode:
            self.config.require("apca_api_key_id", "apca_api_secret_key")
        await self.refresh_pool()

    async def close(self) -> None:
        await self.source.aclose()

    async def refresh_pool(self) -> list[str]:
        pool = await self.read_symbols()
        if pool != self.pool:
            self.logger.info(f"Ticker pool refreshed: {len(pool)} ticker(s)")
        self.pool = pool
        return pool

    def build_loop(self, interval: float | None = None):
        return super().build_loop(self.config.news_interval if interval is None else interval)

    # -------------------------------------------------------------------------
    # Pipeline stages
    # -------------------------------------------------------------------------

    async def fetch(self, batch: list[str]) -> list[dict[str, Any]]:
        await self.throttle.wait()
        try:
            items = await self.source.fetch(batch, now=self.clock())
        except RateLimited as e:
            self.throttle.record_rate_limited(e.retry_after)
            raise
        except FetchFailure:
            self.throttle.record_failure()
            raise
        except ValueError as e:
            self.throttle.record_failure()
            raise FetchFailure(self.name, ",".join(batch), reason=str(e)) from e
        self.throttle.record_success()
        return items

    def transform(self, batch: list[str], items: list[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
        """Filter unwanted headlines and group the rest by requested symbol."""
        kept = filter_news(items, self.config.unwanted_keywords)
        wanted = set(batch)
        grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for item in kept:
            symbols = item.get("symbols") or []
            if self.config.single_symbol_news_only and len(symbols) != 1:
                continue
            for symbol in symbols:
                if symbol in wanted:
                    grouped[symbol].append(item)
        return dict(grouped)

    async def merge(self, grouped: dict[str, list[dict[str, Any]]]) -> dict[str, int]:
        """Add unseen items to news.json; returns the number added per symbol."""
        added_counts: dict[str, int] = {}
        now = self.clock()

        def mutate(document: Document) -> Document:
            partial = {}
            for symbol, items in grouped.items():
                existing = document.get(symbol)
                merged, added = merge_news(existing if isinstance(existing, list) else [], items, now)
                if added:
                    partial[symbol] = [item.to_document() for item in merged]
                    added_counts[symbol] = len(added)
            return partial

        if grouped:
            await self.store.update(self.news_path, mutate)
        return added_counts

    async def notify(self, added_counts: dict[str, int]) -> None:
        if not added_counts:
            return
        total = sum(added_counts.values())
        self.news_added += total
        summary = ", ".join(f"{s} +{n}" for s, n in added_counts.items())
        self.logger.info(f"New news: {summary}")
        await self.alerts.play(self.config.sound_news)

    async def process_batch(self, batch: list[str]) -> dict[str, int]:
        """
        Fetch, store and announce news for one batch of symbols.

        Raises:
            FetchFailure: on upstream failures, including items that do not
                validate as news
        """
        items = await self.fetch(batch)
        try:
            added = await self.merge(self.transform(batch, items))
        except ValueError as e:
            raise FetchFailure(self.name, ",".join(batch), reason=f"unusable news: {e}") from e
        await self.notify(added)
        return added

    async def run_pass(self) -> None:
        """One sweep over the whole pool."""
        pool = await self.refresh_pool()
        for batch in batched(pool, self.config.news_batch_size):
            try:
                await self.process_batch(batch)
                status: int | str = 200
            except RateLimited as e:
                self.logger.warning(f"Rate limited for {','.join(batch)}")
                status = e.status or 429
            except TickerDeskError as e:
                self.logger.warning(e.message)
                status = e.error_code
            for symbol in batch:
                self.last_status[symbol] = status
