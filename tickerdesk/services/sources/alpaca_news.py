"""Alpaca market news API."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

import httpx
from pydantic import ValidationError

from tickerdesk.core.config import settings
from tickerdesk.core.exceptions import FetchFailure
from tickerdesk.core.logging import get_logger
from tickerdesk.domain import NewsItem

from .base import HttpSource


logger = get_logger("sources.alpaca_news")


class AlpacaNewsSource(HttpSource):
    """
    Latest news for a batch of symbols.

    Args:
        base_url: News endpoint; the CLI swaps in the local test server with -t
        key_id: APCA-API-KEY-ID
        secret_key: APCA-API-SECRET-KEY
    """

    name = "alpaca-news"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        key_id: str | None = None,
        secret_key: str | None = None,
        lookback_hours: int | None = None,
        limit: int | None = None,
    ):
        super().__init__(client)
        self.base_url = base_url or settings.alpaca_news_url
        self.key_id = settings.apca_api_key_id if key_id is None else key_id
        self.secret_key = settings.apca_api_secret_key if secret_key is None else secret_key
        self.lookback_hours = lookback_hours or settings.news_lookback_hours
        self.limit = limit or settings.news_limit

    def build_params(self, symbols: Sequence[str], now: datetime | None = None) -> dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        start = (now - timedelta(hours=self.lookback_hours)).astimezone(timezone.utc)
        return {
            "symbols": ",".join(symbols),
            "start": start.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "limit": self.limit,
            "sort": "desc",
        }

    async def fetch(self, symbols: Sequence[str], now: datetime | None = None) -> list[dict[str, Any]]:
        """
        Fetch news for up to one batch of symbols.

        Raises:
            RateLimited: on a 429
            FetchFailure: on any other failure or an unexpected body
        """
        if not symbols:
            return []
        data = await self._get_json(
            self.base_url,
            params=self.build_params(symbols, now),
            headers={
                "Accept": "application/json",
                "APCA-API-KEY-ID": self.key_id,
                "APCA-API-SECRET-KEY": self.secret_key,
            },
            symbol=",".join(symbols),
        )
        news = data.get("news") if isinstance(data, dict) else None
        if not isinstance(news, list):
            raise FetchFailure(self.name, ",".join(symbols), reason="response has no news list")

        items = []
        for item in news:
            if not isinstance(item, dict) or "id" not in item:
                continue
            try:
                NewsItem.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Dropping malformed news item {item.get('id')!r}: {e.error_count()} error(s)")
                continue
            items.append(item)
        return items
