"""Polygon financial statements API."""

from __future__ import annotations

from typing import Any

import httpx

from tickerdesk.core.config import settings
from tickerdesk.core.exceptions import FetchFailure
from tickerdesk.domain import FinancialsSnapshot

from .base import HttpSource


def _value(section: dict[str, Any] | None, *names: str) -> float:
    for name in names:
        entry = (section or {}).get(name)
        if isinstance(entry, dict) and entry.get("value") is not None:
            return float(entry["value"])
    return 0.0


def parse_financials(payload: dict[str, Any]) -> FinancialsSnapshot | None:
    """
    Extract the figures we keep from the most recent filing, or None if there is none.

    Raises:
        ValueError: if a reported figure is not numeric
    """
    results = payload.get("results") or []
    if not results:
        return None
    try:
        statements = results[0].get("financials") or {}
        return FinancialsSnapshot(
            net_income=_value(statements.get("income_statement"), "net_income_loss"),
            net_cash_flow=_value(statements.get("cash_flow_statement"), "net_cash_flow"),
            cash=_value(statements.get("balance_sheet"), "cash", "assets"),
        )
    except (AttributeError, TypeError) as e:
        raise ValueError(f"unexpected financials layout: {e}") from e


class PolygonFinancialsSource(HttpSource):
    name = "polygon-financials"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
    ):
        super().__init__(client)
        self.base_url = base_url or settings.polygon_financials_url
        self.api_key = settings.poly_api_key if api_key is None else api_key

    async def fetch(self, symbol: str) -> FinancialsSnapshot | None:
        """
        Latest financials for `symbol`.

        Raises:
            RateLimited: on a 429
            FetchFailure: on any other failure or a malformed body
        """
        payload = await self._get_json(
            self.base_url,
            params={"ticker": symbol.upper(), "limit": 1, "apiKey": self.api_key},
            symbol=symbol,
        )
        try:
            return parse_financials(payload if isinstance(payload, dict) else {})
        except ValueError as e:
            raise FetchFailure(self.name, symbol, reason=str(e)) from e
