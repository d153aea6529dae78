"""Finviz short-interest page scraper."""

from __future__ import annotations

import httpx
from bs4 import BeautifulSoup

from tickerdesk.core.config import settings
from tickerdesk.domain import ShortsSnapshot, parse_suffixed_number

from .base import HttpSource


def parse_short_interest(html: str) -> ShortsSnapshot | None:
    """
    Parse the most recent row of the short-interest table.

    Columns: settlement date, short interest, average daily volume,
    short float, short ratio. Returns None when the table is absent.
    """
    soup = BeautifulSoup(html, "html.parser")
    table = soup.select_one("table.financials-table")
    if table is None:
        return None
    row = table.select_one("tbody tr") or table.find("tr")
    if row is None:
        return None
    cells = [td.get_text(strip=True) for td in row.find_all("td")]
    if not cells:
        return None
    cells += [""] * (5 - len(cells))

    settlement = cells[0] if cells[0] not in ("", "-", "N/A") else None
    return ShortsSnapshot(
        settlement_date=settlement,
        short_interest=parse_suffixed_number(cells[1]),
        avg_daily_volume=parse_suffixed_number(cells[2]),
        short_float=parse_suffixed_number(cells[3]),
        short_ratio=parse_suffixed_number(cells[4]),
    )


class FinvizShortsSource(HttpSource):
    name = "finviz-shorts"

    def __init__(self, client: httpx.AsyncClient | None = None, base_url: str | None = None):
        super().__init__(client)
        self.base_url = base_url or settings.finviz_quote_url

    async def fetch(self, symbol: str) -> ShortsSnapshot | None:
        response = await self._get(
            self.base_url,
            params={"t": symbol.upper(), "ta": 1, "p": "d", "ty": "si", "b": 1},
            symbol=symbol,
        )
        return parse_short_interest(response.text)
