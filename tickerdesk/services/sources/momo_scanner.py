"""Momentum scanner table scraper."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from bs4 import BeautifulSoup

from tickerdesk.core.config import settings

from .base import HttpSource


@dataclass(frozen=True)
class ScannerRow:
    """One row of the scanner table, as displayed."""

    symbol: str
    price: str
    change_percent: str
    five_min: str
    float: str
    volume: str
    spread_percent: str
    time: str


def parse_scanner_rows(html: str) -> list[ScannerRow]:
    """Rows of the scanner table; rows with fewer than eight cells are skipped."""
    soup = BeautifulSoup(html, "html.parser")
    rows = []
    for tr in soup.select(".tableFixHead tbody tr"):
        cells = [td.get_text(" ", strip=True) for td in tr.find_all("td")]
        if len(cells) < 8:
            continue
        rows.append(ScannerRow(*cells[:8]))
    return rows


class MomoScannerSource(HttpSource):
    name = "momo-scanner"

    def __init__(self, client: httpx.AsyncClient | None = None, url: str | None = None):
        super().__init__(client)
        self.url = url or settings.momo_scanner_url

    async def fetch(self) -> list[ScannerRow]:
        response = await self._get(self.url)
        return parse_scanner_rows(response.text)
