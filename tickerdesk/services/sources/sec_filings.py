"""SEC EDGAR company filings browser."""

from __future__ import annotations

import httpx
from bs4 import BeautifulSoup

from tickerdesk.core.config import settings
from tickerdesk.domain import Filing

from .base import HttpSource


def parse_filings(html: str, form_prefix: str = "S-3") -> list[Filing]:
    """Rows of the EDGAR filings table whose form type starts with `form_prefix`."""
    soup = BeautifulSoup(html, "html.parser")
    filings = []
    for row in soup.select(".tableFile2 tr"):
        cells = [td.get_text(" ", strip=True) for td in row.find_all("td")]
        if len(cells) < 4 or not cells[0].startswith(form_prefix):
            continue
        filings.append(Filing(form_type=cells[0], description=cells[2], date=cells[3]))
    return filings


class SecFilingsSource(HttpSource):
    name = "sec-filings"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        form_prefix: str | None = None,
    ):
        super().__init__(client)
        self.base_url = base_url or settings.sec_browse_url
        self.form_prefix = form_prefix or settings.filings_form_prefix

    async def fetch(self, symbol: str) -> list[Filing]:
        response = await self._get(
            self.base_url,
            params={"action": "getcompany", "ticker": symbol.upper()},
            symbol=symbol,
        )
        return parse_filings(response.text, self.form_prefix)
