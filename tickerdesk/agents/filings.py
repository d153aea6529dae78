"""Shelf-registration filings agent."""

from __future__ import annotations

from typing import Any, Optional

from tickerdesk.core.config import Settings
from tickerdesk.domain import Filing
from tickerdesk.services import AdaptiveThrottle, DecreaseMode, ThrottleConfig
from tickerdesk.services.sources import SecFilingsSource
from tickerdesk.store import RecordStore
from tickerdesk.store.paths import FILINGS_FILE

from .base import EnrichmentAgent


# EDGAR allows roughly 10 requests per second per client
FILINGS_THROTTLE = ThrottleConfig(
    name="filings",
    initial_delay=1.0,
    min_delay=0.5,
    max_delay=60.0,
    backoff_multiplier=2.0,
    mode=DecreaseMode.MULTIPLICATIVE,
    decrease_factor=0.9,
)


class FilingsAgent(EnrichmentAgent[list[Filing]]):
    """Records S-3 family filings for every ticker once a day."""

    name = "filings"
    output_file = FILINGS_FILE

    def __init__(
        self,
        source: SecFilingsSource | None = None,
        throttle: AdaptiveThrottle | None = None,
        store: RecordStore | None = None,
        config: Settings | None = None,
        **kwargs,
    ):
        super().__init__(
            source or SecFilingsSource(),
            throttle or AdaptiveThrottle(FILINGS_THROTTLE),
            store=store,
            config=config,
            **kwargs,
        )

    def transform(self, symbol: str, payload: list[Filing]) -> Optional[list[dict[str, Any]]]:
        # An empty list is stored too: "checked, nothing found" differs from "not checked"
        return [filing.to_document() for filing in payload]

    async def notify(self, symbol: str, value: list[dict[str, Any]]) -> None:
        if value:
            latest = value[0]
            self.logger.info(f"{symbol}: {len(value)} filing(s), latest {latest['formType']} {latest.get('date', '')}")
        else:
            self.logger.debug(f"{symbol}: no matching filings")
