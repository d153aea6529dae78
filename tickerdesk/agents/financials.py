"""Financial statements agent."""

from __future__ import annotations

from tickerdesk.core.config import Settings
from tickerdesk.domain import FinancialsSnapshot
from tickerdesk.services import AdaptiveThrottle, DecreaseMode, ThrottleConfig
from tickerdesk.services.sources import PolygonFinancialsSource
from tickerdesk.store import RecordStore
from tickerdesk.store.paths import FINANCIALS_FILE

from .base import EnrichmentAgent


# Free API tier: about five calls per minute
FINANCIALS_THROTTLE = ThrottleConfig(
    name="financials",
    initial_delay=10.0,
    min_delay=10.0,
    max_delay=120.0,
    backoff_multiplier=1.1,
    mode=DecreaseMode.MULTIPLICATIVE,
    decrease_factor=0.999,
)


class FinancialsAgent(EnrichmentAgent[FinancialsSnapshot]):
    """
    Stores net income, net cash flow and cash for every ticker once a day.

    A ticker without any reported financials is marked processed and not
    retried.
    """

    name = "financials"
    output_file = FINANCIALS_FILE

    def __init__(
        self,
        source: PolygonFinancialsSource | None = None,
        throttle: AdaptiveThrottle | None = None,
        store: RecordStore | None = None,
        config: Settings | None = None,
        **kwargs,
    ):
        super().__init__(
            source or PolygonFinancialsSource(),
            throttle or AdaptiveThrottle(FINANCIALS_THROTTLE),
            store=store,
            config=config,
            **kwargs,
        )

    async def setup(self) -> None:
        self.config.require("poly_api_key")
        await super().setup()

    def transform(self, symbol: str, payload: FinancialsSnapshot) -> dict:
        return payload.to_document()
