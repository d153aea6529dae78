"""Short-interest agent."""

from __future__ import annotations

from typing import Any, Optional

from tickerdesk.core.config import Settings
from tickerdesk.domain import ShortsSnapshot
from tickerdesk.services import AdaptiveThrottle, DecreaseMode, ThrottleConfig
from tickerdesk.services.sources import FinvizShortsSource
from tickerdesk.store import RecordStore
from tickerdesk.store.paths import SHORTS_FILE

from .base import EnrichmentAgent


# Scraped pages: start slow, double on 429, recover slowly.
SHORTS_THROTTLE = ThrottleConfig(
    name="shorts",
    initial_delay=2.0,
    min_delay=2.0,
    max_delay=60.0,
    backoff_multiplier=2.0,
    mode=DecreaseMode.MULTIPLICATIVE,
    decrease_factor=0.9,
)


class ShortsAgent(EnrichmentAgent[ShortsSnapshot]):
    """Scrapes the latest short-interest row for every ticker once a day."""

    name = "shorts"
    output_file = SHORTS_FILE
    # Randomized 2-5s quiet period keeps request bursts irregular
    debounce = 2.0
    debounce_jitter = 3.0

    def __init__(
        self,
        source: FinvizShortsSource | None = None,
        throttle: AdaptiveThrottle | None = None,
        store: RecordStore | None = None,
        config: Settings | None = None,
        **kwargs,
    ):
        super().__init__(
            source or FinvizShortsSource(),
            throttle or AdaptiveThrottle(SHORTS_THROTTLE),
            store=store,
            config=config,
            **kwargs,
        )

    def transform(self, symbol: str, payload: ShortsSnapshot) -> Optional[dict[str, Any]]:
        if not payload.has_data():
            return None
        return payload.to_document()

    async def notify(self, symbol: str, value: dict[str, Any]) -> None:
        self.logger.info(
            f"{symbol}: short float {value.get('shortFloat', '-')}%, "
            f"short ratio {value.get('shortRatio', '-')}"
        )
