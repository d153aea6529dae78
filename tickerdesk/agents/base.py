"""Agent base classes.

Every agent owns its state (pools, counters, processed sets, throttle) as
instance attributes, so several agents can share one process and each can
be driven directly from tests.

`EnrichmentAgent` implements the per-ticker pipeline

    fetch -> transform -> merge -> notify

used by the shorts, filings and financials agents. Errors are caught at
the stage boundary: a failing ticker is logged and parked in the retry
pool, the pass moves on.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Generic, Optional, TypeVar

from tickerdesk.core.clock import Clock, now_local
from tickerdesk.core.config import Settings, settings
from tickerdesk.core.exceptions import FetchFailure, RateLimited, TickerDeskError
from tickerdesk.core.logging import agent_name_var, get_logger
from tickerdesk.jobs import PollLoop
from tickerdesk.services import AdaptiveThrottle, RetryPool
from tickerdesk.store import ProcessedSet, RecordStore, get_record_store
from tickerdesk.store.paths import TICKERS_FILE, processed_file

T = TypeVar("T")


class Agent:
    """
    A long-lived worker driven by a `PollLoop`.

    Subclasses implement `run_pass` and may override `watched_files`,
    `setup` and `close`.
    """

    name = "agent"
    # Per-agent overrides of the configured debounce (seconds)
    debounce: float | None = None
    debounce_jitter: float | None = None

    def __init__(
        self,
        store: RecordStore | None = None,
        config: Settings | None = None,
        clock: Clock = now_local,
    ):
        self.config = config or settings
        self.store = store or get_record_store()
        self.clock = clock
        self.logger = get_logger(f"agents.{self.name}")

    @property
    def tickers_path(self) -> Path:
        return self.config.path(TICKERS_FILE)

    async def read_symbols(self) -> list[str]:
        """Ticker symbols currently in tickers.json, in file order."""
        document = await self.store.read(self.tickers_path)
        return [symbol for symbol, record in document.items() if isinstance(record, dict)]

    def watched_files(self) -> list[Path]:
        return [self.tickers_path]

    async def setup(self) -> None:
        """Called once before the first pass."""

    async def close(self) -> None:
        """Release network clients and other resources."""

    async def run_pass(self) -> None:
        raise NotImplementedError

    def build_loop(self, interval: float | None = None) -> PollLoop:
        debounce = self.config.debounce_seconds if self.debounce is None else self.debounce
        jitter = (
            self.config.debounce_jitter_seconds
            if self.debounce_jitter is None
            else self.debounce_jitter
        )
        return PollLoop(
            name=self.name,
            process=self.run_pass,
            watch=self.watched_files(),
            debounce=debounce,
            jitter=jitter,
            interval=interval if interval is not None else self.config.enrichment_interval,
            poll_interval=self.config.watch_poll_interval,
        )

    async def run(self) -> None:
        """Run until cancelled."""
        agent_name_var.set(self.name)
        self.logger.info(f"Starting {self.name} agent")
        await self.setup()
        try:
            await self.build_loop().run_forever()
        finally:
            await self.close()
            self.logger.info(f"Stopped {self.name} agent")


class EnrichmentAgent(Agent, Generic[T]):
    """
    Fetches one payload per ticker and stores it in a per-domain file.

    The output file maps symbol -> payload document. Tickers are fetched
    at most once per day (tracked by a `ProcessedSet`); failures are retried
    by the `RetryPool` at the end of each pass.
    """

    output_file = ""

    def __init__(
        self,
        source: Any,
        throttle: AdaptiveThrottle,
        retry_pool: RetryPool | None = None,
        store: RecordStore | None = None,
        config: Settings | None = None,
        clock: Clock = now_local,
    ):
        super().__init__(store, config, clock)
        self.source = source
        self.throttle = throttle
        self.retry_pool = retry_pool or RetryPool(
            name=self.name, max_attempts=self.config.fetch_max_attempts
        )
        self.processed = ProcessedSet(
            self.config.path(processed_file(self.name)), self.store, clock
        )
        self.passes = 0

    @property
    def output_path(self) -> Path:
        return self.config.path(self.output_file)

    async def setup(self) -> None:
        loaded = await self.processed.load()
        self.logger.info(f"{len(loaded)} ticker(s) already processed today")

    async def close(self) -> None:
        await self.source.aclose()

    # -------------------------------------------------------------------------
    # Pipeline stages
    # -------------------------------------------------------------------------

    async def fetch(self, symbol: str) -> Optional[T]:
        return await self.source.fetch(symbol)

    def transform(self, symbol: str, payload: T) -> Optional[Any]:
        """Shape the fetched payload into the stored document (None = nothing to store)."""
        return payload

    async def merge(self, symbol: str, value: Any) -> None:
        await self.store.write(self.output_path, {symbol: value})

    async def notify(self, symbol: str, value: Any) -> None:
        self.logger.info(f"Stored {self.name} data for {symbol}")

    async def process_symbol(self, symbol: str) -> bool:
        """
        Run the pipeline for one ticker.

        Returns:
            True if data was stored, False if the upstream had none.

        Raises:
            RateLimited: from the fetch stage
            FetchFailure: from the fetch stage, or for a malformed payload
            LockTimeout: from the merge stage
        """
        await self.throttle.wait()
        try:
            payload = await self.fetch(symbol)
        except RateLimited as e:
            self.throttle.record_rate_limited(e.retry_after)
            raise
        except FetchFailure:
            self.throttle.record_failure()
            raise
        except ValueError as e:
            # Includes pydantic ValidationError: a malformed upstream body
            self.throttle.record_failure()
            raise FetchFailure(self.name, symbol, reason=str(e)) from e
        self.throttle.record_success()

        try:
            value = self.transform(symbol, payload) if payload is not None else None
        except ValueError as e:
            raise FetchFailure(self.name, symbol, reason=f"unusable payload: {e}") from e
        if value is None:
            self.logger.info(f"No {self.name} data for {symbol}, marking processed")
            await self.processed.add(symbol)
            return False

        await self.merge(symbol, value)
        await self.processed.add(symbol)
        await self.notify(symbol, value)
        return True

    # -------------------------------------------------------------------------
    # Passes
    # -------------------------------------------------------------------------

    async def run_pass(self) -> None:
        """Process every ticker not yet handled today, then drain due retries."""
        self.passes += 1
        symbols = await self.read_symbols()
        pending = [s for s in self.processed.pending(symbols) if s not in self.retry_pool]
        if pending:
            self.logger.info(f"Processing {len(pending)} new ticker(s): {', '.join(pending)}")

        for symbol in pending:
            try:
                await self.process_symbol(symbol)
            except TickerDeskError as e:
                self.logger.warning(f"{symbol}: {e.message}")
                self.retry_pool.add(symbol, e)

        if len(self.retry_pool):
            await self.retry_pool.drain(self.process_symbol)
