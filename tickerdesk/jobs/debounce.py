"""Trailing-edge debounce for bursts of change notifications."""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable

from tickerdesk.core.logging import get_logger


logger = get_logger("jobs.debounce")


class Debouncer:
    """
    Runs `action` once a burst of `trigger()` calls has been quiet for `delay`.

    Every trigger restarts the timer, so N triggers inside the window
    produce exactly one call. An optional random `jitter` (0..jitter
    seconds) is added per timer start.

    Usage:
        debouncer = Debouncer(self.run_pass, delay=0.5)
        watcher.subscribe(debouncer.trigger)
    """

    def __init__(
        self,
        action: Callable[[], Awaitable[object]],
        delay: float,
        jitter: float = 0.0,
        name: str = "debounce",
    ):
        if delay < 0 or jitter < 0:
            raise ValueError("delay and jitter must be >= 0")
        self.action = action
        self.delay = delay
        self.jitter = jitter
        self.name = name
        self.fire_count = 0
        self._timer: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """True while a timer is counting down."""
        return self._timer is not None and not self._timer.done()

    def trigger(self) -> None:
        """(Re)start the quiet-period timer. Must be called from the event loop."""
        if self.pending:
            self._timer.cancel()
        wait = self.delay + (random.uniform(0, self.jitter) if self.jitter else 0.0)
        self._timer = asyncio.create_task(self._fire_after(wait))
        self._tasks.add(self._timer)
        self._timer.add_done_callback(self._tasks.discard)

    async def _fire_after(self, wait: float) -> None:
        await asyncio.sleep(wait)
        # Past this point a new trigger() must not cancel the running action
        self._timer = None
        self.fire_count += 1
        logger.debug(f"[{self.name}] Quiet for {wait:.2f}s, firing")
        await self.action()

    def cancel(self) -> None:
        if self.pending:
            self._timer.cancel()
        self._timer = None

    async def drain(self) -> None:
        """Wait for the pending timer and any action it started."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
