"""Deferred re-attempts for items whose fetch failed.

Failed symbols are parked in memory and retried by a separate pass, with
exponential backoff between attempts. Items that keep failing are dropped
after `max_attempts`. The pool is process-local and not persisted.

Usage:
    pool = RetryPool(name="shorts", max_attempts=3, base_delay=5.0)

    pool.add("AAPL", error)           # after a failed fetch
    await pool.drain(process_one)     # later, from the retry pass
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from tickerdesk.core.exceptions import RateLimited, TickerDeskError
from tickerdesk.core.logging import get_logger


logger = get_logger("services.retry_pool")


@dataclass
class RetryItem:
    key: str
    attempts: int = 1
    next_attempt_at: float = 0.0
    last_error: str | None = None


@dataclass
class RetryPool:
    """
    In-memory retry list keyed by symbol.

    Args:
        name: Identifier for logging
        max_attempts: Total attempts per item, the original one included
        base_delay: Delay before the first retry in seconds
        max_delay: Ceiling on the delay between attempts
        jitter: Add up to 25% random jitter to each delay
        clock: Monotonic time source
    """

    name: str = "retry"
    max_attempts: int = 3
    base_delay: float = 5.0
    max_delay: float = 300.0
    jitter: bool = True
    clock: Callable[[], float] = time.monotonic

    _items: dict[str, RetryItem] = field(default_factory=dict, init=False)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: str) -> bool:
        return key in self._items

    def keys(self) -> list[str]:
        return list(self._items)

    def _delay_for(self, attempts: int) -> float:
        delay = min(self.base_delay * (2 ** (attempts - 1)), self.max_delay)
        if self.jitter:
            delay = delay * (1 + random.uniform(0, 0.25))
        return delay

    def add(self, key: str, error: Exception | None = None) -> bool:
        """
        Record a failed attempt for `key`.

        Returns:
            True if the item stays queued, False if it hit `max_attempts`
            and was dropped.
        """
        item = self._items.get(key)
        if item is None:
            item = RetryItem(key=key, attempts=0)
        item.attempts += 1
        item.last_error = str(error) if error else None

        if item.attempts >= self.max_attempts:
            self._items.pop(key, None)
            logger.warning(
                f"[{self.name}] Giving up on {key} after {item.attempts} attempts"
                + (f": {item.last_error}" if item.last_error else "")
            )
            return False

        item.next_attempt_at = self.clock() + self._delay_for(item.attempts)
        self._items[key] = item
        logger.debug(f"[{self.name}] Queued {key} for retry (attempt {item.attempts}/{self.max_attempts})")
        return True

    def discard(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()

    def due(self) -> list[str]:
        """Keys whose backoff has elapsed, oldest deadline first."""
        now = self.clock()
        ready = [i for i in self._items.values() if i.next_attempt_at <= now]
        return [i.key for i in sorted(ready, key=lambda i: i.next_attempt_at)]

    async def drain(self, handler: Callable[[str], Awaitable[object]]) -> list[str]:
        """
        Re-attempt every due item once.

        Successes are removed; failures are re-queued with a longer delay or
        dropped when out of attempts. A rate-limit response stops the pass so
        the remaining items wait for the next one.

        Returns:
            Keys that succeeded in this pass.
        """
        succeeded: list[str] = []
        for key in self.due():
            try:
                await handler(key)
            except RateLimited as e:
                self.add(key, e)
                logger.info(f"[{self.name}] Rate limited during retry pass, stopping early")
                break
            except TickerDeskError as e:
                self.add(key, e)
                continue
            self._items.pop(key, None)
            succeeded.append(key)

        if succeeded:
            logger.info(f"[{self.name}] Retried successfully: {', '.join(succeeded)}")
        return succeeded

    def get_stats(self) -> dict[str, object]:
        return {
            "name": self.name,
            "pending": len(self._items),
            "items": {k: i.attempts for k, i in self._items.items()},
        }
