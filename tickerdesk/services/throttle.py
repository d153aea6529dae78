"""Adaptive pacing for outbound requests to rate-limited APIs.

Instead of a fixed sleep, each agent keeps a delay that shrinks while the
upstream answers normally and grows multiplicatively on rate-limit
responses. Two decrease modes are supported:

- LINEAR:          delay = max(min_delay, delay - step)
- MULTIPLICATIVE:  delay = max(min_delay, delay * decrease_factor)

Either can be gated behind N consecutive successes to avoid oscillation.

Usage:
    throttle = AdaptiveThrottle(ThrottleConfig(name="alpaca-news", ...))

    await throttle.wait()
    try:
        result = await fetch()
        throttle.record_success()
    except RateLimited:
        throttle.record_rate_limited()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tickerdesk.core.logging import get_logger


logger = get_logger("services.throttle")


class DecreaseMode(Enum):
    """How the delay recovers after successful responses."""

    LINEAR = "linear"
    MULTIPLICATIVE = "multiplicative"


@dataclass(frozen=True)
class ThrottleConfig:
    """
    Per-source throttle constants. All durations are in seconds.

    Args:
        name: Identifier for logging
        initial_delay: Delay before the first request
        min_delay: Floor for the delay
        max_delay: Ceiling for the delay
        backoff_multiplier: Factor applied on a rate-limit response
        mode: LINEAR or MULTIPLICATIVE recovery
        step: Linear decrease per recovery
        decrease_factor: Multiplicative decrease per recovery (< 1)
        success_threshold: Consecutive successes needed per recovery (1 = every success)
        min_delay_increment: Amount the floor itself rises on each rate limit
        max_min_delay: Ceiling for the rising floor
    """

    name: str = "throttle"
    initial_delay: float = 0.5
    min_delay: float = 0.1
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    mode: DecreaseMode = DecreaseMode.LINEAR
    step: float = 0.1
    decrease_factor: float = 0.9
    success_threshold: int = 1
    min_delay_increment: float = 0.0
    max_min_delay: float | None = None

    def __post_init__(self):
        if self.min_delay < 0 or self.max_delay < self.min_delay:
            raise ValueError("Require 0 <= min_delay <= max_delay")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        if not 0 < self.decrease_factor <= 1:
            raise ValueError("decrease_factor must be in (0, 1]")
        if self.step < 0:
            raise ValueError("step must be >= 0")
        if self.success_threshold < 1:
            raise ValueError("success_threshold must be >= 1")


@dataclass
class AdaptiveThrottle:
    """
    Mutable pacing state for one agent. Process-local; never persisted.
    """

    config: ThrottleConfig = field(default_factory=ThrottleConfig)

    delay: float = field(init=False)
    min_delay: float = field(init=False)
    consecutive_successes: int = field(default=0, init=False)
    rate_limited_count: int = field(default=0, init=False)

    def __post_init__(self):
        self.reset()

    @property
    def name(self) -> str:
        return self.config.name

    def reset(self) -> None:
        """Return to the configured initial state."""
        cfg = self.config
        self.min_delay = cfg.min_delay
        self.delay = min(cfg.max_delay, max(cfg.min_delay, cfg.initial_delay))
        self.consecutive_successes = 0
        self.rate_limited_count = 0

    def record_success(self) -> float:
        """Register a successful response; may shrink the delay."""
        cfg = self.config
        self.consecutive_successes += 1
        if self.consecutive_successes < cfg.success_threshold:
            return self.delay

        previous = self.delay
        if cfg.mode is DecreaseMode.LINEAR:
            self.delay = max(self.min_delay, self.delay - cfg.step)
        else:
            self.delay = max(self.min_delay, self.delay * cfg.decrease_factor)
        self.consecutive_successes = 0

        if self.delay != previous:
            logger.debug(f"[{cfg.name}] Throttle delay decreased to {self.delay * 1000:.0f}ms")
        return self.delay

    def record_rate_limited(self, retry_after: float | None = None) -> float:
        """Register a rate-limit response; grows the delay multiplicatively."""
        cfg = self.config
        self.rate_limited_count += 1
        self.consecutive_successes = 0

        if cfg.min_delay_increment > 0:
            ceiling = cfg.max_min_delay if cfg.max_min_delay is not None else cfg.max_delay
            self.min_delay = min(self.min_delay + cfg.min_delay_increment, ceiling, cfg.max_delay)

        target = max(self.delay * cfg.backoff_multiplier, self.min_delay)
        if retry_after is not None:
            target = max(target, retry_after)
        self.delay = min(cfg.max_delay, target)

        logger.warning(
            f"[{cfg.name}] Rate limited, throttle delay increased to {self.delay * 1000:.0f}ms "
            f"(floor {self.min_delay * 1000:.0f}ms)"
        )
        return self.delay

    def record_failure(self) -> float:
        """Non rate-limit failures leave the pacing untouched."""
        return self.delay

    async def wait(self) -> None:
        """Sleep for the current delay."""
        if self.delay > 0:
            await asyncio.sleep(self.delay)

    def get_stats(self) -> dict[str, Any]:
        return {
            "name": self.config.name,
            "delay": self.delay,
            "min_delay": self.min_delay,
            "max_delay": self.config.max_delay,
            "consecutive_successes": self.consecutive_successes,
            "rate_limited_count": self.rate_limited_count,
        }
