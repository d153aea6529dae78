"""Reusable services: pacing, retries, alerts, rendering and upstream sources."""

from .alerts import AlertPlayer
from .retry_pool import RetryPool
from .throttle import AdaptiveThrottle, DecreaseMode, ThrottleConfig

__all__ = [
    "AdaptiveThrottle",
    "AlertPlayer",
    "DecreaseMode",
    "RetryPool",
    "ThrottleConfig",
]
