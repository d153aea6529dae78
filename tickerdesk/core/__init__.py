"""Core infrastructure: settings, logging, exceptions, clock."""

from .config import Settings, get_settings, settings
from .exceptions import (
    DecodeFailure,
    FatalConfig,
    FetchFailure,
    LockTimeout,
    RateLimited,
    TickerDeskError,
)
from .logging import get_logger, setup_logging

__all__ = [
    "DecodeFailure",
    "FatalConfig",
    "FetchFailure",
    "LockTimeout",
    "RateLimited",
    "Settings",
    "TickerDeskError",
    "get_logger",
    "get_settings",
    "settings",
    "setup_logging",
]
