"""Custom exceptions shared by every agent."""

from __future__ import annotations

from typing import Any


class TickerDeskError(Exception):
    """Base exception with a structured, loggable payload."""

    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            **({"details": self.details} if self.details else {}),
        }


class LockTimeout(TickerDeskError):
    """A record store lock could not be acquired in time."""

    error_code = "LOCK_TIMEOUT"
    message = "Could not acquire lock"

    def __init__(self, path: str, waited: float):
        self.path = path
        self.waited = waited
        super().__init__(
            f"Timeout: could not acquire lock for {path} after {waited:.1f}s",
            details={"path": path, "waited": round(waited, 3)},
        )


class FetchFailure(TickerDeskError):
    """Network error, unexpected status or malformed upstream response."""

    error_code = "FETCH_FAILURE"
    message = "Upstream fetch failed"

    def __init__(
        self,
        source: str,
        symbol: str | None = None,
        status: int | None = None,
        reason: str | None = None,
    ):
        self.source = source
        self.symbol = symbol
        self.status = status
        text = f"{source} fetch failed"
        if symbol:
            text += f" for {symbol}"
        if status is not None:
            text += f" (status {status})"
        if reason:
            text += f": {reason}"
        super().__init__(
            text,
            details={"source": source, "symbol": symbol, "status": status},
        )


class RateLimited(FetchFailure):
    """Upstream answered 429 (or an equivalent throttling signal)."""

    error_code = "RATE_LIMITED"

    def __init__(
        self,
        source: str,
        symbol: str | None = None,
        retry_after: float | None = None,
    ):
        self.retry_after = retry_after
        super().__init__(source, symbol, status=429, reason="rate limited")


class DecodeFailure(TickerDeskError):
    """A store file is missing or does not hold a JSON object."""

    error_code = "DECODE_FAILURE"
    message = "Could not decode JSON document"

    def __init__(self, path: str, reason: str | None = None):
        self.path = path
        super().__init__(
            f"Could not decode {path}" + (f": {reason}" if reason else ""),
            details={"path": path},
        )


class FatalConfig(TickerDeskError):
    """Startup configuration is unusable; the process must exit."""

    error_code = "FATAL_CONFIG"
    message = "Invalid configuration"
