"""Shared HTTP plumbing for upstream sources."""

from __future__ import annotations

from typing import Any

import httpx

from tickerdesk.core.config import settings
from tickerdesk.core.exceptions import FetchFailure, RateLimited
from tickerdesk.core.logging import get_logger


logger = get_logger("sources")


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class HttpSource:
    """
    Base for sources fetched over HTTP with httpx.

    Subclasses call `_get`, which turns transport errors and unexpected
    status codes into `FetchFailure` and 429 responses into `RateLimited`.

    Args:
        client: Shared AsyncClient (tests pass one with a MockTransport)
        timeout: Request timeout when the source creates its own client
    """

    name = "http"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout or settings.http_timeout,
            headers={"User-Agent": settings.user_agent},
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _get(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        symbol: str | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as e:
            raise FetchFailure(self.name, symbol, reason=f"timeout: {e}") from e
        except httpx.HTTPError as e:
            raise FetchFailure(self.name, symbol, reason=str(e)) from e

        if response.status_code == 429:
            raise RateLimited(self.name, symbol, retry_after=_retry_after(response))
        if response.status_code >= 400:
            raise FetchFailure(self.name, symbol, status=response.status_code)

        logger.debug(f"{self.name} {response.status_code} {response.url}")
        return response

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        response = await self._get(url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise FetchFailure(self.name, kwargs.get("symbol"), reason="invalid JSON body") from e
