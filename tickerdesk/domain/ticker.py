"""Ticker record domain models.

Type-safe views over the JSON documents kept in tickers.json and the
per-domain enrichment files. Documents are stored with camelCase keys;
unknown keys written by other agents are preserved on round-trip.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from tickerdesk.core.clock import utc_iso


_NON_LETTERS = re.compile(r"[^A-Z]")
_HOD_SUFFIX = re.compile(r"\s*\(HOD\)\s*$", re.IGNORECASE)
_SCANNER_SYMBOL = re.compile(r"^[A-Za-z]{1,5}(\s*\(HOD\))?$")

_SUFFIXES = {"K": 1e3, "M": 1e6, "B": 1e9}


class _Document(BaseModel):
    """Base for models persisted as camelCase JSON objects."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @classmethod
    def from_document(cls, data: dict[str, Any]):
        return cls.model_validate(data)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class NewsItem(_Document):
    """A news article as returned by the upstream news API."""

    id: Union[int, str]
    headline: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    added_at: Optional[str] = Field(None, description="First local observation")

    @property
    def sort_key(self) -> str:
        return self.created_at or self.added_at or ""


class ShortsSnapshot(_Document):
    """Latest short-interest row for a ticker."""

    settlement_date: Optional[str] = Field(None, alias="settlementDate")
    short_interest: Optional[float] = Field(None, alias="shortInterest")
    avg_daily_volume: Optional[float] = Field(None, alias="avgDailyVolume")
    short_float: Optional[float] = Field(None, alias="shortFloat", description="Percent")
    short_ratio: Optional[float] = Field(None, alias="shortRatio", description="Days to cover")

    def has_data(self) -> bool:
        return any(
            v is not None
            for v in (
                self.settlement_date,
                self.short_interest,
                self.avg_daily_volume,
                self.short_float,
                self.short_ratio,
            )
        )


class Filing(_Document):
    """A regulatory filing row."""

    form_type: str = Field(..., alias="formType")
    description: str = ""
    date: Optional[str] = None


class FinancialsSnapshot(_Document):
    """Latest financial-statement figures."""

    net_income: float = Field(0, alias="netIncome")
    net_cash_flow: float = Field(0, alias="netCashFlow")
    cash: float = 0


class TickerRecord(_Document):
    """One entry of tickers.json."""

    ticker: str
    news: list[NewsItem] = Field(default_factory=list)
    is_active: bool = Field(True, alias="isActive")
    shorts: Optional[ShortsSnapshot] = None
    filings: Optional[list[Filing]] = None
    financials: Optional[FinancialsSnapshot] = None
    float_shares: Optional[str] = Field(None, alias="float")
    price: Optional[float] = None
    hod: Optional[bool] = None
    first_seen: Optional[str] = Field(None, alias="firstSeen")
    last_seen: Optional[str] = Field(None, alias="lastSeen")


class WatchlistEntry(_Document):
    ticker: str


# =============================================================================
# Symbol and number parsing
# =============================================================================


def sanitize_ticker(raw: str) -> str:
    """
    Uppercase and strip everything but A-Z.

    Raises:
        ValueError: if fewer than two letters remain
    """
    sanitized = _NON_LETTERS.sub("", (raw or "").upper())
    if len(sanitized) < 2:
        raise ValueError(f"Invalid ticker symbol: {raw!r}")
    return sanitized


def parse_scanner_symbol(raw: str) -> tuple[str, bool] | None:
    """Split a scanner symbol like ``"ABCD (HOD)"`` into (symbol, is_hod)."""
    raw = (raw or "").strip()
    if not _SCANNER_SYMBOL.match(raw):
        return None
    is_hod = bool(_HOD_SUFFIX.search(raw))
    return _HOD_SUFFIX.sub("", raw).strip().upper(), is_hod


def parse_suffixed_number(text: Any) -> Optional[float]:
    """
    Parse display numbers such as ``"6.33M"``, ``"512K"``, ``"12.5%"``, ``"$3.10"``.

    ``"-"``, ``"N/A"`` and empty values parse as None.
    """
    if text is None:
        return None
    if isinstance(text, (int, float)):
        return float(text)
    value = str(text).strip().replace(",", "").replace("$", "").rstrip("%").strip()
    if value in ("", "-", "N/A"):
        return None
    multiplier = 1.0
    suffix = value[-1].upper()
    if suffix in _SUFFIXES:
        multiplier = _SUFFIXES[suffix]
        value = value[:-1]
    try:
        return float(value) * multiplier
    except ValueError:
        return None


def float_in_millions(text: Any) -> Optional[float]:
    """Share float in millions; bare numbers are assumed to be millions already."""
    value = str(text or "").strip()
    if value and value[-1].upper() in _SUFFIXES:
        parsed = parse_suffixed_number(value)
        return None if parsed is None else parsed / 1e6
    return parse_suffixed_number(value)


# =============================================================================
# Record helpers
# =============================================================================


def new_ticker_record(symbol: str) -> TickerRecord:
    """Baseline record for a freshly added ticker."""
    return TickerRecord(ticker=symbol, news=[], is_active=True)


def filter_news(
    items: Iterable[dict[str, Any]],
    unwanted_keywords: Iterable[str],
) -> list[dict[str, Any]]:
    """Drop items whose headline contains any unwanted keyword (case-insensitive)."""
    keywords = [k.lower() for k in unwanted_keywords if k]
    kept = []
    for item in items:
        headline = (item.get("headline") or "").lower()
        if headline and any(k in headline for k in keywords):
            continue
        kept.append(item)
    return kept


def merge_news(
    existing: Iterable[Union[NewsItem, dict[str, Any]]],
    incoming: Iterable[Union[NewsItem, dict[str, Any]]],
    now: datetime | None = None,
) -> tuple[list[NewsItem], list[NewsItem]]:
    """
    Merge incoming news into an existing sequence, deduplicated by id.

    The result is ordered newest-first by ``created_at`` (falling back to
    ``added_at``). New items are stamped with ``added_at``.

    Returns:
        (merged, added)
    """
    current = [NewsItem.model_validate(i) if isinstance(i, dict) else i for i in existing]
    seen = {str(item.id) for item in current}
    stamp = utc_iso(now)

    added: list[NewsItem] = []
    for raw in incoming:
        item = NewsItem.model_validate(raw) if isinstance(raw, dict) else raw.model_copy()
        key = str(item.id)
        if key in seen:
            continue
        seen.add(key)
        if not item.added_at:
            item.added_at = stamp
        added.append(item)

    if not added:
        return current, []

    merged = sorted(added + current, key=lambda i: i.sort_key, reverse=True)
    return merged, added


def ingest_news(
    record: TickerRecord,
    incoming: Iterable[Union[NewsItem, dict[str, Any]]],
    now: datetime | None = None,
) -> list[NewsItem]:
    """Add unseen news to a ticker record; activates the record when anything was added."""
    merged, added = merge_news(record.news, incoming, now)
    if added:
        record.news = merged
        record.is_active = True
    return added
