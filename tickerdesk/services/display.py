"""Terminal rendering of the ticker board."""

from __future__ import annotations

from typing import Any, Iterable

from colorama import Fore, Style, init
from pydantic import ValidationError

from tickerdesk.core.logging import get_logger
from tickerdesk.domain import TickerRecord


logger = get_logger("services.display")


init(autoreset=True)

HEADER = f"{'TICKER':<8}{'NEWS':>5}  {'SHORT%':>7}  {'S-3':>4}  {'CASH':>10}  HEADLINE"


def _fmt_money(value: float | None) -> str:
    if value is None:
        return "-"
    for unit, size in (("B", 1e9), ("M", 1e6), ("K", 1e3)):
        if abs(value) >= size:
            return f"{value / size:.1f}{unit}"
    return f"{value:.0f}"


def sort_records(records: Iterable[TickerRecord], watchlist: set[str]) -> list[TickerRecord]:
    """Watchlist first, then active tickers, then the rest; alphabetical within each."""
    return sorted(
        records,
        key=lambda r: (r.ticker not in watchlist, not r.is_active, r.ticker),
    )


def render_row(record: TickerRecord, watched: bool = False, width: int = 60) -> str:
    latest = record.news[0].headline if record.news else ""
    short_float = (
        f"{record.shorts.short_float:.1f}"
        if record.shorts and record.shorts.short_float is not None
        else "-"
    )
    s3 = "yes" if record.filings else "-"
    cash = _fmt_money(record.financials.cash) if record.financials else "-"

    if watched:
        color = Fore.CYAN + Style.BRIGHT
    elif record.is_active:
        color = Fore.GREEN
    else:
        color = Style.DIM
    hod = f"{Fore.MAGENTA}*{Style.RESET_ALL}" if record.hod else " "

    return (
        f"{color}{record.ticker:<7}{Style.RESET_ALL}{hod}"
        f"{len(record.news):>5}  {short_float:>7}  {s3:>4}  {cash:>10}  "
        f"{latest[:width]}"
    )


def render_board(tickers: dict[str, Any], watchlist: dict[str, Any]) -> str:
    """Render tickers.json (and the watchlist highlight) as a text table."""
    records = []
    for key, value in tickers.items():
        if not isinstance(value, dict):
            continue
        try:
            records.append(TickerRecord.from_document({**value, "ticker": key}))
        except ValidationError as e:
            logger.warning(f"Skipping malformed record {key}: {e.error_count()} error(s)")

    watched = set(watchlist)
    lines = [f"{Style.BRIGHT}{HEADER}{Style.RESET_ALL}"]
    lines += [render_row(r, r.ticker in watched) for r in sort_records(records, watched)]
    if not records:
        lines.append(f"{Fore.YELLOW}No tickers yet{Style.RESET_ALL}")
    return "\n".join(lines)
