"""Names of the shared files in the data directory."""

from __future__ import annotations

from pathlib import Path

from tickerdesk.core.config import Settings, settings


TICKERS_FILE = "tickers.json"
WATCHLIST_FILE = "watchlist.json"
NEWS_FILE = "news.json"
SHORTS_FILE = "shorts.json"
FILINGS_FILE = "filings.json"
FINANCIALS_FILE = "financials.json"
LAST_WIPE_FILE = "last-wipe.txt"

# Per-domain enrichment maps merged into tickers.json, keyed by record field
ENRICHMENT_FILES = {
    "news": NEWS_FILE,
    "shorts": SHORTS_FILE,
    "filings": FILINGS_FILE,
    "financials": FINANCIALS_FILE,
}

# Agents that keep a per-day processed set
PROCESSED_AGENTS = ("shorts", "filings", "financials")


def processed_file(agent: str) -> str:
    return f"{agent}-processed_tickers.json"


def wiped_files(config: Settings = settings) -> list[Path]:
    """Every store the daily reset replaces with {} (watchlist is kept)."""
    names = [TICKERS_FILE, *ENRICHMENT_FILES.values()]
    names += [processed_file(agent) for agent in PROCESSED_AGENTS]
    return [config.path(name) for name in names]
