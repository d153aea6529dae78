"""Upstream data sources (HTTP APIs and scraped pages)."""

from .alpaca_news import AlpacaNewsSource
from .base import HttpSource
from .finviz_shorts import FinvizShortsSource, parse_short_interest
from .momo_scanner import MomoScannerSource, ScannerRow, parse_scanner_rows
from .polygon_financials import PolygonFinancialsSource, parse_financials
from .sec_filings import SecFilingsSource, parse_filings

__all__ = [
    "AlpacaNewsSource",
    "FinvizShortsSource",
    "HttpSource",
    "MomoScannerSource",
    "PolygonFinancialsSource",
    "ScannerRow",
    "SecFilingsSource",
    "parse_filings",
    "parse_financials",
    "parse_scanner_rows",
    "parse_short_interest",
]
