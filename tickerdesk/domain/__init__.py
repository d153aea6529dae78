"""Domain models for the shared ticker records.

Usage:
    from tickerdesk.domain import TickerRecord, ingest_news

    record = TickerRecord.from_document(doc["AAPL"])
    added = ingest_news(record, items)
    doc["AAPL"] = record.to_document()
"""

from tickerdesk.domain.ticker import (
    Filing,
    FinancialsSnapshot,
    NewsItem,
    ShortsSnapshot,
    TickerRecord,
    WatchlistEntry,
    filter_news,
    float_in_millions,
    ingest_news,
    merge_news,
    new_ticker_record,
    parse_scanner_symbol,
    parse_suffixed_number,
    sanitize_ticker,
)

__all__ = [
    "Filing",
    "FinancialsSnapshot",
    "NewsItem",
    "ShortsSnapshot",
    "TickerRecord",
    "WatchlistEntry",
    "filter_news",
    "float_in_millions",
    "ingest_news",
    "merge_news",
    "new_ticker_record",
    "parse_scanner_symbol",
    "parse_suffixed_number",
    "sanitize_ticker",
]
