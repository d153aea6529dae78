"""Merges the per-domain enrichment files into tickers.json."""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError

from tickerdesk.domain import (
    Filing,
    FinancialsSnapshot,
    ShortsSnapshot,
    TickerRecord,
    ingest_news,
)
from tickerdesk.store import Document
from tickerdesk.store.paths import ENRICHMENT_FILES

from .base import Agent


class MergerAgent(Agent):
    """
    Copies news, shorts, filings and financials into the matching ticker records.

    Only tickers already present in tickers.json are updated. New news items
    or changed filings mark a ticker active; shorts and financials refresh
    silently.
    """

    name = "merger"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.merge_count = 0

    def enrichment_paths(self) -> dict[str, Path]:
        return {field: self.config.path(name) for field, name in ENRICHMENT_FILES.items()}

    def watched_files(self) -> list[Path]:
        return list(self.enrichment_paths().values())

    async def fetch(self) -> dict[str, Document]:
        """Snapshot every enrichment file."""
        return {
            field: await self.store.read(path)
            for field, path in self.enrichment_paths().items()
        }

    def merge_record(self, record: TickerRecord, enrichment: dict[str, Document]) -> bool:
        """Apply enrichment to one record in place; returns True if it changed."""
        symbol = record.ticker
        changed = False
        now = self.clock()

        news = enrichment.get("news", {}).get(symbol)
        if isinstance(news, list) and news:
            if ingest_news(record, news, now):
                changed = True

        shorts = enrichment.get("shorts", {}).get(symbol)
        if isinstance(shorts, dict):
            current = record.shorts.to_document() if record.shorts else None
            if shorts != current:
                record.shorts = ShortsSnapshot.model_validate(shorts)
                changed = True

        filings = enrichment.get("filings", {}).get(symbol)
        if isinstance(filings, list):
            current = [f.to_document() for f in record.filings] if record.filings is not None else None
            if filings != current:
                record.filings = [Filing.model_validate(f) for f in filings]
                if filings:
                    record.is_active = True
                changed = True

        financials = enrichment.get("financials", {}).get(symbol)
        if isinstance(financials, dict):
            current = record.financials.to_document() if record.financials else None
            if financials != current:
                record.financials = FinancialsSnapshot.model_validate(financials)
                changed = True

        return changed

    async def run_pass(self) -> None:
        enrichment = await self.fetch()
        merged: list[str] = []

        def mutate(document: Document) -> Document:
            partial = {}
            for symbol, raw in document.items():
                if not isinstance(raw, dict):
                    continue
                try:
                    record = TickerRecord.from_document({**raw, "ticker": raw.get("ticker", symbol)})
                    changed = self.merge_record(record, enrichment)
                except ValidationError as e:
                    self.logger.warning(f"Skipping malformed data for {symbol}: {e.error_count()} error(s)")
                    continue
                if changed:
                    partial[symbol] = record.to_document()
                    merged.append(symbol)
            return partial

        await self.store.update(self.tickers_path, mutate)
        if merged:
            self.merge_count += 1
            self.logger.info(f"Merged enrichment into {len(merged)} ticker(s): {', '.join(merged)}")

