"""Momentum scanner agent: discovers tickers and adds them to tickers.json."""

from __future__ import annotations

import asyncio
import random
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from tickerdesk.core.clock import local_midnight, utc_iso
from tickerdesk.core.config import Settings
from tickerdesk.core.exceptions import TickerDeskError
from tickerdesk.core.logging import agent_name_var
from tickerdesk.domain import (
    float_in_millions,
    new_ticker_record,
    parse_scanner_symbol,
    parse_suffixed_number,
)
from tickerdesk.services import AlertPlayer
from tickerdesk.services.sources import MomoScannerSource, ScannerRow
from tickerdesk.store import Document, RecordStore

from .base import Agent


@dataclass
class ScannerHit:
    symbol: str
    price: float
    float_text: str
    hod: bool
    time: str


class ScannerAgent(Agent):
    """
    Scrapes the scanner table on a randomized interval.

    Rows are kept when the symbol looks like a plain ticker (optionally
    flagged HOD), the price and float are within the configured limits and
    the row timestamp has not been seen before today. Symbols appearing at
    least `scanner_min_occurrences` times in one scrape are upserted into
    tickers.json.
    """

    name = "scanner"

    def __init__(
        self,
        source: MomoScannerSource | None = None,
        alerts: AlertPlayer | None = None,
        store: RecordStore | None = None,
        config: Settings | None = None,
        **kwargs,
    ):
        super().__init__(store, config, **kwargs)
        self.source = source or MomoScannerSource()
        self.alerts = alerts or AlertPlayer()
        self.seen_timestamps: set[str] = set()
        self.total_occurrences: Counter[str] = Counter()
        self._day: datetime = local_midnight(self.clock())

    async def close(self) -> None:
        await self.source.aclose()

    def _roll_over(self) -> None:
        today = local_midnight(self.clock())
        if today > self._day:
            self.seen_timestamps.clear()
            self.total_occurrences.clear()
            self._day = today

    # -------------------------------------------------------------------------
    # Pipeline stages
    # -------------------------------------------------------------------------

    async def fetch(self) -> list[ScannerRow]:
        return await self.source.fetch()

    def filter_rows(self, rows: Iterable[ScannerRow]) -> list[ScannerHit]:
        cfg = self.config
        hits = []
        for row in rows:
            # Timestamps are consumed even by rows rejected below
            if row.time in self.seen_timestamps:
                continue
            self.seen_timestamps.add(row.time)

            parsed = parse_scanner_symbol(row.symbol)
            if parsed is None:
                continue
            price = parse_suffixed_number(row.price)
            if price is None or not cfg.scanner_min_price <= price <= cfg.scanner_max_price:
                continue
            float_millions = float_in_millions(row.float)
            if float_millions is None or float_millions > cfg.scanner_max_float_millions:
                continue

            symbol, hod = parsed
            hits.append(ScannerHit(symbol, price, row.float, hod, row.time))
        return hits

    def select(self, hits: list[ScannerHit]) -> dict[str, ScannerHit]:
        """Symbols seen often enough in this scrape, with their most recent row."""
        counts = Counter(hit.symbol for hit in hits)
        self.total_occurrences.update(counts)

        selected: dict[str, ScannerHit] = {}
        for hit in hits:
            if counts[hit.symbol] < self.config.scanner_min_occurrences:
                continue
            previous = selected.get(hit.symbol)
            if previous is None:
                selected[hit.symbol] = hit
            elif hit.hod and not previous.hod:
                selected[hit.symbol] = ScannerHit(
                    previous.symbol, previous.price, previous.float_text, True, previous.time
                )
        return selected

    async def merge(self, selected: dict[str, ScannerHit]) -> tuple[list[str], list[str]]:
        """
        Upsert selected symbols into tickers.json.

        Returns:
            (newly added symbols, symbols that newly reached HOD)
        """
        added: list[str] = []
        new_hod: list[str] = []
        stamp = utc_iso(self.clock())

        def mutate(document: Document) -> Document:
            partial = {}
            for symbol, hit in selected.items():
                existing = document.get(symbol)
                if isinstance(existing, dict):
                    record = dict(existing)
                    if hit.hod and not existing.get("hod"):
                        new_hod.append(symbol)
                else:
                    record = new_ticker_record(symbol).to_document()
                    record["firstSeen"] = stamp
                    added.append(symbol)
                    if hit.hod:
                        new_hod.append(symbol)
                record.update(
                    {
                        "price": hit.price,
                        "float": hit.float_text,
                        "hod": hit.hod,
                        "lastSeen": stamp,
                        "isActive": True,
                    }
                )
                record.setdefault("firstSeen", stamp)
                partial[symbol] = record
            return partial

        if selected:
            await self.store.update(self.tickers_path, mutate)
        return added, new_hod

    async def notify(self, added: list[str], new_hod: list[str]) -> None:
        if added:
            self.logger.info(f"New tickers: {', '.join(added)}")
        if new_hod:
            self.logger.info(f"New high of day: {', '.join(new_hod)}")
            await self.alerts.play(self.config.sound_hod)
        elif added:
            await self.alerts.play(self.config.sound_ticker)

    async def run_pass(self) -> None:
        self._roll_over()
        rows = await self.fetch()
        selected = self.select(self.filter_rows(rows))
        added, new_hod = await self.merge(selected)
        await self.notify(added, new_hod)
        self.logger.debug(f"Scrape: {len(rows)} rows, {len(selected)} selected")

    def next_interval(self) -> float:
        return random.uniform(self.config.scanner_interval_min, self.config.scanner_interval_max)

    async def run(self) -> None:
        """Scrape forever with a random pause between scrapes."""
        agent_name_var.set(self.name)
        self.logger.info(f"Starting {self.name} agent")
        try:
            while True:
                try:
                    await self.run_pass()
                except TickerDeskError as e:
                    self.logger.error(f"Scrape failed: {e.message}")
                wait = self.next_interval()
                self.logger.debug(f"Next scrape in {wait:.0f}s")
                await asyncio.sleep(wait)
        finally:
            await self.close()
