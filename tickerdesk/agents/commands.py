"""One-shot commands operating on the shared files."""

from __future__ import annotations

from tickerdesk.core.config import Settings, settings
from tickerdesk.core.logging import get_logger
from tickerdesk.domain import WatchlistEntry, new_ticker_record, sanitize_ticker
from tickerdesk.services.display import render_board
from tickerdesk.store import Document, RecordStore, get_record_store
from tickerdesk.store.paths import TICKERS_FILE, WATCHLIST_FILE


logger = get_logger("agents.commands")


class TickerCommands:
    """
    Manual edits of tickers.json and watchlist.json.

    Usage:
        commands = TickerCommands()
        await commands.add("aapl")
    """

    def __init__(self, store: RecordStore | None = None, config: Settings | None = None):
        self.store = store or get_record_store()
        self.config = config or settings

    @property
    def tickers_path(self):
        return self.config.path(TICKERS_FILE)

    @property
    def watchlist_path(self):
        return self.config.path(WATCHLIST_FILE)

    async def add(self, *raw_symbols: str) -> list[str]:
        """
        Add tickers (or reactivate existing ones, keeping their data).

        Raises:
            ValueError: if a symbol is not a valid ticker
        """
        symbols = [sanitize_ticker(raw) for raw in raw_symbols]

        def mutate(document: Document) -> Document:
            partial = {}
            for symbol in symbols:
                existing = document.get(symbol)
                if isinstance(existing, dict):
                    partial[symbol] = {**existing, "isActive": True}
                else:
                    partial[symbol] = new_ticker_record(symbol).to_document()
            return partial

        await self.store.update(self.tickers_path, mutate)
        logger.info(f"Added {', '.join(symbols)}")
        return symbols

    async def clear(self, *raw_symbols: str) -> list[str]:
        """Deactivate the given tickers, or every ticker when none are given."""
        wanted = {sanitize_ticker(raw) for raw in raw_symbols}
        cleared: list[str] = []

        def mutate(document: Document) -> Document:
            partial = {}
            for symbol, record in document.items():
                if wanted and symbol not in wanted:
                    continue
                if isinstance(record, dict) and record.get("isActive", True):
                    partial[symbol] = {**record, "isActive": False}
            cleared.extend(partial)
            return partial

        await self.store.update(self.tickers_path, mutate)
        missing = wanted.difference(cleared)
        if missing:
            logger.debug(f"Not active or unknown: {', '.join(sorted(missing))}")
        logger.info(f"Cleared {len(cleared)} ticker(s)")
        return cleared

    async def watch(self, *raw_symbols: str) -> list[str]:
        symbols = [sanitize_ticker(raw) for raw in raw_symbols]
        await self.store.write(
            self.watchlist_path,
            {symbol: WatchlistEntry(ticker=symbol).to_document() for symbol in symbols},
        )
        logger.info(f"Watching {', '.join(symbols)}")
        return symbols

    async def unwatch(self, *raw_symbols: str) -> list[str]:
        symbols = {sanitize_ticker(raw) for raw in raw_symbols}
        removed: list[str] = []

        def transform(document: Document) -> Document:
            removed.extend(s for s in document if s in symbols)
            return {k: v for k, v in document.items() if k not in symbols}

        await self.store.rewrite(self.watchlist_path, transform)
        logger.info(f"Unwatched {', '.join(removed) or 'nothing'}")
        return removed

    async def status(self) -> str:
        tickers = await self.store.read(self.tickers_path)
        watchlist = await self.store.read(self.watchlist_path)
        return render_board(tickers, watchlist)

