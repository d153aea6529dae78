"""Display agent: redraws the ticker board whenever the shared files change."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TextIO

from tickerdesk.services.display import render_board
from tickerdesk.store.paths import WATCHLIST_FILE

from .base import Agent


CLEAR_SCREEN = "\033[2J\033[H"


class DisplayAgent(Agent):
    name = "display"

    def __init__(self, *args, stream: TextIO | None = None, clear: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.stream = stream or sys.stdout
        self.clear = clear
        self.last_frame = ""

    @property
    def watchlist_path(self) -> Path:
        return self.config.path(WATCHLIST_FILE)

    def watched_files(self) -> list[Path]:
        return [self.tickers_path, self.watchlist_path]

    async def run_pass(self) -> None:
        tickers = await self.store.read(self.tickers_path)
        watchlist = await self.store.read(self.watchlist_path)
        frame = render_board(tickers, watchlist)
        if frame == self.last_frame:
            return
        self.last_frame = frame
        self.stream.write((CLEAR_SCREEN if self.clear else "") + frame + "\n")
        self.stream.flush()
