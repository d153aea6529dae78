"""Reset agent: daily wipe at local midnight and the intraday deactivate-all."""

from __future__ import annotations

import asyncio

from tickerdesk.core.logging import agent_name_var
from tickerdesk.jobs import DailyReset, ResetScheduler
from tickerdesk.store.paths import LAST_WIPE_FILE, wiped_files

from .base import Agent


class ResetAgent(Agent):
    name = "reset"

    def __init__(self, *args, deactivate_time: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.reset = DailyReset(store=self.store, clock=self.clock, **self._paths())
        self.scheduler = ResetScheduler(self.reset, deactivate_time)

    def _paths(self) -> dict:
        return {
            "stamp_path": self.config.path(LAST_WIPE_FILE),
            "files": wiped_files(self.config),
            "tickers_path": self.tickers_path,
        }

    async def run(self) -> None:
        agent_name_var.set(self.name)
        self.logger.info(f"Starting {self.name} agent")
        await self.scheduler.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.scheduler.stop()
