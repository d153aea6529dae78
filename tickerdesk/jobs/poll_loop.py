"""Change-driven processing loop shared by the agents.

    IDLE --change--> DEBOUNCING --quiet--> PROCESSING --done--> IDLE

File changes (re)start the debounce timer. When it fires, one processing
pass runs. A pass is never re-entered: a change arriving while processing
marks the loop dirty and schedules exactly one follow-up pass after the
current one finishes. An independent interval timer forces passes as a
safety net for missed notifications.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Union

from tickerdesk.core.exceptions import TickerDeskError
from tickerdesk.core.logging import get_logger

from .debounce import Debouncer
from .file_watcher import FileWatcher


logger = get_logger("jobs.poll_loop")


class LoopState(Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    PROCESSING = "processing"


class PollLoop:
    """
    Runs `process` on file changes (debounced) and on a fixed interval.

    Args:
        name: Identifier for logging
        process: Coroutine function performing one full pass
        watch: Files whose changes trigger a pass
        debounce: Quiet period before a change-triggered pass
        jitter: Extra random 0..jitter seconds added to each debounce
        interval: Seconds between forced passes (None disables)
        poll_interval: File watcher polling period
        run_on_start: Run one pass immediately when started
    """

    def __init__(
        self,
        name: str,
        process: Callable[[], Awaitable[object]],
        watch: Iterable[Union[str, Path]] = (),
        debounce: float = 0.5,
        jitter: float = 0.0,
        interval: float | None = None,
        poll_interval: float = 0.25,
        run_on_start: bool = True,
    ):
        self.name = name
        self.process = process
        self.interval = interval
        self.run_on_start = run_on_start
        self.pass_count = 0

        self._is_processing = False
        self._dirty = False
        self._debouncer = Debouncer(self.run_pass, debounce, jitter, name=name)
        self._watcher = FileWatcher(watch, poll_interval)
        self._watcher.subscribe(lambda _path: self.notify())
        self._stopped = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    @property
    def state(self) -> LoopState:
        if self._is_processing:
            return LoopState.PROCESSING
        if self._debouncer.pending:
            return LoopState.DEBOUNCING
        return LoopState.IDLE

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    def notify(self) -> None:
        """A watched input changed."""
        if self._is_processing:
            self._dirty = True
            return
        self._debouncer.trigger()

    async def run_pass(self, reason: str = "change") -> bool:
        """
        Run one processing pass unless one is already running.

        Errors from the pass are logged, never propagated: the loop must
        survive upstream failures.

        Returns:
            True if a pass ran.
        """
        if self._is_processing:
            self._dirty = True
            logger.debug(f"[{self.name}] Pass already running, deferring ({reason})")
            return False

        self._is_processing = True
        self._dirty = False
        try:
            logger.debug(f"[{self.name}] Pass started ({reason})")
            await self.process()
        except TickerDeskError as e:
            logger.error(f"[{self.name}] Pass failed: {e.message}")
        except Exception as e:
            logger.exception(f"[{self.name}] Unexpected error in pass: {e}")
        finally:
            self._is_processing = False
            self.pass_count += 1

        if self._dirty:
            self._dirty = False
            self._debouncer.trigger()
        return True

    async def _interval_timer(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.run_pass("interval")

    def start(self) -> None:
        self._stopped.clear()
        self._watcher.snapshot()
        self._tasks.append(self._watcher.start())
        if self.interval:
            self._tasks.append(asyncio.create_task(self._interval_timer()))
        if self.run_on_start:
            self._tasks.append(asyncio.create_task(self.run_pass("startup")))
        logger.info(f"[{self.name}] Poll loop started")

    async def stop(self) -> None:
        self._debouncer.cancel()
        await self._watcher.stop()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self._stopped.set()
        logger.info(f"[{self.name}] Poll loop stopped")

    async def run_forever(self) -> None:
        """Start and block until `stop()` is called or the task is cancelled."""
        self.start()
        try:
            await self._stopped.wait()
        finally:
            if not self._stopped.is_set():
                await self.stop()
