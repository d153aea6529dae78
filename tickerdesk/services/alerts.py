"""Audible alerts through an external sound player."""

from __future__ import annotations

import asyncio
import shlex
import time
from pathlib import Path
from typing import Callable

from tickerdesk.core.config import settings
from tickerdesk.core.logging import get_logger


logger = get_logger("services.alerts")


class AlertPlayer:
    """
    Plays WAV files with a configurable command, at most once per window.

    The player process is started and not awaited; failures are logged.

    Args:
        command: Player command line, the file path is appended
        debounce: Minimum seconds between two alerts
        enabled: Set False to make every call a no-op
    """

    def __init__(
        self,
        command: str | None = None,
        debounce: float | None = None,
        enabled: bool | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.command = shlex.split(command if command is not None else settings.alert_player)
        self.debounce = settings.alert_debounce_seconds if debounce is None else debounce
        self.enabled = settings.alerts_enabled if enabled is None else enabled
        self._clock = clock
        self._last_played: float | None = None
        self._tasks: set[asyncio.Task] = set()

    def should_play(self) -> bool:
        if not self.enabled or not self.command:
            return False
        if self._last_played is None:
            return True
        return self._clock() - self._last_played >= self.debounce

    async def play(self, sound: str | Path) -> bool:
        """
        Start playing `sound` unless an alert played within the window.

        Returns:
            True if a player process was started.
        """
        if not self.should_play():
            return False
        path = Path(sound)
        if not path.exists():
            logger.warning(f"Alert sound not found: {path}")
            return False

        self._last_played = self._clock()
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                str(path),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.warning(f"Could not start alert player {self.command[0]!r}: {e}")
            return False

        task = asyncio.create_task(self._reap(process, path))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _reap(self, process: asyncio.subprocess.Process, path: Path) -> None:
        code = await process.wait()
        if code != 0:
            logger.warning(f"Alert player exited with {code} for {path.name}")
