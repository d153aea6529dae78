"""Polling file watcher.

Change detection compares `(mtime_ns, size, inode)` snapshots every
`interval` seconds. Atomic replaces change the inode, so a rewrite with the
same size inside one mtime tick is still seen. Watched files may be missing;
their appearance or removal counts as a change.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from tickerdesk.core.logging import get_logger


logger = get_logger("jobs.watcher")

Signature = Optional[tuple[int, int, int]]
Listener = Callable[[Path], object]


def file_signature(path: Union[str, Path]) -> Signature:
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return None
    return (st.st_mtime_ns, st.st_size, st.st_ino)


class FileWatcher:
    """
    Notify listeners when any watched file changes.

    Args:
        paths: Files to watch
        interval: Seconds between polls
    """

    def __init__(self, paths: Iterable[Union[str, Path]], interval: float = 0.25):
        self.paths = [Path(p) for p in paths]
        self.interval = interval
        self._listeners: list[Listener] = []
        self._signatures: dict[Path, Signature] = {}
        self._task: asyncio.Task | None = None

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def snapshot(self) -> None:
        """Record the current state of every path as the baseline."""
        self._signatures = {p: file_signature(p) for p in self.paths}

    def poll(self) -> list[Path]:
        """Check once; notify listeners and return the paths that changed."""
        changed = []
        for path in self.paths:
            signature = file_signature(path)
            if signature != self._signatures.get(path):
                self._signatures[path] = signature
                changed.append(path)

        for path in changed:
            logger.debug(f"Change detected: {path.name}")
            for listener in self._listeners:
                listener(path)
        return changed

    async def run(self) -> None:
        self.snapshot()
        while True:
            await asyncio.sleep(self.interval)
            self.poll()

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
