"""Daily reset of the shared stores and the intraday deactivate-all."""

from __future__ import annotations

import asyncio
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from tickerdesk.core.clock import Clock, local_midnight, now_local
from tickerdesk.core.config import settings
from tickerdesk.core.exceptions import TickerDeskError
from tickerdesk.core.logging import get_logger
from tickerdesk.store import Document, RecordStore, get_record_store
from tickerdesk.store.paths import LAST_WIPE_FILE, TICKERS_FILE, wiped_files


logger = get_logger("jobs.reset")


def parse_wipe_stamp(text: str) -> Optional[datetime]:
    """Parse the last-wipe file, normalized to local midnight. Garbage parses as None."""
    text = (text or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return local_midnight(datetime.fromisoformat(text))
    except ValueError:
        return None


def _write_text_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.stem}_", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(temp_path, str(path))
    except BaseException:
        try:
            os.unlink(temp_path)
        except FileNotFoundError:
            pass
        raise


class DailyReset:
    """
    Wipes every managed store once per local calendar day.

    The last wipe is remembered in `last-wipe.txt` as an ISO-8601 local
    midnight. A check wipes only if today's midnight is strictly after the
    stored one, so repeated checks on the same day are no-ops and a
    restart after several days performs exactly one wipe.

    Args:
        stamp_path: Location of the last-wipe file
        files: Stores replaced by {} on a wipe
        store: Record store used for locked replacement
        clock: Source of the current local time
    """

    def __init__(
        self,
        stamp_path: Path | None = None,
        files: Iterable[Path] | None = None,
        tickers_path: Path | None = None,
        store: RecordStore | None = None,
        clock: Clock = now_local,
    ):
        self.stamp_path = Path(stamp_path or settings.path(LAST_WIPE_FILE))
        self.files = [Path(f) for f in (files if files is not None else wiped_files())]
        self.tickers_path = Path(tickers_path or settings.path(TICKERS_FILE))
        self.store = store or get_record_store()
        self._clock = clock
        self.wipe_count = 0

    async def last_wipe(self) -> Optional[datetime]:
        try:
            text = await asyncio.to_thread(self.stamp_path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        stamp = parse_wipe_stamp(text)
        if stamp is None:
            logger.warning(f"Unreadable {self.stamp_path.name} ({text.strip()!r}), treating as never wiped")
        return stamp

    async def check_and_reset(self, now: datetime | None = None) -> bool:
        """
        Wipe the stores if the last wipe predates today's local midnight.

        The stamp only advances once every store was replaced, so a failed
        wipe is retried by the next check.

        Returns:
            True if a wipe was performed.
        """
        today = local_midnight(now or self._clock())
        last = await self.last_wipe()
        if last is not None and today <= last:
            logger.debug(f"Already wiped for {today.date()}")
            return False

        logger.info(f"Daily reset: last wipe {last.isoformat() if last else 'never'}, wiping {len(self.files)} stores")
        failed = []
        for path in self.files:
            try:
                await self.store.replace(path, {})
            except TickerDeskError as e:
                logger.error(f"Could not wipe {path.name}: {e.message}")
                failed.append(path)
        if failed:
            return False

        await asyncio.to_thread(_write_text_atomic, self.stamp_path, today.isoformat())
        self.wipe_count += 1
        logger.info(f"Daily reset complete, last wipe set to {today.isoformat()}")
        return True

    async def deactivate_all(self) -> int:
        """Mark every ticker inactive without touching its history."""
        changed: list[str] = []

        def mutate(document: Document) -> Document:
            partial = {}
            for symbol, record in document.items():
                if isinstance(record, dict) and record.get("isActive", True):
                    partial[symbol] = {**record, "isActive": False}
            changed.extend(partial)
            return partial

        await self.store.update(self.tickers_path, mutate)
        logger.info(f"Deactivated {len(changed)} ticker(s)")
        return len(changed)


class ResetScheduler:
    """APScheduler wrapper running the midnight wipe and the intraday deactivation."""

    def __init__(self, reset: DailyReset, deactivate_time: str | None = None):
        self.reset = reset
        self.deactivate_time = settings.deactivate_time if deactivate_time is None else deactivate_time
        self._scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,
                "misfire_grace_time": 60 * 60,
            },
        )
        self._running = False

    def _wrap_job(self, name: str, func: Callable[[], Awaitable[object]]) -> Callable:
        async def wrapper():
            logger.info(f"Job {name} started")
            try:
                result = await func()
                logger.info(f"Job {name} completed: {result}")
            except Exception as e:
                logger.exception(f"Job {name} failed: {e}")

        return wrapper

    def _add_jobs(self) -> None:
        self._scheduler.add_job(
            self._wrap_job("daily_reset", self.reset.check_and_reset),
            trigger=CronTrigger(hour=0, minute=0, second=5),
            id="daily_reset",
            name="Wipe stores at local midnight",
            replace_existing=True,
        )
        if self.deactivate_time:
            hour, minute = (int(p) for p in self.deactivate_time.split(":"))
            self._scheduler.add_job(
                self._wrap_job("deactivate_all", self.reset.deactivate_all),
                trigger=CronTrigger(hour=hour, minute=minute),
                id="deactivate_all",
                name=f"Deactivate tickers at {self.deactivate_time}",
                replace_existing=True,
            )

    async def start(self) -> None:
        """Run the startup check, then schedule the recurring jobs."""
        if self._running:
            logger.warning("Reset scheduler already running")
            return
        await self.reset.check_and_reset()
        self._add_jobs()
        self._scheduler.start()
        self._running = True
        logger.info("Reset scheduler started")

    async def stop(self) -> None:
        if not self._running:
            return
        self._scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Reset scheduler stopped")

    def get_jobs_status(self) -> list[dict]:
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in self._scheduler.get_jobs()
        ]
