"""Safe read / merge-on-write access to the shared JSON documents.

Every mutation of a shared file goes through `RecordStore`. Writes re-read
the on-disk document under the lock and shallow-merge the caller's partial
document over it, so two agents updating different top-level keys never
erase each other's work. Files are replaced atomically (temp file in the
same directory + os.replace), so readers never observe a partial document.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable, Union

from tickerdesk.core.config import settings
from tickerdesk.core.exceptions import DecodeFailure
from tickerdesk.core.logging import get_logger

from .locks import FileLock, LockManager, get_lock_manager


logger = get_logger("store.records")

Document = dict[str, Any]
PathLike = Union[str, Path]


def load_document(path: PathLike) -> Document:
    """
    Read and decode a JSON object from disk, without locking.

    Raises:
        FileNotFoundError: if the file does not exist
        DecodeFailure: if the content is not a JSON object
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DecodeFailure(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise DecodeFailure(str(path), f"expected an object, got {type(data).__name__}")
    return data


def dump_document(path: PathLike, document: Document) -> None:
    """Atomically replace `path` with the JSON encoding of `document`."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(document, indent=2, default=str)

    fd, temp_path = tempfile.mkstemp(
        dir=str(target.parent),
        prefix=f".{target.stem}_",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, str(target))
    except BaseException:
        try:
            os.unlink(temp_path)
        except FileNotFoundError:
            pass
        raise


class RecordStore:
    """
    Lock-guarded JSON document store.

    Args:
        locks: In-process lock table (defaults to the process-wide one)
        cross_process: Also hold an fcntl lock on `<file>.lock`
    """

    def __init__(
        self,
        locks: LockManager | None = None,
        cross_process: bool | None = None,
    ):
        self.locks = locks or get_lock_manager()
        self.cross_process = (
            settings.cross_process_locking if cross_process is None else cross_process
        )

    @asynccontextmanager
    async def _locked(self, path: PathLike):
        """Hold the in-process lock, then the cross-process one."""
        loop = asyncio.get_running_loop()
        start = loop.time()
        async with self.locks.hold(path):
            if not self.cross_process:
                yield
                return
            file_lock = FileLock(path, self.locks.retry_min, self.locks.retry_max)
            remaining = max(0.0, self.locks.timeout - (loop.time() - start))
            await file_lock.acquire(remaining)
            try:
                yield
            finally:
                file_lock.release()

    def _current(self, path: PathLike) -> Document:
        """On-disk document for a write cycle; missing or corrupt reads as {}."""
        try:
            return load_document(path)
        except FileNotFoundError:
            return {}
        except DecodeFailure as e:
            backup = f"{path}.corrupt"
            logger.warning(f"{e.message}; keeping a copy at {backup} and starting from {{}}")
            try:
                os.replace(str(path), backup)
            except OSError as exc:
                logger.warning(f"Could not back up corrupt file {path}: {exc}")
            return {}

    async def read(self, path: PathLike, must_exist: bool = False) -> Document:
        """
        Read the document at `path` under its lock.

        A missing or undecodable file yields {} (the same state as a fresh
        daily wipe). With `must_exist=True` a missing file raises instead.

        Raises:
            LockTimeout: if the lock could not be acquired
            DecodeFailure: only when `must_exist` and the file is missing
        """
        async with self._locked(path):
            try:
                return await asyncio.to_thread(load_document, path)
            except FileNotFoundError:
                if must_exist:
                    raise DecodeFailure(str(path), "file does not exist")
                logger.debug(f"{path} does not exist yet, treating as empty")
                return {}
            except DecodeFailure as e:
                logger.warning(f"{e.message}; treating as empty document")
                return {}

    async def write(self, path: PathLike, partial: Document) -> Document:
        """
        Shallow-merge `partial` over the current on-disk document and persist.

        Top-level keys of `partial` win; callers updating one field of a
        ticker must pass the whole updated ticker object.

        Returns:
            The merged document as written.

        Raises:
            LockTimeout: if the lock could not be acquired
        """
        async with self._locked(path):
            current = await asyncio.to_thread(self._current, path)
            merged = {**current, **partial}
            await asyncio.to_thread(dump_document, path, merged)
        logger.debug(f"Wrote {len(partial)} key(s) to {path}")
        return merged

    async def update(
        self,
        path: PathLike,
        mutate: Callable[[Document], Document | None],
    ) -> Document:
        """
        Read-modify-write under a single lock hold.

        `mutate` receives the current document and returns the partial
        document to merge (or None / {} to skip the write).
        """
        async with self._locked(path):
            current = await asyncio.to_thread(self._current, path)
            partial = mutate(current)
            if not partial:
                return current
            merged = {**current, **partial}
            await asyncio.to_thread(dump_document, path, merged)
        logger.debug(f"Updated {len(partial)} key(s) in {path}")
        return merged

    async def rewrite(
        self,
        path: PathLike,
        transform: Callable[[Document], Document],
    ) -> Document:
        """
        Replace the whole document with `transform(current)` under one lock hold.

        Unlike `write`/`update` this can delete keys; reserve it for files
        a single owner manages (the watchlist).
        """
        async with self._locked(path):
            current = await asyncio.to_thread(self._current, path)
            document = transform(dict(current))
            if document != current:
                await asyncio.to_thread(dump_document, path, document)
        return document

    async def replace(self, path: PathLike, document: Document) -> None:
        """Overwrite the whole document (used by resets)."""
        async with self._locked(path):
            await asyncio.to_thread(dump_document, path, document)
        logger.debug(f"Replaced {path}")


_store: RecordStore | None = None


def get_record_store() -> RecordStore:
    """Get or create the process-wide RecordStore."""
    global _store
    if _store is None:
        _store = RecordStore()
    return _store
