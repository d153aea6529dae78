"""Shared JSON record store: locking, merge-on-write, processed sets."""

from .locks import FileLock, LockManager, get_lock_manager
from .processed import ProcessedSet
from .record_store import (
    Document,
    RecordStore,
    dump_document,
    get_record_store,
    load_document,
)

__all__ = [
    "Document",
    "FileLock",
    "LockManager",
    "ProcessedSet",
    "RecordStore",
    "dump_document",
    "get_lock_manager",
    "get_record_store",
    "load_document",
]
