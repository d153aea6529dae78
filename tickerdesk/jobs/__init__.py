"""Scheduling primitives: debounce, file watching, poll loops and the daily reset."""

from .debounce import Debouncer
from .file_watcher import FileWatcher, file_signature
from .poll_loop import LoopState, PollLoop
from .reset_scheduler import DailyReset, ResetScheduler, parse_wipe_stamp

__all__ = [
    "DailyReset",
    "Debouncer",
    "FileWatcher",
    "LoopState",
    "PollLoop",
    "ResetScheduler",
    "file_signature",
    "parse_wipe_stamp",
]
