"""Wall-clock helpers. Every agent works in the machine's local time zone."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable


Clock = Callable[[], datetime]


def now_local() -> datetime:
    """Timezone-aware current local time."""
    return datetime.now().astimezone()


def local_midnight(moment: datetime) -> datetime:
    """Midnight (00:00:00.000) of the local calendar day containing `moment`."""
    # naive values are interpreted as local time
    return moment.astimezone().replace(hour=0, minute=0, second=0, microsecond=0)


def utc_iso(moment: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with a trailing Z, as upstream APIs expect."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )
