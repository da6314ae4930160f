"""Shared timestamp helpers."""

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]

EPOCH_TIMESTAMP = "1970-01-01T00:00:00.000Z"


def format_timestamp(dt: datetime) -> str:
    """Format as a UTC ISO string with millisecond precision (naive = local)."""
    utc = dt.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: object) -> Optional[datetime]:
    """Parse an ISO timestamp into a naive local datetime, or None."""
    if not isinstance(value, str) or not value:
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt
