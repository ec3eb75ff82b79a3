"""Shared datetime parsing, local-time conversion and bucket-key helpers.

Bucket keys are formatted from *local* wall-clock components of the
viewer's zone (``YYYY-MM-DD`` or ``YYYY-MM-DDTHH``) so that a day
boundary never shifts for a viewer east or west of UTC.  Lexicographic
order of keys equals chronological order.

Every function taking ``tz`` treats ``None`` as the host's local zone.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Optional, Tuple

DAY = "day"
HOUR = "hour"
GRANULARITIES = (DAY, HOUR)

_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def parse_iso_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (with or without ``Z`` suffix) to UTC.

    Returns *None* on invalid or empty input rather than raising.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (ValueError, TypeError):
        return None


def to_utc(dt: datetime) -> datetime:
    """Ensure a datetime is UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Convert an instant to wall-clock time in *tz*."""
    return to_utc(dt).astimezone(tz)


def localize(naive: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Attach *tz* to a naive wall-clock datetime."""
    if tz is None:
        # naive.astimezone() interprets the value as host-local time
        return naive.astimezone()
    return naive.replace(tzinfo=tz)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_granularity(value: Any, default: str = DAY) -> str:
    text = str(value or "").strip().lower()
    return text if text in GRANULARITIES else default


def format_bucket_key(local_dt: datetime, granularity: str) -> str:
    if granularity == HOUR:
        return local_dt.strftime("%Y-%m-%dT%H")
    return local_dt.strftime("%Y-%m-%d")


def bucket_key(dt: datetime, granularity: str, tz: Optional[tzinfo] = None) -> str:
    """Local-time bucket key of an instant at *granularity*."""
    return format_bucket_key(to_local(dt, tz), granularity)


def format_bucket_label(local_dt: datetime, granularity: str) -> str:
    label = f"{_MONTHS[local_dt.month - 1]} {local_dt.day}"
    if granularity == HOUR:
        return f"{label}, {local_dt.strftime('%H:%M')}"
    return label


def parse_bucket_key(key: Any) -> Optional[Tuple[datetime, str]]:
    """Return ``(naive wall-clock start, granularity)`` for a bucket key."""
    text = str(key or "").strip()
    try:
        if len(text) == 10:
            return datetime.strptime(text, "%Y-%m-%d"), DAY
        if len(text) == 13 and text[10] == "T":
            return datetime.strptime(text, "%Y-%m-%dT%H"), HOUR
    except ValueError:
        return None
    return None


def key_precision(key: Any) -> Optional[str]:
    parsed = parse_bucket_key(key)
    return parsed[1] if parsed else None


def units_between(start_key: str, end_key: str) -> int:
    """Count of buckets from *start_key* to *end_key* inclusive (wall clock)."""
    start = parse_bucket_key(start_key)
    end = parse_bucket_key(end_key)
    if not start or not end or start[1] != end[1]:
        return 0
    step = timedelta(hours=1) if start[1] == HOUR else timedelta(days=1)
    return max(int((end[0] - start[0]) / step) + 1, 0)
