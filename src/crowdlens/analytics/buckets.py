"""Zero-filled, local-time aligned time buckets.

The window always starts at local midnight ``days - 1`` calendar days
before *now* and runs through the bucket containing *now*, so a 7-day
window yields exactly 7 day buckets and ``6 * 24 + current_hour + 1``
hour buckets.  Hour buckets are generated by stepping absolute hours and
keyed by local wall clock: a spring-forward day has 23 keys, and on a
fall-back day the repeated hour shares one key (its count covers both).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, tzinfo
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..schemas import ActivityPoint, Bucket
from ..utils.datetime import (
    HOUR,
    bucket_key,
    format_bucket_key,
    format_bucket_label,
    localize,
    normalize_granularity,
    to_local,
    to_utc,
    utc_now,
)

logger = logging.getLogger(__name__)


def window_start(
    days: int,
    *,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> datetime:
    """Local midnight ``days - 1`` calendar days before *now* (UTC instant)."""
    days = max(1, int(days))
    local_now = to_local(now or utc_now(), tz)
    first_day = local_now.date() - timedelta(days=days - 1)
    naive = datetime(first_day.year, first_day.month, first_day.day)
    return to_utc(localize(naive, tz))


def iter_bucket_starts(
    start: datetime,
    now: datetime,
    granularity: str,
    tz: Optional[tzinfo] = None,
) -> Iterator[Tuple[str, datetime]]:
    """Yield ``(key, local bucket start)`` from *start* through *now* inclusive."""
    now_utc = to_utc(now)
    if granularity == HOUR:
        cursor = to_utc(start)
        while cursor <= now_utc:
            local = to_local(cursor, tz)
            yield format_bucket_key(local, HOUR), local
            cursor += timedelta(hours=1)
        return

    day = to_local(start, tz).date()
    last_day = to_local(now_utc, tz).date()
    while day <= last_day:
        local = localize(datetime(day.year, day.month, day.day), tz)
        yield format_bucket_key(local, granularity), local
        day += timedelta(days=1)


def _within(key: str, date_range, granularity: str) -> bool:
    if date_range is None or getattr(date_range, "precision", None) != granularity:
        return True
    return date_range.start <= key <= date_range.end


def aggregate_buckets(
    items: Iterable,
    days: int = 7,
    granularity: str = "day",
    *,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
    date_range=None,
) -> List[Bucket]:
    """Count *items* per local-time bucket over the lookback window.

    Every bucket of the window is present, zero-filled, sorted by key.
    When *date_range* is given with the same precision as *granularity*,
    only buckets whose key lies inside it are returned.
    """
    granularity = normalize_granularity(granularity)
    now = to_utc(now or utc_now())
    start = window_start(days, now=now, tz=tz)

    slots: Dict[str, Bucket] = {}
    for key, local in iter_bucket_starts(start, now, granularity, tz):
        if key in slots:
            continue
        slots[key] = Bucket(
            key=key,
            label=format_bucket_label(local, granularity),
            count=0,
            full_date=to_utc(local),
        )

    skipped = 0
    for item in items:
        created_at = getattr(item, "created_at", None)
        if created_at is None:
            skipped += 1
            continue
        if to_utc(created_at) < start:
            continue
        slot = slots.get(bucket_key(created_at, granularity, tz))
        if slot is not None:
            slot.count += 1
    if skipped:
        logger.debug("Skipped %d item(s) without a timestamp", skipped)

    return [
        slots[key]
        for key in sorted(slots)
        if _within(key, date_range, granularity)
    ]


def merge_series(
    alerts: Sequence[Bucket],
    decisions: Sequence[Bucket],
) -> List[ActivityPoint]:
    """Join alert and decision bucket series on their key."""
    merged: Dict[str, ActivityPoint] = {}
    for bucket in alerts:
        merged[bucket.key] = ActivityPoint(
            key=bucket.key,
            label=bucket.label,
            full_date=bucket.full_date,
            alerts=bucket.count,
        )
    for bucket in decisions:
        point = merged.get(bucket.key)
        if point is None:
            point = merged[bucket.key] = ActivityPoint(
                key=bucket.key,
                label=bucket.label,
                full_date=bucket.full_date,
            )
        point.decisions = bucket.count
    return [merged[key] for key in sorted(merged)]
