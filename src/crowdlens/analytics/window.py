from __future__ import annotations

from datetime import datetime, timedelta, tzinfo
from typing import Iterable, List, Optional, TypeVar

from ..utils.datetime import localize, to_local, to_utc, utc_now

T = TypeVar("T")


def lookback_cutoff(
    days: int,
    *,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> datetime:
    """Instant exactly *days* calendar days before *now* in local time."""
    local_now = to_local(now or utc_now(), tz)
    naive_cutoff = local_now.replace(tzinfo=None) - timedelta(days=int(days))
    return to_utc(localize(naive_cutoff, tz))


def filter_last_n_days(
    items: Iterable[T],
    days: int = 7,
    *,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> List[T]:
    """Keep the items created within the last *days* days.

    Items without a timestamp are dropped.  Input order is preserved.
    """
    cutoff = lookback_cutoff(days, now=now, tz=tz)
    out: List[T] = []
    for item in items:
        created_at = getattr(item, "created_at", None)
        if created_at is None:
            continue
        if to_utc(created_at) >= cutoff:
            out.append(item)
    return out

