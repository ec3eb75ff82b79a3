"""Brush (drag-to-zoom) resolution into a date-range facet.

A brush reports a pair of indices into the slider's own bucket
sequence.  Covering the whole sequence means "no selection"; any other
span becomes a :class:`DateRange` over the corresponding bucket keys.
A span ending on the newest bucket is *sticky*: on refresh it is
re-anchored so it keeps ending on the newest bucket.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from ..utils.datetime import DAY, HOUR, key_precision, normalize_granularity, units_between
from .debounce import Debouncer
from .filters import DateRange, FilterState

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3


@dataclass(frozen=True)
class BrushSelection:
    date_range: Optional[DateRange] = None
    sticky: bool = False

    @property
    def is_reset(self) -> bool:
        return self.date_range is None


def _clamp(index: int, size: int) -> int:
    return min(max(int(index), 0), size - 1)


def resolve_brush(
    start_index: int,
    end_index: int,
    buckets: Sequence,
    granularity: str,
) -> BrushSelection:
    """Map brush indices to a selection; the full span resolves to a reset."""
    size = len(buckets)
    if size == 0:
        return BrushSelection()
    start, end = sorted((_clamp(start_index, size), _clamp(end_index, size)))
    last = size - 1
    if start == 0 and end == last:
        return BrushSelection()
    precision = normalize_granularity(granularity)
    return BrushSelection(
        date_range=DateRange(buckets[start].key, buckets[end].key, precision),
        sticky=end == last,
    )


def apply_selection(state: FilterState, selection: BrushSelection) -> FilterState:
    if selection.is_reset:
        return state.clear_date_range()
    return state.with_date_range(selection.date_range, sticky=selection.sticky)


def change_granularity(state: FilterState) -> FilterState:
    """Bucket keys of different precisions are not comparable."""
    return state.clear_date_range()


def reanchor_sticky(state: FilterState, buckets: Sequence) -> FilterState:
    """Shift a sticky range so it ends on the newest bucket, keeping its width."""
    date_range = state.date_range
    if date_range is None or not state.date_range_sticky or not buckets:
        return state
    if key_precision(buckets[-1].key) != date_range.precision:
        return state.clear_date_range()
    if date_range.end == buckets[-1].key:
        return state
    width = max(units_between(date_range.start, date_range.end), 1)
    last = len(buckets) - 1
    selection = resolve_brush(max(last - width + 1, 0), last, buckets, date_range.precision)
    logger.debug(
        "Re-anchored sticky range %s..%s -> %s",
        date_range.start,
        date_range.end,
        selection.date_range,
    )
    return apply_selection(state, selection)


def brush_indices(
    state: FilterState,
    buckets: Sequence,
    granularity: str,
    *,
    hour_default_buckets: int = 12,
) -> Tuple[int, int]:
    """Indices the brush control should show for the current state."""
    size = len(buckets)
    if size == 0:
        return 0, 0
    last = size - 1
    date_range = state.date_range
    if date_range is None:
        if normalize_granularity(granularity) == HOUR:
            return max(0, size - hour_default_buckets), last
        return 0, last

    start = next((i for i, b in enumerate(buckets) if b.key >= date_range.start), -1)
    end = next(
        (i for i in range(last, -1, -1) if buckets[i].key <= date_range.end), -1
    )
    if start == -1:
        start = 0
    if end == -1:
        end = last
    if start > end:
        return 0, last
    return start, end


class RangeSelector:
    """Debounced brush-to-filter pipeline.

    ``on_commit`` receives the resolved :class:`BrushSelection` of the last
    drag event once the drag has been quiet for ``debounce_seconds``.
    """

    def __init__(
        self,
        on_commit: Callable[[BrushSelection], None],
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._debouncer = Debouncer(debounce_seconds, on_commit, loop=loop)

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    def drag(
        self,
        start_index: int,
        end_index: int,
        buckets: Sequence,
        granularity: str = DAY,
    ) -> BrushSelection:
        selection = resolve_brush(start_index, end_index, buckets, granularity)
        self._debouncer(selection)
        return selection

    def flush(self) -> bool:
        return self._debouncer.flush()

    def cancel(self) -> bool:
        return self._debouncer.cancel()
