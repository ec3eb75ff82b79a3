"""Cross-filter and time-bucketing engine.

Pure, synchronous transformations over fetched alerts and decisions:
lookback trimming, zero-filled local-time buckets, Top-K rankings,
facet filter state, cross-filter resolution and brush resolution.
"""

from .buckets import aggregate_buckets, merge_series, window_start
from .debounce import Debouncer
from .filters import FACETS, DateRange, FilterState
from .range_selector import (
    BrushSelection,
    RangeSelector,
    apply_selection,
    brush_indices,
    change_granularity,
    reanchor_sticky,
    resolve_brush,
)
from .ranking import rank_by, with_percentages
from .resolver import CrossFilterResolver, FilteredView, ResolvedViews
from .window import filter_last_n_days

__all__ = [
    "FACETS",
    "BrushSelection",
    "CrossFilterResolver",
    "DateRange",
    "Debouncer",
    "FilterState",
    "FilteredView",
    "RangeSelector",
    "ResolvedViews",
    "aggregate_buckets",
    "apply_selection",
    "brush_indices",
    "change_granularity",
    "filter_last_n_days",
    "merge_series",
    "rank_by",
    "reanchor_sticky",
    "resolve_brush",
    "window_start",
    "with_percentages",
]
