"""Explicit dashboard context.

:class:`DashboardContext` owns everything the presentation layer would
otherwise keep as global mutable state: the current filter state,
granularity and display preferences (initialised from the persisted
store, falling back to defaults), the last fetched snapshot and the
online/loading status.  Every preference mutation is written back to the
store immediately.

All methods are synchronous and expected to run on the event loop
thread; only :class:`~crowdlens.worker.refresh.RefreshController`
touches the network.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Optional, Sequence

from .analytics.buckets import aggregate_buckets, merge_series
from .analytics.filters import FACETS, FilterState
from .analytics.range_selector import (
    BrushSelection,
    RangeSelector,
    apply_selection,
    brush_indices,
    change_granularity,
    reanchor_sticky,
)
from .analytics.ranking import (
    all_countries,
    normalize_basis,
    percentage_total,
    top_as,
    top_countries,
    top_ips,
    top_scenarios,
    top_targets,
    with_percentages,
)
from .analytics.resolver import CrossFilterResolver, ResolvedViews
from .config import Settings
from .schemas import (
    Alert,
    Bucket,
    BrushWindow,
    DashboardConfig,
    DashboardStatistics,
    DashboardSummary,
    DashboardView,
    Decision,
)
from .source.lapi_source import dashboard_config
from .storage.preferences import THEMES, Preferences, load_preferences, save_preferences
from .storage.state_store import StateStore
from .utils.datetime import key_precision, normalize_granularity, to_utc, utc_now

logger = logging.getLogger(__name__)


class DashboardContext:
    def __init__(self, settings: Settings, store: StateStore) -> None:
        self.settings = settings
        self.store = store
        self.tz = settings.tz
        self.resolver = CrossFilterResolver(
            tz=self.tz, join_on_alert_id=settings.decision_join_on_alert_id
        )
        self.preferences = load_preferences(store)
        self.config: DashboardConfig = dashboard_config(settings)

        self.alerts: List[Alert] = []
        self.decisions: List[Decision] = []
        self.all_decisions: List[Decision] = []
        self.online = False
        self.loading = False
        self.last_updated: Optional[datetime] = None

        self.range_selector = RangeSelector(
            self.apply_brush_selection,
            debounce_seconds=settings.brush_debounce_seconds,
        )

    # ── Accessors ───────────────────────────────────────────────

    @property
    def filters(self) -> FilterState:
        return self.preferences.filters

    @property
    def granularity(self) -> str:
        return self.preferences.granularity

    @property
    def lookback_days(self) -> int:
        return max(1, int(self.config.lookback_days))

    @property
    def refresh_interval(self) -> int:
        """Seconds between background refreshes; a stored choice wins over config."""
        if self.preferences.refresh_interval is not None:
            return self.preferences.refresh_interval
        return self.config.refresh_interval

    # ── Preference mutations ────────────────────────────────────

    def _update(self, **changes) -> Preferences:
        self.preferences = replace(self.preferences, **changes)
        save_preferences(self.store, self.preferences)
        return self.preferences

    def set_filters(self, filters: FilterState) -> FilterState:
        self._update(filters=filters)
        return filters

    def toggle_filter(self, facet: str, value: Optional[str]) -> FilterState:
        if facet not in FACETS:
            raise ValueError(f"Unknown facet: {facet!r}")
        return self.set_filters(self.filters.toggle(facet, value))

    def toggle_date(self, key: str) -> FilterState:
        precision = key_precision(key)
        if precision is None:
            raise ValueError(f"Invalid bucket key: {key!r}")
        return self.set_filters(self.filters.toggle_date(key, precision))

    def reset_filters(self) -> FilterState:
        return self.set_filters(self.filters.reset())

    def set_granularity(self, value: str) -> str:
        granularity = str(value or "").strip().lower()
        if normalize_granularity(granularity, default="") != granularity:
            raise ValueError(f"Unknown granularity: {value!r}")
        if granularity == self.granularity:
            return granularity
        self.range_selector.cancel()
        self._update(granularity=granularity, filters=change_granularity(self.filters))
        return granularity

    def set_percentage_basis(self, value: str) -> str:
        basis = normalize_basis(value, default="")
        if not basis:
            raise ValueError(f"Unknown percentage basis: {value!r}")
        self._update(percentage_basis=basis)
        return basis

    def set_theme(self, value: str) -> str:
        if value not in THEMES:
            raise ValueError(f"Unknown theme: {value!r}")
        self._update(theme=value)
        return value

    def set_refresh_interval(self, seconds: Optional[int]) -> Optional[int]:
        if seconds is not None and (isinstance(seconds, bool) or int(seconds) < 0):
            raise ValueError(f"Invalid refresh interval: {seconds!r}")
        self._update(refresh_interval=None if seconds is None else int(seconds))
        return self.preferences.refresh_interval

    # ── Brush ───────────────────────────────────────────────────

    def window_buckets(self, now: Optional[datetime] = None) -> List[Bucket]:
        """Empty bucket sequence of the slider for the current granularity."""
        return aggregate_buckets(
            [], self.lookback_days, self.granularity, now=now, tz=self.tz
        )

    def apply_brush_selection(self, selection: BrushSelection) -> FilterState:
        return self.set_filters(apply_selection(self.filters, selection))

    def drag_brush(
        self, start_index: int, end_index: int, *, now: Optional[datetime] = None
    ) -> BrushSelection:
        """Feed a drag event; the filter change is committed after the quiet window."""
        return self.range_selector.drag(
            start_index, end_index, self.window_buckets(now), self.granularity
        )

    # ── Snapshot ────────────────────────────────────────────────

    def set_loading(self, loading: bool) -> None:
        self.loading = loading

    def mark_offline(self) -> None:
        self.online = False

    def apply_snapshot(
        self,
        config: DashboardConfig,
        alerts: Sequence[Alert],
        decisions: Sequence[Decision],
        all_decisions: Sequence[Decision],
        *,
        now: Optional[datetime] = None,
    ) -> None:
        now = to_utc(now or utc_now())
        self.config = config
        self.alerts = list(alerts)
        self.decisions = list(decisions)
        self.all_decisions = list(all_decisions)
        self.online = True
        self.last_updated = now

        anchored = reanchor_sticky(self.filters, self.window_buckets(now))
        if anchored != self.filters:
            self.set_filters(anchored)
        logger.info(
            "Snapshot updated: %d alerts, %d active decisions, %d decisions in total",
            len(self.alerts),
            len(self.decisions),
            len(self.all_decisions),
        )

    # ── View ────────────────────────────────────────────────────

    def resolve(self, now: Optional[datetime] = None) -> ResolvedViews:
        return self.resolver.resolve(
            self.alerts,
            self.decisions,
            self.all_decisions,
            self.filters,
            self.lookback_days,
            now=now,
        )

    def build_view(self, now: Optional[datetime] = None) -> DashboardView:
        now = to_utc(now or utc_now())
        filters = self.filters
        granularity = self.granularity
        days = self.lookback_days
        views = self.resolve(now)

        basis = self.preferences.percentage_basis
        total = percentage_total(basis, len(views.active.alerts), views.global_total)
        top_k = self.settings.top_k
        active_alerts = views.active.alerts

        def bucketize(items, date_range=None) -> List[Bucket]:
            return aggregate_buckets(
                items, days, granularity, now=now, tz=self.tz, date_range=date_range
            )

        alerts_history = bucketize(views.chart.alerts, filters.date_range)
        decisions_history = bucketize(views.chart.decisions, filters.date_range)
        slider_alerts = bucketize(views.context.alerts)
        slider_decisions = bucketize(views.context.decisions)
        start_index, end_index = brush_indices(
            filters,
            slider_alerts,
            granularity,
            hour_default_buckets=self.settings.hour_view_default_buckets,
        )

        statistics = DashboardStatistics(
            top_ips=with_percentages(top_ips(active_alerts, top_k), total),
            top_countries=with_percentages(top_countries(active_alerts, top_k), total),
            all_countries=with_percentages(all_countries(active_alerts), total),
            top_scenarios=with_percentages(top_scenarios(active_alerts, top_k), total),
            top_as=with_percentages(top_as(active_alerts, top_k), total),
            top_targets=with_percentages(top_targets(active_alerts, top_k), total),
            alerts_history=alerts_history,
            decisions_history=decisions_history,
            activity=merge_series(alerts_history, decisions_history),
            slider=merge_series(slider_alerts, slider_decisions),
            brush=BrushWindow(start_index=start_index, end_index=end_index),
        )
        summary = DashboardSummary(
            total_alerts=views.total_alerts,
            total_decisions=views.total_decisions,
            filtered_alerts=len(active_alerts),
            filtered_decisions=len(views.active.decisions),
            global_alerts=views.global_total,
        )
        return DashboardView(
            online=self.online,
            loading=self.loading,
            last_updated=self.last_updated,
            lookback_days=days,
            granularity=granularity,
            percentage_basis=basis,
            filters=filters.to_dict(),
            has_active_filters=filters.has_active_filters,
            filter_query=filters.to_query_params(),
            summary=summary,
            statistics=statistics,
        )
