"""Cross-filter resolution over alerts and decisions.

Decisions carry no reliable link to the alerts that caused them, so the
two collections are kept in lockstep by IP: after every facet that
narrows the alerts, the decision sets are cut down to decisions whose
``value`` is one of the ``source.ip`` values still present among the alerts.
Range-scoped alerts carry their CIDR in ``source.value`` only and never
join, so decisions on ranges drop out as soon as any facet is set.

Facets are applied to alerts in a fixed order:
date range, country, scenario, AS, IP, target.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Callable, List, Optional, Sequence, Set, Tuple

from ..schemas import Alert, Decision
from ..utils.datetime import bucket_key, to_utc, utc_now
from .filters import DateRange, FilterState
from .window import filter_last_n_days

logger = logging.getLogger(__name__)

AlertPredicate = Callable[[Alert], bool]


@dataclass
class FilteredView:
    alerts: List[Alert] = field(default_factory=list)
    decisions: List[Decision] = field(default_factory=list)


@dataclass
class ResolvedViews:
    """Parallel views produced by one resolver pass.

    *active*   – every facet incl. date range, non-expired decisions
    *chart*    – every facet incl. date range, decisions incl. expired
    *context*  – every facet except date range, decisions incl. expired
    """

    active: FilteredView
    chart: FilteredView
    context: FilteredView
    global_total: int = 0
    total_alerts: int = 0
    total_decisions: int = 0


def in_date_range(
    item, date_range: DateRange, tz: Optional[tzinfo] = None
) -> bool:
    created_at = getattr(item, "created_at", None)
    if created_at is None:
        return False
    key = bucket_key(created_at, date_range.precision, tz)
    return date_range.start <= key <= date_range.end


class CrossFilterResolver:
    def __init__(
        self,
        *,
        tz: Optional[tzinfo] = None,
        join_on_alert_id: bool = False,
    ) -> None:
        self.tz = tz
        self.join_on_alert_id = join_on_alert_id

    # ── Decision join ───────────────────────────────────────────

    def join_decisions(
        self,
        decisions: Sequence[Decision],
        alerts: Sequence[Alert],
    ) -> List[Decision]:
        """Decisions belonging to *alerts*, matched on target IP.

        With ``join_on_alert_id`` a decision that names its alert joins on
        alert identity instead; decisions without ``alert_id`` still use IP.
        """
        ips: Set[str] = {a.source.ip for a in alerts if a.source.ip}
        alert_ids: Set[str] = set()
        if self.join_on_alert_id:
            alert_ids = {str(a.id) for a in alerts}

        out: List[Decision] = []
        for decision in decisions:
            alert_id = decision.detail.alert_id
            if self.join_on_alert_id and alert_id is not None:
                if str(alert_id) in alert_ids:
                    out.append(decision)
                continue
            if decision.value in ips:
                out.append(decision)
        return out

    # ── Facet pipeline ──────────────────────────────────────────

    def _steps(self, state: FilterState) -> List[Tuple[str, AlertPredicate]]:
        steps: List[Tuple[str, AlertPredicate]] = []
        if state.country is not None:
            steps.append(("country", lambda a, v=state.country: a.source.cn == v))
        if state.scenario is not None:
            steps.append(("scenario", lambda a, v=state.scenario: a.scenario == v))
        if state.as_name is not None:
            steps.append(("as", lambda a, v=state.as_name: a.source.as_name == v))
        if state.ip is not None:
            steps.append(("ip", lambda a, v=state.ip: a.source.ip == v))
        if state.target is not None:
            steps.append(("target", lambda a, v=state.target: a.target == v))
        return steps

    def apply(
        self,
        alerts: Sequence[Alert],
        decision_sets: Sequence[Sequence[Decision]],
        state: FilterState,
        *,
        include_date_range: bool = True,
    ) -> Tuple[List[Alert], List[List[Decision]]]:
        """Narrow *alerts* and every decision set in lockstep."""
        current_alerts = list(alerts)
        current_sets = [list(ds) for ds in decision_sets]

        date_range = state.date_range if include_date_range else None
        if date_range is not None:
            current_alerts = [
                a for a in current_alerts if in_date_range(a, date_range, self.tz)
            ]
            current_sets = [
                [d for d in ds if in_date_range(d, date_range, self.tz)]
                for ds in current_sets
            ]
            current_sets = [self.join_decisions(ds, current_alerts) for ds in current_sets]

        for name, predicate in self._steps(state):
            current_alerts = [a for a in current_alerts if predicate(a)]
            current_sets = [self.join_decisions(ds, current_alerts) for ds in current_sets]
            logger.debug("After %s facet: %d alert(s)", name, len(current_alerts))

        return current_alerts, current_sets

    def resolve(
        self,
        alerts: Sequence[Alert],
        active_decisions: Sequence[Decision],
        all_decisions: Sequence[Decision],
        state: FilterState,
        lookback_days: int,
        *,
        now: Optional[datetime] = None,
    ) -> ResolvedViews:
        now = to_utc(now or utc_now())
        alerts_in_window = filter_last_n_days(alerts, lookback_days, now=now, tz=self.tz)
        active_in_window = filter_last_n_days(
            active_decisions, lookback_days, now=now, tz=self.tz
        )
        all_in_window = filter_last_n_days(
            all_decisions, lookback_days, now=now, tz=self.tz
        )

        filtered_alerts, (active, chart) = self.apply(
            alerts_in_window, [active_in_window, all_in_window], state
        )
        context_alerts, (context_decisions,) = self.apply(
            alerts_in_window, [all_in_window], state, include_date_range=False
        )

        return ResolvedViews(
            active=FilteredView(alerts=filtered_alerts, decisions=active),
            chart=FilteredView(alerts=list(filtered_alerts), decisions=chart),
            context=FilteredView(alerts=context_alerts, decisions=context_decisions),
            global_total=len(alerts_in_window),
            total_alerts=len(alerts),
            total_decisions=len(active_decisions),
        )
