"""Tests for crowdlens.analytics.resolver — cross-filter resolution."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from crowdlens.analytics.filters import DateRange, FilterState
from crowdlens.analytics.resolver import CrossFilterResolver, in_date_range
from crowdlens.schemas import Alert, Decision

UTC = timezone.utc
NOW = datetime(2024, 6, 10, 12, 0, tzinfo=UTC)


def _alert(alert_id, created_at, ip, cn="US", scenario="crowdsecurity/ssh-bf", as_name="OVH", target=None):
    return Alert(
        id=alert_id,
        created_at=created_at,
        scenario=scenario,
        target=target,
        source={"ip": ip, "cn": cn, "as_name": as_name},
    )


def _decision(decision_id, value, created_at="2024-06-09T12:00:00Z", expired=False, alert_id=None):
    return Decision(
        id=decision_id,
        value=value,
        created_at=created_at,
        expired=expired,
        detail={"alert_id": alert_id},
    )


def _example():
    alerts = [
        _alert(1, "2024-06-08T10:00:00Z", "1.1.1.1", "US"),
        _alert(2, "2024-06-09T23:50:00Z", "2.2.2.2", "DE"),
    ]
    decisions = [_decision("d1", "1.1.1.1"), _decision("d2", "2.2.2.2")]
    return alerts, decisions


# ── IP join ─────────────────────────────────────────────────────


class TestJoinDecisions:
    def test_joins_on_source_ip(self):
        alerts, decisions = _example()
        joined = CrossFilterResolver(tz=UTC).join_decisions(decisions, alerts[:1])
        assert [d.id for d in joined] == ["d1"]

    def test_non_ip_decisions_drop_out(self):
        alerts, _ = _example()
        decisions = [_decision("r1", "10.0.0.0/8")]
        assert CrossFilterResolver(tz=UTC).join_decisions(decisions, alerts) == []

    def test_range_alert_does_not_join_its_range_decision(self):
        alert = Alert(
            id=7,
            created_at="2024-06-09T10:00:00Z",
            source={"scope": "Range", "value": "10.0.0.0/8", "cn": "US"},
        )
        decisions = [_decision("r1", "10.0.0.0/8")]
        resolver = CrossFilterResolver(tz=UTC)
        assert resolver.join_decisions(decisions, [alert]) == []

        views = resolver.resolve(
            [alert], decisions, decisions, FilterState(country="US"), 7, now=NOW
        )
        assert [a.id for a in views.active.alerts] == [7]
        assert views.active.decisions == []
        assert views.chart.decisions == []

    def test_ip_facet_ignores_source_value(self):
        alerts = [
            Alert(
                id=7,
                created_at="2024-06-09T10:00:00Z",
                source={"scope": "Range", "value": "10.0.0.0/8", "cn": "US"},
            ),
            _alert(8, "2024-06-09T11:00:00Z", "1.1.1.1"),
        ]
        resolver = CrossFilterResolver(tz=UTC)
        views = resolver.resolve(alerts, [], [], FilterState(ip="10.0.0.0/8"), 7, now=NOW)
        assert views.active.alerts == []

    def test_alert_id_join_when_enabled(self):
        alerts, _ = _example()
        decisions = [
            _decision("d1", "9.9.9.9", alert_id=1),
            _decision("d2", "1.1.1.1", alert_id=2),
            _decision("d3", "1.1.1.1"),
        ]
        resolver = CrossFilterResolver(tz=UTC, join_on_alert_id=True)
        joined = resolver.join_decisions(decisions, alerts[:1])
        assert [d.id for d in joined] == ["d1", "d3"]


# ── Resolve ─────────────────────────────────────────────────────


class TestResolve:
    def test_country_example(self):
        alerts, decisions = _example()
        state = FilterState().toggle("country", "US")
        views = CrossFilterResolver(tz=UTC).resolve(
            alerts, decisions, decisions, state, 7, now=NOW
        )
        assert [a.id for a in views.active.alerts] == [1]
        assert [d.id for d in views.active.decisions] == ["d1"]

    def test_no_facets_keeps_everything_in_window(self):
        alerts, decisions = _example()
        views = CrossFilterResolver(tz=UTC).resolve(
            alerts, decisions, decisions, FilterState(), 7, now=NOW
        )
        assert len(views.active.alerts) == 2
        assert len(views.active.decisions) == 2
        assert views.global_total == 2

    def test_lookback_trims_before_filtering(self):
        alerts, decisions = _example()
        old = _alert(3, NOW - timedelta(days=8), "1.1.1.1")
        views = CrossFilterResolver(tz=UTC).resolve(
            alerts + [old], decisions, decisions, FilterState(), 7, now=NOW
        )
        assert views.global_total == 2
        assert views.total_alerts == 3

    def test_chart_uses_expired_decisions(self):
        alerts, _ = _example()
        active = [_decision("d1", "1.1.1.1")]
        everything = active + [_decision("d0", "1.1.1.1", expired=True)]
        views = CrossFilterResolver(tz=UTC).resolve(
            alerts, active, everything, FilterState(), 7, now=NOW
        )
        assert [d.id for d in views.active.decisions] == ["d1"]
        assert {d.id for d in views.chart.decisions} == {"d1", "d0"}
        assert views.total_decisions == 1

    def test_context_ignores_date_range(self):
        alerts, decisions = _example()
        state = (
            FilterState()
            .toggle("scenario", "crowdsecurity/ssh-bf")
            .with_date_range(DateRange("2024-06-08", "2024-06-08", "day"))
        )
        views = CrossFilterResolver(tz=UTC).resolve(
            alerts, decisions, decisions, state, 7, now=NOW
        )
        assert [a.id for a in views.chart.alerts] == [1]
        assert [a.id for a in views.context.alerts] == [1, 2]
        assert {d.id for d in views.context.decisions} == {"d1", "d2"}

    def test_date_range_filters_decisions_by_their_own_time(self):
        alerts, _ = _example()
        decisions = [
            _decision("d1", "1.1.1.1", created_at="2024-06-08T11:00:00Z"),
            _decision("d1-late", "1.1.1.1", created_at="2024-06-09T11:00:00Z"),
        ]
        state = FilterState().with_date_range(DateRange("2024-06-08", "2024-06-08", "day"))
        views = CrossFilterResolver(tz=UTC).resolve(
            alerts, decisions, decisions, state, 7, now=NOW
        )
        assert [d.id for d in views.active.decisions] == ["d1"]

    def test_adding_facets_never_grows_the_view(self):
        alerts = [
            _alert(i, NOW - timedelta(hours=i), f"10.0.0.{i % 4}", cn="US" if i % 2 else "DE",
                   scenario=f"s/{i % 3}")
            for i in range(1, 30)
        ]
        decisions = [_decision(f"d{i}", f"10.0.0.{i}") for i in range(4)]
        resolver = CrossFilterResolver(tz=UTC)
        sizes = []
        state = FilterState()
        for facet, value in [("country", "US"), ("scenario", "s/1"), ("ip", "10.0.0.1")]:
            state = state.toggle(facet, value)
            views = resolver.resolve(alerts, decisions, decisions, state, 7, now=NOW)
            sizes.append((len(views.active.alerts), len(views.active.decisions)))
        assert sizes == sorted(sizes, reverse=True)
        ips = {a.source.ip for a in views.active.alerts}
        assert all(d.value in ips for d in views.active.decisions)

    def test_target_facet(self):
        alerts = [
            _alert(1, "2024-06-09T10:00:00Z", "1.1.1.1", target="a.example.com"),
            _alert(2, "2024-06-09T11:00:00Z", "2.2.2.2", target="b.example.com"),
        ]
        state = FilterState().toggle("target", "b.example.com")
        views = CrossFilterResolver(tz=UTC).resolve(alerts, [], [], state, 7, now=NOW)
        assert [a.id for a in views.active.alerts] == [2]

    def test_empty_inputs(self):
        views = CrossFilterResolver(tz=UTC).resolve([], [], [], FilterState(country="US"), 7, now=NOW)
        assert views.active.alerts == []
        assert views.context.decisions == []
        assert views.global_total == 0


def test_in_date_range_uses_precision():
    alert = _alert(1, "2024-06-08T10:30:00Z", "1.1.1.1")
    assert in_date_range(alert, DateRange("2024-06-08T10", "2024-06-08T10", "hour"), UTC)
    assert not in_date_range(alert, DateRange("2024-06-08T11", "2024-06-08T12", "hour"), UTC)
    assert not in_date_range(Alert(id=2), DateRange("2024-06-08", "2024-06-08", "day"), UTC)
