"""Tests for crowdlens.worker.refresh — refresh cycles and polling."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import replace
from datetime import datetime, timezone

from crowdlens.config import get_settings
from crowdlens.dashboard import DashboardContext
from crowdlens.schemas import Alert, DashboardConfig, Decision
from crowdlens.storage import MemoryStateStore
from crowdlens.worker.refresh import RefreshController
from tests.in_memory_source import InMemoryDataSource

UTC = timezone.utc
NOW = datetime(2024, 6, 10, 12, 0, tzinfo=UTC)


def _context() -> DashboardContext:
    settings = replace(
        get_settings(), display_timezone="UTC", lookback_period="168h", refresh_interval="manual"
    )
    return DashboardContext(settings, MemoryStateStore())


def _source(**kwargs) -> InMemoryDataSource:
    return InMemoryDataSource(
        config=DashboardConfig(lookback_days=7),
        alerts=[Alert(id=1, created_at="2024-06-09T10:00:00Z", source={"ip": "1.1.1.1"})],
        decisions=[
            Decision(id="d1", value="1.1.1.1", created_at="2024-06-09T10:00:00Z"),
            Decision(id="d0", value="1.1.1.1", created_at="2024-06-08T10:00:00Z", expired=True),
        ],
        **kwargs,
    )


class BlockingSource(InMemoryDataSource):
    """Holds ``fetch_alerts`` until released so a cycle stays in flight."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.release = threading.Event()

    def fetch_alerts(self):
        self.release.wait(timeout=2)
        return super().fetch_alerts()


# ── Cycles ──────────────────────────────────────────────────────


class TestRefreshCycle:
    def test_successful_cycle_applies_snapshot(self):
        context = _context()
        controller = RefreshController(context, _source())
        assert asyncio.run(controller.refresh(now=NOW)) is True
        assert context.online is True
        assert context.loading is False
        assert context.last_updated == NOW
        assert [d.id for d in context.decisions] == ["d1"]
        assert {d.id for d in context.all_decisions} == {"d1", "d0"}

    def test_config_fetched_before_the_batch(self):
        source = _source()
        asyncio.run(RefreshController(_context(), source).refresh(now=NOW))
        assert source.calls[0] == "config"
        assert sorted(source.calls[1:]) == ["alerts", "all_decisions", "decisions"]

    def test_failure_keeps_previous_data_and_goes_offline(self, caplog):
        context = _context()
        asyncio.run(RefreshController(context, _source()).refresh(now=NOW))

        failing = _source(fail_on="all_decisions")
        failing.alerts = []
        result = asyncio.run(RefreshController(context, failing).refresh())
        assert result is False
        assert context.online is False
        assert context.loading is False
        assert [a.id for a in context.alerts] == [1]
        assert context.last_updated == NOW
        assert "refresh failed" in caplog.text

    def test_foreground_sets_loading_background_does_not(self):
        context = _context()
        seen = []

        class Spy(InMemoryDataSource):
            def fetch_alerts(self):
                seen.append(context.loading)
                return []

        controller = RefreshController(context, Spy())

        async def scenario():
            await controller.refresh(background=False)
            await controller.refresh(background=True)

        asyncio.run(scenario())
        assert seen == [True, False]


# ── Overlap guard ───────────────────────────────────────────────


class TestOverlap:
    def test_background_skipped_while_in_flight(self):
        source = BlockingSource(config=DashboardConfig(lookback_days=7))
        controller = RefreshController(_context(), source)

        async def scenario():
            first = asyncio.create_task(controller.refresh())
            await asyncio.sleep(0.05)
            assert controller.in_flight is True
            skipped = await controller.refresh(background=True)
            source.release.set()
            return skipped, await first

        skipped, first = asyncio.run(scenario())
        assert skipped is False
        assert first is True
        assert source.calls.count("config") == 1

    def test_foreground_waits_for_in_flight_cycle(self):
        source = BlockingSource(config=DashboardConfig(lookback_days=7))
        controller = RefreshController(_context(), source)

        async def scenario():
            first = asyncio.create_task(controller.refresh())
            await asyncio.sleep(0.05)
            second = asyncio.create_task(controller.refresh())
            await asyncio.sleep(0.05)
            assert source.calls.count("config") == 1
            source.release.set()
            return await first, await second

        assert asyncio.run(scenario()) == (True, True)
        assert source.calls.count("config") == 2


# ── Polling ─────────────────────────────────────────────────────


class TestPolling:
    def test_initial_refresh_and_stop(self):
        context = _context()
        source = _source()
        controller = RefreshController(context, source)

        async def scenario():
            controller.start()
            await asyncio.sleep(0.05)
            assert controller.running is True
            await controller.stop()
            assert controller.running is False

        asyncio.run(scenario())
        assert source.calls.count("config") == 1
        assert context.online is True

    def test_interval_triggers_background_cycles(self):
        context = _context()
        source = _source()
        controller = RefreshController(context, source)

        async def scenario():
            controller.start(initial_refresh=False)
            controller.set_interval(0)
            await asyncio.sleep(0.05)
            assert source.calls == []
            controller.set_interval(1)
            await asyncio.sleep(1.3)
            await controller.stop()

        asyncio.run(scenario())
        assert source.calls.count("config") >= 1
        assert context.preferences.refresh_interval == 1

    def test_stop_without_start(self):
        asyncio.run(RefreshController(_context(), _source()).stop())
