"""Refresh cycles and the polling timer.

A refresh cycle fetches the config, then the alerts, the active
decisions and all decisions concurrently.  The batch is all-or-nothing:
if any fetch fails, the context is marked offline and keeps its previous
snapshot.

Two kinds of cycle exist:

* **foreground** (user action) toggles the context's ``loading`` flag and,
  when another cycle is in flight, waits for it and then runs;
* **background** (polling timer) leaves ``loading`` alone and is skipped
  outright while another cycle is in flight.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from ..dashboard import DashboardContext
from ..source.base import DataSource

logger = logging.getLogger(__name__)


class RefreshController:
    def __init__(self, context: DashboardContext, source: DataSource) -> None:
        self.context = context
        self.source = source
        self._lock = asyncio.Lock()
        self._wake = asyncio.Event()
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Cycles ──────────────────────────────────────────────────

    async def refresh(
        self, background: bool = False, now: Optional[datetime] = None
    ) -> bool:
        """Run one cycle; returns ``True`` when a new snapshot was applied."""
        if background and self._lock.locked():
            logger.debug("Background refresh skipped: a cycle is in flight")
            return False
        async with self._lock:
            return await self._run_cycle(background, now)

    async def _run_cycle(self, background: bool, now: Optional[datetime]) -> bool:
        if not background:
            self.context.set_loading(True)
        try:
            config = await asyncio.to_thread(self.source.fetch_config)
            alerts, decisions, all_decisions = await asyncio.gather(
                asyncio.to_thread(self.source.fetch_alerts),
                asyncio.to_thread(self.source.fetch_decisions, False),
                asyncio.to_thread(self.source.fetch_decisions, True),
            )
        except Exception:
            logger.exception(
                "%s refresh failed; keeping previous data",
                "Background" if background else "Foreground",
            )
            self.context.mark_offline()
            return False
        finally:
            if not background:
                self.context.set_loading(False)

        self.context.apply_snapshot(config, alerts, decisions, all_decisions, now=now)
        return True

    # ── Polling ─────────────────────────────────────────────────

    def start(self, initial_refresh: bool = True) -> None:
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._poll_loop(initial_refresh))

    async def stop(self) -> None:
        self._stop.set()
        self._wake.set()
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def set_interval(self, seconds: Optional[int]) -> Optional[int]:
        """Persist a new interval (``0`` = off) and restart the wait with it."""
        value = self.context.set_refresh_interval(seconds)
        self._wake.set()
        return value

    async def _poll_loop(self, initial_refresh: bool) -> None:
        if initial_refresh:
            await self.refresh()
        while not self._stop.is_set():
            self._wake.clear()
            interval = self.context.refresh_interval
            try:
                # no timeout while polling is off; only a wake-up ends the wait
                await asyncio.wait_for(
                    self._wake.wait(), timeout=interval if interval > 0 else None
                )
                continue
            except asyncio.TimeoutError:
                pass
            try:
                await self.refresh(background=True)
            except Exception:
                logger.exception("Background refresh cycle crashed")
        logger.info("Refresh polling stopped")
