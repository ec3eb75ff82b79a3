from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..config import Settings
from ..schemas import Alert, DashboardConfig, Decision
from .base import DataSource
from .lapi import LapiClient
from .normalize import extract_decisions, merge_alert_pages, normalize_alerts

logger = logging.getLogger(__name__)


def dashboard_config(settings: Settings) -> DashboardConfig:
    return DashboardConfig(
        lookback_period=settings.lookback_period,
        lookback_hours=settings.lookback_hours,
        lookback_days=settings.lookback_days,
        refresh_interval=settings.refresh_interval_seconds,
    )


class LapiDataSource(DataSource):
    """Reads alerts and decisions from a CrowdSec LAPI as a watcher.

    Alerts are queried once per origin and once per scope, which leaves
    out community-blocklist alerts, then merged by id.  Decisions are
    not readable by watchers directly and are extracted from alerts.
    """

    def __init__(self, client: LapiClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    def fetch_config(self) -> DashboardConfig:
        return dashboard_config(self.settings)

    def _fetch_raw_alerts(self, has_active_decision: bool = False) -> List[Dict[str, Any]]:
        since = self.settings.lookback_period
        limit = self.settings.crowdsec_alert_limit
        pages = []
        for origin in self.settings.crowdsec_origins_list:
            pages.append(
                self.client.get_alerts(
                    since=since,
                    origin=origin,
                    has_active_decision=has_active_decision,
                    limit=limit,
                )
            )
        for scope in self.settings.crowdsec_scopes_list:
            pages.append(
                self.client.get_alerts(
                    since=since,
                    scope=scope,
                    has_active_decision=has_active_decision,
                    limit=limit,
                )
            )
        return merge_alert_pages(pages)

    def fetch_alerts(self) -> List[Alert]:
        raws = self._fetch_raw_alerts()
        alerts = normalize_alerts(raws)
        logger.info(
            "Fetched %d unique alerts since %s", len(alerts), self.settings.lookback_period
        )
        return alerts

    def fetch_decisions(
        self, include_expired: bool = False, now: Optional[datetime] = None
    ) -> List[Decision]:
        raws = self._fetch_raw_alerts(has_active_decision=not include_expired)
        decisions = extract_decisions(raws, include_expired=include_expired, now=now)
        logger.info(
            "Fetched %d %s decisions from %d alerts",
            len(decisions),
            "all" if include_expired else "active",
            len(raws),
        )
        return decisions
