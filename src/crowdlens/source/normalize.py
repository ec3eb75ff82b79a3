"""Turn raw LAPI alert payloads into :mod:`crowdlens.schemas` records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from ..schemas import Alert, Decision
from ..utils.datetime import parse_iso_datetime, to_utc, utc_now

logger = logging.getLogger(__name__)

TARGET_META_KEYS = ("target_fqdn", "target_host")
EXCLUDED_DECISION_ORIGINS = {"CAPI"}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _sort_key(raw: Dict[str, Any]) -> datetime:
    created_at = parse_iso_datetime(raw.get("created_at"))
    return to_utc(created_at) if created_at else _EPOCH


def merge_alert_pages(pages: Iterable[Iterable[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Deduplicate alerts across query pages by id, newest first.

    A later page wins when the same id appears twice.
    """
    by_id: Dict[Any, Dict[str, Any]] = {}
    for page in pages:
        for raw in page:
            if raw.get("id") is None:
                continue
            by_id[raw["id"]] = raw
    return sorted(by_id.values(), key=_sort_key, reverse=True)


def alert_target(raw: Dict[str, Any]) -> Optional[str]:
    """First ``target_fqdn`` / ``target_host`` found in the event metadata."""
    if raw.get("target"):
        return str(raw["target"])
    for key in TARGET_META_KEYS:
        for event in raw.get("events") or []:
            if not isinstance(event, dict):
                continue
            for meta in event.get("meta") or []:
                if isinstance(meta, dict) and meta.get("key") == key and meta.get("value"):
                    return str(meta["value"])
    return None


def normalize_alert(raw: Dict[str, Any]) -> Optional[Alert]:
    try:
        return Alert.model_validate(
            {
                "id": raw.get("id"),
                "created_at": raw.get("created_at"),
                "scenario": raw.get("scenario"),
                "message": raw.get("message"),
                "source": raw.get("source"),
                "target": alert_target(raw),
                "events_count": raw.get("events_count") or 0,
            }
        )
    except ValidationError as exc:
        logger.warning("Skipping malformed alert %r: %s", raw.get("id"), exc)
        return None


def normalize_alerts(raws: Iterable[Dict[str, Any]]) -> List[Alert]:
    out: List[Alert] = []
    for raw in raws:
        alert = normalize_alert(raw)
        if alert is not None:
            out.append(alert)
    return out


def extract_decisions(
    raw_alerts: Iterable[Dict[str, Any]],
    *,
    include_expired: bool = False,
    now: Optional[datetime] = None,
) -> List[Decision]:
    """Flatten the decisions embedded in alerts.

    Community-blocklist (CAPI) decisions are dropped, ids are deduplicated
    and ``expired`` is computed against *now*.  Sorted newest first.
    """
    now = to_utc(now or utc_now())
    seen = set()
    out: List[Decision] = []
    for alert in raw_alerts:
        decisions = alert.get("decisions")
        if not isinstance(decisions, list):
            continue
        source = alert.get("source") or {}
        for raw in decisions:
            if not isinstance(raw, dict):
                continue
            if raw.get("origin") in EXCLUDED_DECISION_ORIGINS:
                continue
            decision_id = raw.get("id")
            if decision_id is None or decision_id in seen:
                continue

            stop_at = parse_iso_datetime(raw.get("stop_at"))
            expired = stop_at is not None and to_utc(stop_at) < now
            if expired and not include_expired:
                continue
            seen.add(decision_id)

            scenario = raw.get("scenario") or alert.get("scenario")
            try:
                decision = Decision.model_validate(
                    {
                        "id": decision_id,
                        "created_at": raw.get("created_at") or alert.get("created_at"),
                        "value": raw.get("value"),
                        "expired": expired,
                        "scenario": scenario or "N/A",
                        "type": raw.get("type"),
                        "stop_at": raw.get("stop_at"),
                        "detail": {
                            "reason": scenario or "manual",
                            "country": source.get("cn") or "Unknown",
                            "as": source.get("as_name") or "Unknown",
                            "action": raw.get("type"),
                            "duration": raw.get("duration") or "N/A",
                            "alert_id": alert.get("id"),
                            "origin": raw.get("origin") or source.get("scope") or "manual",
                            "expiration": raw.get("stop_at") or alert.get("stop_at"),
                            "events_count": alert.get("events_count") or 0,
                            "target": alert_target(alert),
                            "message": alert.get("message"),
                        },
                    }
                )
            except ValidationError as exc:
                logger.warning("Skipping malformed decision %r: %s", decision_id, exc)
                continue
            out.append(decision)

    out.sort(key=lambda d: to_utc(d.created_at) if d.created_at else _EPOCH, reverse=True)
    return out
