from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import tzinfo
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_LOOKBACK_RE = re.compile(r"^(\d+)([hmd])$")
_REFRESH_INTERVALS = {"30s": 30, "1m": 60, "5m": 300}


def _env_bool(name: str, default: str = "0") -> bool:
    value = os.getenv(name, default)
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def parse_lookback_hours(period: str, default: int = 168) -> int:
    """Convert a LAPI duration such as ``168h`` or ``7d`` to whole hours."""
    match = _LOOKBACK_RE.match(str(period or "").strip())
    if not match:
        return default
    value, unit = int(match.group(1)), match.group(2)
    if unit == "d":
        return value * 24
    if unit == "h":
        return value
    # minutes round up to a full hour
    return max(1, (value + 59) // 60)


def parse_refresh_interval(value: str) -> int:
    """Return the refresh interval in seconds; ``0`` means manual."""
    return _REFRESH_INTERVALS.get(str(value or "").strip().lower(), 0)


@dataclass(frozen=True)
class Settings:
    crowdsec_url: str = os.getenv("CROWDSEC_URL", "http://crowdsec:8080")
    crowdsec_user: str = os.getenv("CROWDSEC_USER", "")
    crowdsec_password: str = os.getenv("CROWDSEC_PASSWORD", "")
    crowdsec_timeout_seconds: float = float(os.getenv("CROWDSEC_TIMEOUT_SECONDS", "5"))
    crowdsec_alert_limit: int = int(os.getenv("CROWDSEC_ALERT_LIMIT", "10000"))
    crowdsec_origins: str = os.getenv(
        "CROWDSEC_ORIGINS", "cscli,crowdsec,cscli-import,manual,appsec,lists"
    )
    crowdsec_scopes: str = os.getenv("CROWDSEC_SCOPES", "Ip,Range")
    lookback_period: str = os.getenv("CROWDSEC_LOOKBACK_PERIOD", "168h")
    refresh_interval: str = os.getenv("CROWDSEC_REFRESH_INTERVAL", "manual")
    display_timezone: str = os.getenv("DISPLAY_TIMEZONE", "")
    brush_debounce_ms: int = int(os.getenv("BRUSH_DEBOUNCE_MS", "300"))
    top_k: int = int(os.getenv("TOP_K", "10"))
    hour_view_default_buckets: int = int(os.getenv("HOUR_VIEW_DEFAULT_BUCKETS", "12"))
    decision_join_on_alert_id: bool = _env_bool("DECISION_JOIN_ON_ALERT_ID", "0")
    state_path: str = os.getenv("STATE_PATH", "~/.crowdlens/state.json")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def has_credentials(self) -> bool:
        return bool(self.crowdsec_user and self.crowdsec_password)

    @property
    def crowdsec_origins_list(self) -> List[str]:
        return [o.strip() for o in self.crowdsec_origins.split(",") if o.strip()]

    @property
    def crowdsec_scopes_list(self) -> List[str]:
        return [s.strip() for s in self.crowdsec_scopes.split(",") if s.strip()]

    @property
    def lookback_hours(self) -> int:
        return parse_lookback_hours(self.lookback_period)

    @property
    def lookback_days(self) -> int:
        return max(1, int(self.lookback_hours / 24 + 0.5))

    @property
    def refresh_interval_seconds(self) -> int:
        return parse_refresh_interval(self.refresh_interval)

    @property
    def brush_debounce_seconds(self) -> float:
        return max(self.brush_debounce_ms, 0) / 1000.0

    @property
    def tz(self) -> Optional[tzinfo]:
        """Configured display zone, or ``None`` for the host's local time."""
        name = self.display_timezone.strip()
        if not name:
            return None
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            return None


def validate_settings(settings: Settings) -> Settings:
    if not _LOOKBACK_RE.match(settings.lookback_period.strip()):
        raise ValueError(
            "CROWDSEC_LOOKBACK_PERIOD must look like 168h, 7d or 90m, "
            f"got {settings.lookback_period!r}"
        )
    if settings.crowdsec_timeout_seconds <= 0:
        raise ValueError("CROWDSEC_TIMEOUT_SECONDS must be > 0")
    if settings.crowdsec_alert_limit <= 0:
        raise ValueError("CROWDSEC_ALERT_LIMIT must be > 0")
    if settings.brush_debounce_ms < 0:
        raise ValueError("BRUSH_DEBOUNCE_MS must be >= 0")
    if settings.top_k <= 0:
        raise ValueError("TOP_K must be > 0")
    if settings.hour_view_default_buckets <= 0:
        raise ValueError("HOUR_VIEW_DEFAULT_BUCKETS must be > 0")
    if settings.display_timezone.strip() and settings.tz is None:
        raise ValueError(
            f"DISPLAY_TIMEZONE is not a known zone: {settings.display_timezone!r}"
        )
    return settings


def get_settings() -> Settings:
    return Settings()
