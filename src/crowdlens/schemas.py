from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils.datetime import parse_iso_datetime

# ── Data contracts (read-only, owned by the data source) ────────


class AlertSource(BaseModel):
    ip: Optional[str] = None
    value: Optional[str] = None
    cn: Optional[str] = None
    as_name: Optional[str] = None
    as_number: Optional[str] = None
    scope: Optional[str] = None
    range: Optional[str] = None


class Alert(BaseModel):
    id: Union[int, str]
    created_at: Optional[datetime] = None
    scenario: Optional[str] = None
    message: Optional[str] = None
    source: AlertSource = Field(default_factory=AlertSource)
    target: Optional[str] = None
    events_count: int = 0

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_created_at(cls, value: Any) -> Optional[datetime]:
        return parse_iso_datetime(value)

    @field_validator("source", mode="before")
    @classmethod
    def _default_source(cls, value: Any) -> Any:
        return value if value is not None else {}

    @property
    def source_ip(self) -> Optional[str]:
        return self.source.ip or self.source.value


class DecisionDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reason: Optional[str] = None
    country: Optional[str] = None
    as_: Optional[str] = Field(default=None, alias="as")
    action: Optional[str] = None
    duration: Optional[str] = None
    alert_id: Optional[Union[int, str]] = None
    origin: Optional[str] = None
    expiration: Optional[str] = None
    events_count: int = 0
    target: Optional[str] = None
    message: Optional[str] = None


class Decision(BaseModel):
    id: Union[int, str]
    created_at: Optional[datetime] = None
    value: Optional[str] = None
    expired: bool = False
    scenario: Optional[str] = None
    type: Optional[str] = None
    stop_at: Optional[datetime] = None
    detail: DecisionDetail = Field(default_factory=DecisionDetail)

    @field_validator("created_at", "stop_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> Optional[datetime]:
        return parse_iso_datetime(value)

    @field_validator("detail", mode="before")
    @classmethod
    def _default_detail(cls, value: Any) -> Any:
        return value if value is not None else {}


class DashboardConfig(BaseModel):
    lookback_period: str = "168h"
    lookback_hours: int = 168
    lookback_days: int = 7
    refresh_interval: int = 0


# ── View outputs ────────────────────────────────────────────────


class Bucket(BaseModel):
    key: str
    label: str
    count: int = 0
    full_date: datetime


class ActivityPoint(BaseModel):
    key: str
    label: str
    full_date: datetime
    alerts: int = 0
    decisions: int = 0


class RankedItem(BaseModel):
    label: str
    count: int
    value: str
    percentage: Optional[float] = None


class BrushWindow(BaseModel):
    start_index: int
    end_index: int


class DashboardStatistics(BaseModel):
    top_ips: List[RankedItem] = Field(default_factory=list)
    top_countries: List[RankedItem] = Field(default_factory=list)
    all_countries: List[RankedItem] = Field(default_factory=list)
    top_scenarios: List[RankedItem] = Field(default_factory=list)
    top_as: List[RankedItem] = Field(default_factory=list)
    top_targets: List[RankedItem] = Field(default_factory=list)
    alerts_history: List[Bucket] = Field(default_factory=list)
    decisions_history: List[Bucket] = Field(default_factory=list)
    activity: List[ActivityPoint] = Field(default_factory=list)
    slider: List[ActivityPoint] = Field(default_factory=list)
    brush: BrushWindow = Field(default_factory=lambda: BrushWindow(start_index=0, end_index=0))


class DashboardSummary(BaseModel):
    total_alerts: int = 0
    total_decisions: int = 0
    filtered_alerts: int = 0
    filtered_decisions: int = 0
    global_alerts: int = 0


class DashboardView(BaseModel):
    online: bool
    loading: bool
    last_updated: Optional[datetime] = None
    lookback_days: int
    granularity: str
    percentage_basis: str
    filters: Dict[str, Any]
    has_active_filters: bool
    filter_query: Dict[str, str] = Field(default_factory=dict)
    summary: DashboardSummary
    statistics: DashboardStatistics


# ── API requests ────────────────────────────────────────────────


class FacetToggleRequest(BaseModel):
    facet: str
    value: Optional[str] = Field(default=None, min_length=1)


class DateToggleRequest(BaseModel):
    key: str


class BrushRequest(BaseModel):
    start_index: int
    end_index: int
    # set on drag end to commit without waiting for the quiet window
    final: bool = False


class GranularityRequest(BaseModel):
    granularity: str


class PreferencesRequest(BaseModel):
    percentage_basis: Optional[str] = None
    theme: Optional[str] = None
    refresh_interval: Optional[int] = Field(default=None, ge=0)
