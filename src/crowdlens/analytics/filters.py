"""Immutable cross-filter state.

Each facet is unset (``None``) or holds exactly one value; facets combine
with logical AND.  Setting a facet to the value it already holds clears
it.  Every mutation returns a new :class:`FilterState`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from ..utils.datetime import GRANULARITIES, key_precision

logger = logging.getLogger(__name__)

# facet name (wire / query-param form) -> dataclass attribute
FACETS: Dict[str, str] = {
    "country": "country",
    "scenario": "scenario",
    "as": "as_name",
    "ip": "ip",
    "target": "target",
}


@dataclass(frozen=True)
class DateRange:
    start: str
    end: str
    precision: str

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start, "end": self.end, "precision": self.precision}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["DateRange"]:
        """Build a range from stored data, ``None`` if anything is off."""
        if not isinstance(data, dict):
            return None
        start, end = data.get("start"), data.get("end")
        precision = data.get("precision")
        if not isinstance(start, str) or not isinstance(end, str):
            return None
        if precision not in GRANULARITIES:
            return None
        if key_precision(start) != precision or key_precision(end) != precision:
            return None
        if start > end:
            start, end = end, start
        return cls(start=start, end=end, precision=precision)


@dataclass(frozen=True)
class FilterState:
    date_range: Optional[DateRange] = None
    date_range_sticky: bool = False
    country: Optional[str] = None
    scenario: Optional[str] = None
    as_name: Optional[str] = None
    ip: Optional[str] = None
    target: Optional[str] = None

    # ── Queries ────────────────────────────────────────────────

    def get(self, facet: str) -> Optional[str]:
        return getattr(self, _facet_attr(facet))

    @property
    def has_active_filters(self) -> bool:
        if self.date_range is not None:
            return True
        return any(getattr(self, attr) is not None for attr in FACETS.values())

    @property
    def has_facets(self) -> bool:
        """True when any facet other than the date range is set."""
        return any(getattr(self, attr) is not None for attr in FACETS.values())

    # ── Mutations ──────────────────────────────────────────────

    def toggle(self, facet: str, value: Optional[str]) -> "FilterState":
        attr = _facet_attr(facet)
        current = getattr(self, attr)
        new_value = None if not value or current == value else value
        return replace(self, **{attr: new_value})

    def toggle_date(self, key: str, precision: str) -> "FilterState":
        """Select a single bucket, or clear it when it is the active range."""
        current = self.date_range
        if current and current.start == key and current.end == key:
            return self.clear_date_range()
        return self.with_date_range(DateRange(key, key, precision), sticky=False)

    def with_date_range(
        self, date_range: Optional[DateRange], sticky: bool = False
    ) -> "FilterState":
        if date_range is None:
            return self.clear_date_range()
        return replace(self, date_range=date_range, date_range_sticky=bool(sticky))

    def clear_date_range(self) -> "FilterState":
        return replace(self, date_range=None, date_range_sticky=False)

    def reset(self) -> "FilterState":
        return FilterState()

    # ── Serialization ──────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "date_range": self.date_range.to_dict() if self.date_range else None,
            "date_range_sticky": self.date_range_sticky,
        }
        for facet, attr in FACETS.items():
            data[facet] = getattr(self, attr)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "FilterState":
        """Rebuild a state from persisted data; invalid parts fall back to unset."""
        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Ignoring stored filter state of type %s", type(data).__name__)
            return cls()
        values: Dict[str, Any] = {}
        for facet, attr in FACETS.items():
            value = data.get(facet)
            if value is None:
                continue
            if isinstance(value, str) and value:
                values[attr] = value
            else:
                logger.warning("Ignoring stored %s filter value %r", facet, value)
        date_range = DateRange.from_dict(data.get("date_range"))
        if data.get("date_range") is not None and date_range is None:
            logger.warning("Ignoring stored date range %r", data.get("date_range"))
        values["date_range"] = date_range
        values["date_range_sticky"] = bool(
            date_range is not None and data.get("date_range_sticky") is True
        )
        return cls(**values)

    def to_query_params(self) -> Dict[str, str]:
        """Drill-down query parameters for the alert and decision lists."""
        params: Dict[str, str] = {}
        if self.date_range:
            params["dateStart"] = self.date_range.start
            params["dateEnd"] = self.date_range.end
        for facet, attr in FACETS.items():
            value = getattr(self, attr)
            if value is not None:
                params[facet] = value
        return params


def _facet_attr(facet: str) -> str:
    try:
        return FACETS[facet]
    except KeyError:
        raise ValueError(
            f"Unknown facet {facet!r}; expected one of {', '.join(FACETS)}"
        ) from None

