"""Typed view over the persisted client state.

Every stored value is validated on load; anything missing, outdated or
corrupt falls back to its default instead of failing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..analytics.filters import FilterState
from ..analytics.ranking import BASIS_FILTERED, PERCENTAGE_BASES
from ..utils.datetime import DAY, GRANULARITIES
from .state_store import StateStore

logger = logging.getLogger(__name__)

KEY_GRANULARITY = "granularity"
KEY_FILTERS = "filters"
KEY_PERCENTAGE_BASIS = "percentage_basis"
KEY_REFRESH_INTERVAL = "refresh_interval"
KEY_THEME = "theme"

THEMES = ("light", "dark", "system")


@dataclass(frozen=True)
class Preferences:
    granularity: str = DAY
    filters: FilterState = field(default_factory=FilterState)
    percentage_basis: str = BASIS_FILTERED
    refresh_interval: Optional[int] = None
    theme: str = "system"


def _choice(allowed) -> Callable[[Any], bool]:
    return lambda value: value in allowed


def _interval(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _read(store: StateStore, key: str, default: Any, valid: Callable[[Any], bool]) -> Any:
    value = store.get(key, None)
    if value is None:
        return default
    if not valid(value):
        logger.warning("Ignoring stored %s value %r", key, value)
        return default
    return value


def _read_filters(store: StateStore, default: FilterState) -> FilterState:
    raw = store.get(KEY_FILTERS, None)
    if raw is None:
        return default
    return FilterState.from_dict(raw)


def load_preferences(
    store: StateStore, defaults: Optional[Preferences] = None
) -> Preferences:
    defaults = defaults or Preferences()
    return Preferences(
        granularity=_read(store, KEY_GRANULARITY, defaults.granularity, _choice(GRANULARITIES)),
        filters=_read_filters(store, defaults.filters),
        percentage_basis=_read(
            store, KEY_PERCENTAGE_BASIS, defaults.percentage_basis, _choice(PERCENTAGE_BASES)
        ),
        refresh_interval=_read(
            store, KEY_REFRESH_INTERVAL, defaults.refresh_interval, _interval
        ),
        theme=_read(store, KEY_THEME, defaults.theme, _choice(THEMES)),
    )


def save_preferences(store: StateStore, prefs: Preferences) -> None:
    store.update(
        {
            KEY_GRANULARITY: prefs.granularity,
            KEY_FILTERS: prefs.filters.to_dict(),
            KEY_PERCENTAGE_BASIS: prefs.percentage_basis,
            KEY_REFRESH_INTERVAL: prefs.refresh_interval,
            KEY_THEME: prefs.theme,
        }
    )
