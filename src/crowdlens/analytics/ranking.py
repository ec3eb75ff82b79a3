from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..schemas import Alert, RankedItem

BASIS_FILTERED = "filtered"
BASIS_GLOBAL = "global"
PERCENTAGE_BASES = (BASIS_FILTERED, BASIS_GLOBAL)

_EXCLUDED_LABELS = {"", "unknown"}

Extractor = Callable[[Alert], Optional[str]]


def _usable(value: Optional[str]) -> bool:
    if value is None:
        return False
    return str(value).strip().lower() not in _EXCLUDED_LABELS


def rank_by(
    items: Iterable[Alert],
    extractor: Extractor,
    limit: Optional[int] = 10,
    *,
    label: Optional[Callable[[str], str]] = None,
) -> List[RankedItem]:
    """Top-*limit* values of *extractor* by count, ties in first-seen order.

    Null, empty and ``Unknown`` values are never ranked.  ``limit=None``
    returns every value.
    """
    counts: Dict[str, int] = {}
    for item in items:
        value = extractor(item)
        if not _usable(value):
            continue
        counts[value] = counts.get(value, 0) + 1

    # sorted() is stable, so equal counts keep insertion (first-seen) order
    ranked = sorted(counts.items(), key=lambda pair: -pair[1])
    if limit is not None:
        ranked = ranked[: max(int(limit), 0)]
    return [
        RankedItem(label=label(value) if label else value, count=count, value=value)
        for value, count in ranked
    ]


# ── Extractors ──────────────────────────────────────────────────


def extract_ip(alert: Alert) -> Optional[str]:
    return alert.source_ip


def extract_country(alert: Alert) -> Optional[str]:
    return alert.source.cn


def extract_scenario(alert: Alert) -> Optional[str]:
    return alert.scenario


def extract_as(alert: Alert) -> Optional[str]:
    return alert.source.as_name


def extract_target(alert: Alert) -> Optional[str]:
    return alert.target


# ── Named rankings ──────────────────────────────────────────────


def top_ips(alerts: Iterable[Alert], limit: int = 10) -> List[RankedItem]:
    return rank_by(alerts, extract_ip, limit)


def top_countries(alerts: Iterable[Alert], limit: Optional[int] = 10) -> List[RankedItem]:
    """Countries keyed on the 2-letter code; the label is the upper-cased code."""
    return rank_by(alerts, extract_country, limit, label=str.upper)


def all_countries(alerts: Iterable[Alert]) -> List[RankedItem]:
    return top_countries(alerts, limit=None)


def top_scenarios(alerts: Iterable[Alert], limit: int = 10) -> List[RankedItem]:
    return rank_by(alerts, extract_scenario, limit)


def top_as(alerts: Iterable[Alert], limit: int = 10) -> List[RankedItem]:
    return rank_by(alerts, extract_as, limit)


def top_targets(alerts: Iterable[Alert], limit: int = 10) -> List[RankedItem]:
    return rank_by(alerts, extract_target, limit)


# ── Percentage basis ────────────────────────────────────────────


def normalize_basis(value: object, default: str = BASIS_FILTERED) -> str:
    text = str(value or "").strip().lower()
    return text if text in PERCENTAGE_BASES else default


def with_percentages(items: Sequence[RankedItem], total: int) -> List[RankedItem]:
    """Copy *items* with ``percentage`` computed against *total*."""
    out: List[RankedItem] = []
    for item in items:
        pct = round(item.count * 100.0 / total, 1) if total > 0 else 0.0
        out.append(item.model_copy(update={"percentage": pct}))
    return out


def percentage_total(basis: str, filtered_total: int, global_total: int) -> int:
    return global_total if normalize_basis(basis) == BASIS_GLOBAL else filtered_total
