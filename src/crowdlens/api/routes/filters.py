"""Gesture routes: facet toggles, brush drags and preference changes.

Every mutation answers with the recomputed dashboard view.  These
handlers are ``async`` so they run on the event loop that owns the
brush debounce timer.
"""

from __future__ import annotations

from fastapi import APIRouter

from ...schemas import (
    BrushRequest,
    DashboardView,
    DateToggleRequest,
    FacetToggleRequest,
    GranularityRequest,
    PreferencesRequest,
)
from ._helpers import bad_request, context, refresher

router = APIRouter()


@router.post("/api/filters/toggle", response_model=DashboardView)
async def toggle_filter(payload: FacetToggleRequest) -> DashboardView:
    try:
        context.toggle_filter(payload.facet, payload.value)
    except ValueError as exc:
        raise bad_request(exc) from exc
    return context.build_view()


@router.post("/api/filters/date", response_model=DashboardView)
async def toggle_date(payload: DateToggleRequest) -> DashboardView:
    try:
        context.toggle_date(payload.key)
    except ValueError as exc:
        raise bad_request(exc) from exc
    return context.build_view()


@router.post("/api/filters/reset", response_model=DashboardView)
async def reset_filters() -> DashboardView:
    context.reset_filters()
    return context.build_view()


@router.post("/api/brush")
async def brush(payload: BrushRequest):
    """Feed one drag event; the filter is committed once the drag settles."""
    if payload.start_index < 0 or payload.end_index < 0:
        raise bad_request(ValueError("Brush indices must be >= 0"))
    selection = context.drag_brush(payload.start_index, payload.end_index)
    if payload.final:
        context.range_selector.flush()
    return {
        "date_range": selection.date_range.to_dict() if selection.date_range else None,
        "sticky": selection.sticky,
        "pending": context.range_selector.pending,
        "filters": context.filters.to_dict(),
    }


@router.post("/api/granularity", response_model=DashboardView)
async def set_granularity(payload: GranularityRequest) -> DashboardView:
    try:
        context.set_granularity(payload.granularity)
    except ValueError as exc:
        raise bad_request(exc) from exc
    return context.build_view()


@router.post("/api/preferences")
async def set_preferences(payload: PreferencesRequest):
    try:
        if payload.percentage_basis is not None:
            context.set_percentage_basis(payload.percentage_basis)
        if payload.theme is not None:
            context.set_theme(payload.theme)
        if "refresh_interval" in payload.model_fields_set:
            refresher.set_interval(payload.refresh_interval)
    except ValueError as exc:
        raise bad_request(exc) from exc
    prefs = context.preferences
    return {
        "granularity": prefs.granularity,
        "percentage_basis": prefs.percentage_basis,
        "theme": prefs.theme,
        "refresh_interval": context.refresh_interval,
    }
