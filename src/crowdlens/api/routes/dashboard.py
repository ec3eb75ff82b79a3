"""Read routes: dashboard view, config, health and manual refresh.

Handlers are ``async`` so view building is serialized with the gesture
routes on the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter

from ...schemas import DashboardConfig, DashboardView
from ._helpers import context, refresher

router = APIRouter()


@router.get("/api/dashboard", response_model=DashboardView)
async def get_dashboard() -> DashboardView:
    return context.build_view()


@router.get("/api/config", response_model=DashboardConfig)
async def get_config() -> DashboardConfig:
    return context.config


@router.get("/api/health")
async def health():
    return {
        "status": "ok",
        "online": context.online,
        "loading": context.loading,
        "last_updated": context.last_updated,
        "refresh_in_flight": refresher.in_flight,
        "refresh_interval": context.refresh_interval,
    }


@router.post("/api/refresh", response_model=DashboardView)
async def refresh() -> DashboardView:
    """Foreground refresh; waits for an in-flight cycle instead of skipping it."""
    await refresher.refresh(background=False)
    return context.build_view()
