"""Routes package — assembles the sub-routers into a single ``router``."""

from __future__ import annotations

from fastapi import APIRouter

from ._helpers import context, refresher, settings  # noqa: F401
from .dashboard import router as dashboard_router
from .filters import router as filters_router

router = APIRouter()

router.include_router(dashboard_router)
router.include_router(filters_router)
