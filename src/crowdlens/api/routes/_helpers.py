"""Shared singletons for the route sub-modules.

The data source and the state store come from their factories so tests
can swap them before this module is imported.
"""

from __future__ import annotations

from fastapi import HTTPException

from ...config import get_settings
from ...dashboard import DashboardContext
from ...source.factory import create_data_source
from ...storage.factory import create_state_store
from ...worker.refresh import RefreshController

# ── Singletons ──────────────────────────────────────────────────

settings = get_settings()
state_store = create_state_store(settings)
data_source = create_data_source(settings)
context = DashboardContext(settings, state_store)
refresher = RefreshController(context, data_source)


def bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))
