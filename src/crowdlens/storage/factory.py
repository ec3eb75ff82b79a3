from __future__ import annotations

from typing import TYPE_CHECKING

from .state_store import JsonFileStateStore, StateStore

if TYPE_CHECKING:
    from ..config import Settings


def create_state_store(settings: "Settings") -> StateStore:
    return JsonFileStateStore(settings.state_path)
