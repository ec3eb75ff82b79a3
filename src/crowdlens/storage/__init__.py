from .factory import create_state_store
from .preferences import Preferences, load_preferences, save_preferences
from .state_store import JsonFileStateStore, MemoryStateStore, StateStore

__all__ = [
    "StateStore",
    "JsonFileStateStore",
    "MemoryStateStore",
    "Preferences",
    "create_state_store",
    "load_preferences",
    "save_preferences",
]
