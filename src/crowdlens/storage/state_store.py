from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """Key-value store for client state that survives a restart.

    Values are plain JSON-serializable data; there is no schema versioning.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError

    def update(self, values: Mapping[str, Any]) -> None:
        """Set several keys at once."""
        for key, value in values.items():
            self.set(key, value)


class MemoryStateStore(StateStore):
    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStateStore(StateStore):
    """Whole-file JSON store, rewritten atomically on every ``set`` or ``update``.

    A missing, unreadable or corrupt file reads as empty.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            logger.warning("Unreadable state file %s; starting empty", self.path, exc_info=True)
            return {}
        if not isinstance(data, dict):
            logger.warning("State file %s does not hold an object; starting empty", self.path)
            return {}
        return data

    def _flush(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(".tmp")
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(self._data, fh, ensure_ascii=True, sort_keys=True)
            tmp_path.replace(self.path)
        except (OSError, TypeError, ValueError):
            logger.warning("Failed to persist state to %s", self.path, exc_info=True)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def update(self, values: Mapping[str, Any]) -> None:
        self._data.update(values)
        self._flush()

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()
