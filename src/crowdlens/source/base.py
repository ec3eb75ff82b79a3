from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from ..schemas import Alert, DashboardConfig, Decision


class DataSource(ABC):
    """Read-only supplier of the raw collections the dashboard works on."""

    @abstractmethod
    def fetch_config(self) -> DashboardConfig:
        raise NotImplementedError

    @abstractmethod
    def fetch_alerts(self) -> List[Alert]:
        raise NotImplementedError

    @abstractmethod
    def fetch_decisions(self, include_expired: bool = False) -> List[Decision]:
        raise NotImplementedError
