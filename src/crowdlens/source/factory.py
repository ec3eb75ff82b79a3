from __future__ import annotations

from ..config import Settings
from .base import DataSource
from .lapi import LapiClient
from .lapi_source import LapiDataSource


def create_data_source(settings: Settings) -> DataSource:
    client = LapiClient(
        settings.crowdsec_url,
        settings.crowdsec_user,
        settings.crowdsec_password,
        timeout=settings.crowdsec_timeout_seconds,
    )
    return LapiDataSource(client, settings)
