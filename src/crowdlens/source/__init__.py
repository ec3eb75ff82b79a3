from .base import DataSource
from .factory import create_data_source
from .lapi import LapiAuthError, LapiClient, LapiError
from .lapi_source import LapiDataSource, dashboard_config

__all__ = [
    "DataSource",
    "LapiAuthError",
    "LapiClient",
    "LapiDataSource",
    "LapiError",
    "create_data_source",
    "dashboard_config",
]
