"""Configuration package for vnbrowse."""

from vnbrowse.config.loader import get_config, load_settings, reload_config, reset_config
from vnbrowse.config.models import (
    ApiSettings,
    AppSettings,
    BrowsingSettings,
    CacheSettings,
    LoggingSettings,
    Settings,
)

__all__ = [
    "ApiSettings",
    "AppSettings",
    "BrowsingSettings",
    "CacheSettings",
    "LoggingSettings",
    "Settings",
    "get_config",
    "load_settings",
    "reload_config",
    "reset_config",
]
