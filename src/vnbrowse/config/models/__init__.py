"""Configuration models for vnbrowse."""

from vnbrowse.config.models.api_settings import ApiSettings
from vnbrowse.config.models.app_settings import AppSettings, LoggingSettings
from vnbrowse.config.models.browsing_settings import BrowsingSettings
from vnbrowse.config.models.cache_settings import CacheSettings
from vnbrowse.config.models.settings import Settings

__all__ = [
    "ApiSettings",
    "AppSettings",
    "BrowsingSettings",
    "CacheSettings",
    "LoggingSettings",
    "Settings",
]
