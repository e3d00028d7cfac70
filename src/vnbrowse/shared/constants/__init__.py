"""
vnbrowse Constants Module

This module provides centralized constants for the vnbrowse application.
All magic values and protocol constants are defined here to ensure
consistency across the codebase.
"""

from .api import APIConfig, Endpoint, Fields, Paging, StatsKeys, StoreLinks
from .cache import CacheConfig, CacheNamespace
from .http_codes import HTTPStatusCodes
from .labels import (
    DEFAULT_ADD_STATUS,
    DEFAULT_DISPLAY_STATUS,
    STATUS_LABEL_IDS,
    ListStatus,
    Permission,
)
from .system import BASE_MILLISECOND, BASE_MINUTE, BASE_SECOND, Application, Browsing, Logging

__all__ = [
    "BASE_MILLISECOND",
    "BASE_MINUTE",
    "BASE_SECOND",
    "DEFAULT_ADD_STATUS",
    "DEFAULT_DISPLAY_STATUS",
    "STATUS_LABEL_IDS",
    "APIConfig",
    "Application",
    "Browsing",
    "CacheConfig",
    "CacheNamespace",
    "Endpoint",
    "Fields",
    "HTTPStatusCodes",
    "ListStatus",
    "Logging",
    "Paging",
    "Permission",
    "StatsKeys",
    "StoreLinks",
]
