"""
System Configuration Constants

This module contains constants related to application metadata,
time units and logging defaults.
"""

# =============================================================================
# BASE CONSTANTS (Foundation values used by other constants)
# =============================================================================

BASE_SECOND = 1
BASE_MINUTE = 60 * BASE_SECOND
BASE_MILLISECOND = 0.001


class Application:
    """Application metadata constants."""

    NAME = "vnbrowse"
    VERSION = "0.1.0"
    DESCRIPTION = "Browsing client for the visual novel catalog API"
    ENV_PREFIX = "VNBROWSE_"


class Logging:
    """Logging configuration constants."""

    DEFAULT_LEVEL = "WARNING"
    LOGGER_NAME = "vnbrowse"


class Browsing:
    """List browsing defaults."""

    DEBOUNCE_MS = 350
    PAGE_SIZE = 20
    RECENT_SEARCH_LIMIT = 8
