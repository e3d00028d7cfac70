"""vnbrowse Shared Module.

This package contains constants, error handling and logging helpers used across vnbrowse.
"""

__all__ = ["constants", "errors", "logging"]
