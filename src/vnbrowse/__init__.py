"""vnbrowse: browsing client for the visual novel catalog API."""

from vnbrowse.shared.constants import Application

__version__ = Application.VERSION

__all__ = ["__version__"]
