"""Settings loader and singleton manager.

This module handles:
- Environment variable loading from .env files
- Configuration file loading from TOML
- Thread-safe singleton pattern for Settings instance
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

import toml
from dotenv import load_dotenv
from pydantic import ValidationError

from vnbrowse.config.models.settings import Settings
from vnbrowse.shared.errors import ErrorCode, create_config_error

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "VNBROWSE_CONFIG"
DEFAULT_CONFIG_PATH = Path("config/vnbrowse.toml")
DEFAULT_ENV_FILE = Path(".env")


class SettingsLoader:
    """Thread-safe singleton manager for Settings.

    Uses double-checked locking to keep the common path lock-free.
    """

    _instance: Settings | None = None
    _lock: threading.RLock = threading.RLock()

    def get_config(self) -> Settings:
        """Get the global settings instance, loading it on first use."""
        if self._instance is None:
            with self._lock:
                if self._instance is None:
                    self._instance = load_settings()

        return self._instance

    def reload_config(self, config_path: str | Path | None = None) -> Settings:
        """Reload the global settings instance from configuration files."""
        with self._lock:
            self._instance = load_settings(config_path)

        return self._instance

    def reset(self) -> None:
        """Drop the cached instance (used by tests)."""
        with self._lock:
            self._instance = None


def _load_env_file(env_file: Path = DEFAULT_ENV_FILE) -> None:
    """Load environment variables from a .env file if one exists.

    Existing environment variables win over values in the file.
    """
    if env_file.exists():
        load_dotenv(env_file, override=False)
        logger.debug("Loaded environment from %s", env_file)


def _resolve_config_path(config_path: str | Path | None) -> Path | None:
    if config_path:
        return Path(config_path)
    env_path = os.getenv(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    if DEFAULT_CONFIG_PATH.exists():
        return DEFAULT_CONFIG_PATH
    return None


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from TOML configuration file or environment.

    Args:
        config_path: Optional path to a TOML file. Falls back to
            ``$VNBROWSE_CONFIG`` and then ``config/vnbrowse.toml``.

    Returns:
        Settings instance loaded from the resolved source

    Raises:
        ApplicationError: If the file is missing, malformed or fails validation
    """
    _load_env_file()
    resolved = _resolve_config_path(config_path)

    try:
        if resolved is None:
            return Settings()
        return Settings.from_toml_file(resolved)
    except FileNotFoundError as e:
        raise create_config_error(
            str(e),
            operation="load_settings",
            original_error=e,
            code=ErrorCode.CONFIG_MISSING,
        ) from e
    except toml.TomlDecodeError as e:
        raise create_config_error(
            f"Malformed configuration file {resolved}: {e}",
            operation="load_settings",
            original_error=e,
            code=ErrorCode.CONFIG_INVALID,
        ) from e
    except ValidationError as e:
        first_loc = e.errors()[0]["loc"] if e.error_count() else ()
        raise create_config_error(
            f"Invalid configuration: {e.error_count()} validation error(s)",
            config_key=".".join(str(part) for part in first_loc) or None,
            operation="load_settings",
            original_error=e,
            code=ErrorCode.CONFIG_INVALID,
        ) from e


_loader = SettingsLoader()


def get_config() -> Settings:
    """Return the process-wide Settings instance."""
    return _loader.get_config()


def reload_config(config_path: str | Path | None = None) -> Settings:
    """Reload and return the process-wide Settings instance."""
    return _loader.reload_config(config_path)


def reset_config() -> None:
    """Forget the cached Settings instance."""
    _loader.reset()
