"""vnbrowse Settings Configuration Model.

Main Settings class that consolidates all configuration domains.
"""

from __future__ import annotations

from pathlib import Path

import toml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vnbrowse.config.models.api_settings import ApiSettings
from vnbrowse.config.models.app_settings import AppSettings, LoggingSettings
from vnbrowse.config.models.browsing_settings import BrowsingSettings
from vnbrowse.config.models.cache_settings import CacheSettings
from vnbrowse.shared.constants import Application


class Settings(BaseSettings):
    """Settings facade providing unified configuration access.

    Environment overrides use the ``VNBROWSE_`` prefix with ``__`` between
    nesting levels, e.g. ``VNBROWSE_API__TOKEN``.
    """

    model_config = SettingsConfigDict(
        env_prefix=Application.ENV_PREFIX,
        env_nested_delimiter="__",
        env_ignore_empty=True,
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=AppSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    browsing: BrowsingSettings = Field(default_factory=BrowsingSettings)

    @classmethod
    def from_toml_file(cls, file_path: str | Path) -> Settings:
        """Load settings from TOML file with environment variable overrides."""
        file_path = Path(file_path)
        if not file_path.exists():
            msg = f"Configuration file not found: {file_path}"
            raise FileNotFoundError(msg)

        raw_config = toml.load(file_path)
        return cls(**raw_config)

    def to_toml_file(self, file_path: str | Path) -> None:
        """Save settings to TOML file.

        The API token is written to the file; logs only ever see the masked repr.
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = self.model_dump(exclude_none=True, exclude_unset=False)

        with open(file_path, "w", encoding="utf-8") as f:
            toml.dump(config_dict, f)
