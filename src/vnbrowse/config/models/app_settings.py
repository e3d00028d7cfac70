"""Application and logging configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from vnbrowse.shared.constants import Application, Logging


class AppSettings(BaseModel):
    """Application metadata."""

    name: str = Field(default=Application.NAME, description="Application name")
    version: str = Field(default=Application.VERSION, description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(default=Logging.DEFAULT_LEVEL, description="Logging level")
    file: str | None = Field(default=None, description="Optional JSON log file path")
    console_output: bool = Field(default=True, description="Use rich console output")


__all__ = ["AppSettings", "LoggingSettings"]
