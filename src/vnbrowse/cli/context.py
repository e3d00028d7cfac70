"""
CLI Context Management Module

Holds the options shared by every command (verbosity, log level, JSON
output, config path, token override) in a ContextVar so command functions
read them through one typed accessor.
"""

from __future__ import annotations

import contextvars
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """Log level enumeration for type safety."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CliContext(BaseModel):
    """
    CLI context model for managing global state.

    Attributes:
        verbose: Verbosity level (0 = normal, 1+ = verbose)
        log_level: Logging level
        json_output: Whether to output in JSON format
        config_path: Optional TOML configuration file
        token: API token overriding the configured one
    """

    verbose: int = Field(default=0, ge=0, description="Verbosity level")
    log_level: LogLevel | None = Field(default=None, description="Logging level override")
    json_output: bool = Field(default=False, description="Whether to output in JSON format")
    config_path: Path | None = Field(default=None, description="TOML configuration file")
    token: str | None = Field(default=None, repr=False, description="API token override")

    def is_verbose(self) -> bool:
        return self.verbose > 0

    def get_effective_log_level(self, fallback: str = LogLevel.WARNING.value) -> str:
        """Verbose mode forces DEBUG; without an explicit level ``fallback`` applies."""
        if self.is_verbose():
            return LogLevel.DEBUG.value
        if self.log_level is not None:
            return self.log_level.value
        return fallback


cli_context_var: contextvars.ContextVar[CliContext | None] = contextvars.ContextVar(
    "cli_context",
    default=None,
)


def get_cli_context() -> CliContext:
    """Return the current CLI context, or defaults when none was set."""
    context = cli_context_var.get()
    if context is None:
        return CliContext()
    return context


def set_cli_context(context: CliContext) -> None:
    cli_context_var.set(context)


def clear_cli_context() -> None:
    cli_context_var.set(None)
