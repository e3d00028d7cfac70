"""
Structured logging helpers for vnbrowse.

This module provides helper functions that record structured log entries,
including context information when errors occur.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from vnbrowse.shared.errors import ErrorContext, VnBrowseError


class StructuredFormatter(logging.Formatter):
    """
    Formatter that emits log records as JSON objects.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a log record as JSON.

        Args:
            record: logging record

        Returns:
            JSON encoded log line
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for attribute in ("error_code", "context", "operation", "duration_ms", "result_info"):
            if hasattr(record, attribute):
                log_entry[attribute] = getattr(record, attribute)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False)


def _create_rich_console() -> Console:
    custom_theme = Theme(
        {
            "logging.level.debug": "cyan",
            "logging.level.info": "green",
            "logging.level.warning": "yellow",
            "logging.level.error": "red bold",
            "logging.level.critical": "red bold reverse",
            "log.time": "dim cyan",
            "log.message": "white",
            "log.path": "dim blue",
        }
    )
    return Console(theme=custom_theme, stderr=True)


def setup_structured_logger(
    name: str = "vnbrowse",
    level: str = "INFO",
    log_file: str | None = None,
    *,
    use_rich_console: bool = True,
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        name: logger name (default: "vnbrowse")
        level: log level (default: "INFO")
        log_file: optional path of a JSON log file
        use_rich_console: render console output with rich (default: True)

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        logger.handlers.clear()

    log_level = getattr(logging, level.upper())
    logger.setLevel(log_level)

    if use_rich_console:
        handler: logging.Handler = RichHandler(
            console=_create_rich_console(),
            show_time=True,
            show_level=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            log_time_format="[%H:%M:%S]",
        )
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
    handler.setLevel(log_level)
    logger.addHandler(handler)

    # File output is always JSON
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def _merge_context(
    target: dict[str, Any],
    context: (dict[str, Any] | ErrorContext) | None,
) -> None:
    if not context:
        return
    if isinstance(context, ErrorContext):
        target.update(context.safe_dict())
    else:
        target.update(context)


def log_operation_error(
    logger: logging.Logger,
    error: VnBrowseError,
    operation: str | None = None,
    context: (dict[str, Any] | ErrorContext) | None = None,
    additional_context: (dict[str, Any] | ErrorContext) | None = None,
) -> None:
    """
    Record a structured error entry for a VnBrowseError.

    Args:
        logger: logger instance
        error: the error being reported
        operation: operation name (optional)
        context: extra context (optional)
        additional_context: further context merged last (optional)
    """
    context_dict: dict[str, Any] = {}
    if error.context:
        context_dict.update(error.context.safe_dict())
    _merge_context(context_dict, context)
    _merge_context(context_dict, additional_context)

    logger.error(
        error.message,
        extra={
            "error_code": error.code.name,
            "context": context_dict,
            "operation": operation or error.context.operation,
        },
        exc_info=error.original_error is not None,
    )


def log_operation_success(
    logger: logging.Logger,
    operation: str,
    duration_ms: float,
    result_info: dict[str, Any] | None = None,
    context: (dict[str, Any] | ErrorContext) | None = None,
) -> None:
    """
    Record a debug entry for a completed operation.

    Args:
        logger: logger instance
        operation: operation name
        duration_ms: elapsed time in milliseconds
        result_info: summary of the result (optional)
        context: context information (optional)
    """
    context_dict: dict[str, Any] = {}
    _merge_context(context_dict, context)

    logger.debug(
        "Operation '%s' completed successfully",
        operation,
        extra={
            "operation": operation,
            "duration_ms": duration_ms,
            "result_info": result_info or {},
            "context": context_dict,
        },
    )


def log_api_call(
    logger: logging.Logger,
    endpoint: str,
    method: str = "POST",
    status_code: int | None = None,
    duration_ms: float | None = None,
    context: dict[str, Any] | None = None,
) -> None:
    """
    Record an entry for a remote API call.

    Successful calls are logged at debug level, failed ones at warning.

    Args:
        logger: logger instance
        endpoint: API endpoint
        method: HTTP method (default: "POST")
        status_code: HTTP status code (optional)
        duration_ms: elapsed time in milliseconds (optional)
        context: context information (optional)
    """
    api_context: dict[str, Any] = {
        "endpoint": endpoint,
        "method": method,
    }
    if status_code is not None:
        api_context["status_code"] = status_code
    if duration_ms is not None:
        api_context["duration_ms"] = duration_ms
    if context:
        api_context.update(context)

    level = logging.DEBUG
    message = f"API call {method} {endpoint}"
    if status_code is not None:
        if status_code >= 400:
            level = logging.WARNING
            message += f" failed with status {status_code}"
        else:
            message += f" succeeded with status {status_code}"

    logger.log(
        level,
        message,
        extra={
            "operation": "api_call",
            "context": api_context,
        },
    )
