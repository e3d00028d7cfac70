"""
CLI Error Handling Utilities

Maps exceptions raised by commands onto a printed message and an exit
code, logging each one with its structured context.
"""

from __future__ import annotations

import logging
import sys

from rich.console import Console

from vnbrowse.cli.json_formatter import format_json_output
from vnbrowse.shared.errors import (
    ApplicationError,
    ErrorCode,
    ErrorContext,
    SecurityError,
    VnBrowseError,
    describe_error,
)
from vnbrowse.shared.logging import log_operation_error

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_AUTH = 3
EXIT_INTERRUPTED = 130


def _exit_code_for(error: BaseException) -> int:
    if isinstance(error, KeyboardInterrupt):
        return EXIT_INTERRUPTED
    if isinstance(error, SecurityError):
        return EXIT_AUTH
    if isinstance(error, ApplicationError) and error.code in (
        ErrorCode.CONFIG_MISSING,
        ErrorCode.CONFIG_INVALID,
        ErrorCode.CONFIG_ERROR,
    ):
        return EXIT_CONFIG
    return EXIT_FAILURE


def _message_for(error: BaseException) -> str:
    if isinstance(error, VnBrowseError):
        return describe_error(error)
    if isinstance(error, KeyboardInterrupt):
        return "Command interrupted by user"
    if isinstance(error, ValueError):
        return f"Invalid input: {error}"
    return f"Unexpected error: {error}"


def handle_cli_error(
    error: BaseException,
    command: str,
    *,
    json_output: bool = False,
) -> int:
    """Handle CLI errors with consistent formatting and logging.

    Args:
        error: The exception that occurred
        command: The CLI command being executed
        json_output: Whether to output JSON format

    Returns:
        Exit code for the CLI command
    """
    message = _message_for(error)
    if isinstance(error, VnBrowseError):
        log_operation_error(logger, error, operation=command)
    elif not isinstance(error, KeyboardInterrupt):
        wrapped = ApplicationError(
            ErrorCode.CLI_COMMAND_FAILED,
            message,
            ErrorContext(operation=command),
            original_error=error if isinstance(error, Exception) else None,
        )
        log_operation_error(logger, wrapped, operation=command)

    if json_output:
        sys.stdout.buffer.write(format_json_output(False, command, errors=[message]))
        sys.stdout.buffer.write(b"\n")
    else:
        Console(stderr=True).print(f"[red]Error:[/red] {message}", highlight=False)
    return _exit_code_for(error)
