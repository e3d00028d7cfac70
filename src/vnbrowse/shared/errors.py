"""vnbrowse Error Handling Module

This module defines the error handling system for vnbrowse, providing
structured error classes with context information and user-friendly messages.

The error hierarchy follows these principles:
- One Source of Truth: All error codes are defined in ErrorCode enum
- Structured Context: ErrorContext provides additional information
- Transport taxonomy: TransportFailure, RejectedRequest and
  AuthenticationFailure describe how a remote call went wrong
- Proper Exception Chaining: Original exceptions are preserved

An empty result set is never an error; it is a valid loaded state.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Union

# Type alias for primitive context values (str, int, float, bool only)
PrimitiveContextValue = Union[str, int, float, bool]

# Default keys to mask in safe_dict for PII protection
SAFE_DICT_MASK_KEYS: tuple[str, ...] = ("user_id",)


class ErrorCode(str, Enum):
    """Error codes for vnbrowse.

    This enum serves as the single source of truth for all error codes
    used throughout the application.
    """

    # Network and API Errors
    NETWORK_ERROR = "NETWORK_ERROR"
    API_TIMEOUT = "API_TIMEOUT"
    API_RATE_LIMIT = "API_RATE_LIMIT"
    API_SERVER_ERROR = "API_SERVER_ERROR"
    API_REQUEST_REJECTED = "API_REQUEST_REJECTED"
    API_INVALID_RESPONSE = "API_INVALID_RESPONSE"

    # Authentication and Authorization
    API_AUTHENTICATION_FAILED = "API_AUTHENTICATION_FAILED"
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    LIST_PERMISSION_MISSING = "LIST_PERMISSION_MISSING"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"

    # Configuration Errors
    CONFIG_ERROR = "CONFIG_ERROR"
    CONFIG_MISSING = "CONFIG_MISSING"
    CONFIG_INVALID = "CONFIG_INVALID"

    # Application Errors
    APPLICATION_ERROR = "APPLICATION_ERROR"
    CLI_COMMAND_FAILED = "CLI_COMMAND_FAILED"


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Coerce additional_data values to primitives.

    Converts Path, Enum, Decimal to primitive types.

    Args:
        value: Input dictionary or None

    Returns:
        Dictionary with primitive values only, or None

    Raises:
        TypeError: If value is not a dict or contains unconvertible types
    """
    if value is None:
        return None

    if not isinstance(value, dict):
        error_msg = f"additional_data must be dict, got {type(value).__name__}"
        raise TypeError(error_msg)

    coerced: dict[str, PrimitiveContextValue] = {}
    for key, val in value.items():
        if isinstance(val, (str, int, float, bool)):
            coerced[key] = val
        elif isinstance(val, Path):
            coerced[key] = str(val)
        elif isinstance(val, Enum):
            coerced[key] = val.value
        elif isinstance(val, Decimal):
            coerced[key] = float(val)
        else:
            error_msg = (
                f"Cannot coerce {type(val).__name__} to primitive type. "
                f"Only str, int, float, bool, Path, Enum, Decimal are allowed."
            )
            raise TypeError(error_msg)

    return coerced


@dataclass(frozen=True)
class ErrorContext:
    """Context information for errors.

    Only primitive types (str, int, float, bool) are allowed in
    additional_data to ensure safe serialization and prevent sensitive
    data leakage.

    Attributes:
        operation: Optional operation name that caused the error
        endpoint: Optional remote endpoint involved in the failure
        user_id: Optional user ID (masked in logs)
        additional_data: Optional dict with primitive values only
    """

    operation: str | None = None
    endpoint: str | None = None
    user_id: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        if self.additional_data is not None:
            object.__setattr__(
                self,
                "additional_data",
                _coerce_primitives(self.additional_data),
            )

    def safe_dict(self, *, mask_keys: tuple[str, ...] | None = None) -> dict[str, Any]:
        """Export context as dict with PII masking.

        Args:
            mask_keys: Fields to exclude from output. Defaults to SAFE_DICT_MASK_KEYS.

        Returns:
            Dictionary with masked sensitive fields and guaranteed additional_data key.

        Example:
            >>> context = ErrorContext(user_id="u1", operation="authinfo")
            >>> context.safe_dict()
            {'operation': 'authinfo', 'additional_data': {}}
        """
        if mask_keys is None:
            mask_keys = SAFE_DICT_MASK_KEYS

        data: dict[str, Any] = {}
        if self.operation is not None and "operation" not in mask_keys:
            data["operation"] = self.operation
        if self.endpoint is not None and "endpoint" not in mask_keys:
            data["endpoint"] = self.endpoint
        if self.user_id is not None and "user_id" not in mask_keys:
            data["user_id"] = self.user_id

        if self.additional_data is not None and "additional_data" not in mask_keys:
            data["additional_data"] = self.additional_data
        else:
            data["additional_data"] = {}

        return data


class VnBrowseError(Exception):
    """Base exception class for all vnbrowse errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize VnBrowseError.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            context: Additional context information
            original_error: Original exception that caused this error
        """
        self.code = code
        self.message = message
        self.context = context or ErrorContext()
        self.original_error = original_error
        super().__init__(f"{code.value}: {message}")

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging with PII masking."""
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.safe_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class DomainError(VnBrowseError):
    """Domain-specific errors.

    Examples:
    - Identifier that cannot be normalized
    - Invalid query descriptor values
    """


class InfrastructureError(VnBrowseError):
    """Infrastructure-related errors.

    These errors occur when interacting with the remote catalog.
    """


class ApplicationError(VnBrowseError):
    """Application-level errors (configuration, command handling)."""


class SecurityError(VnBrowseError):
    """Security-related errors.

    Examples:
    - Invalid or expired credential
    - Missing list permission for a write
    """


class TransportFailure(InfrastructureError):
    """The request never reached the remote or no usable response came back.

    Covers connection errors, timeouts, server errors and rate limiting.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(code, message, context, original_error)
        self.status_code = status_code


class RejectedRequest(InfrastructureError):
    """The remote answered with a client-error status for the request shape."""

    def __init__(
        self,
        message: str,
        status_code: int,
        body: str = "",
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.API_REQUEST_REJECTED,
            message,
            context,
            original_error,
        )
        self.status_code = status_code
        self.body = body


class AuthenticationFailure(SecurityError):
    """The credential was refused or no authenticated session exists."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        code: ErrorCode = ErrorCode.API_AUTHENTICATION_FAILED,
        status_code: int | None = None,
    ) -> None:
        super().__init__(code, message, context, original_error)
        self.status_code = status_code


# Convenience functions for common error scenarios
def create_validation_error(
    message: str,
    field: str | None = None,
    operation: str | None = None,
    original_error: Exception | None = None,
) -> DomainError:
    """Create a validation error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"field": field} if field else None
    )
    context = ErrorContext(
        operation=operation,
        additional_data=additional_data,
    )
    return DomainError(
        ErrorCode.VALIDATION_ERROR,
        message,
        context,
        original_error,
    )


def create_config_error(
    message: str,
    config_key: str | None = None,
    operation: str | None = None,
    original_error: Exception | None = None,
    code: ErrorCode = ErrorCode.CONFIG_ERROR,
) -> ApplicationError:
    """Create a configuration error with context.

    ``code`` narrows the error to CONFIG_MISSING or CONFIG_INVALID where known.
    """
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"config_key": config_key} if config_key else None
    )
    context = ErrorContext(
        operation=operation,
        additional_data=additional_data,
    )
    return ApplicationError(
        code,
        message,
        context,
        original_error,
    )


def create_permission_error(
    permission: str,
    operation: str | None = None,
) -> SecurityError:
    """Create an error for a session lacking a required list permission."""
    context = ErrorContext(
        operation=operation,
        additional_data={"permission": permission},
    )
    return SecurityError(
        ErrorCode.LIST_PERMISSION_MISSING,
        f"The signed-in account does not grant the '{permission}' permission",
        context,
    )


def create_authentication_required_error(
    operation: str | None = None,
) -> AuthenticationFailure:
    """Create an error for an operation attempted without a session."""
    return AuthenticationFailure(
        "Sign in with an API token to use the personal list",
        ErrorContext(operation=operation),
        code=ErrorCode.AUTHENTICATION_REQUIRED,
    )


def describe_error(error: VnBrowseError) -> str:
    """Return a short human-readable message suitable for display."""
    if isinstance(error, AuthenticationFailure):
        if error.code is ErrorCode.AUTHENTICATION_REQUIRED:
            return error.message
        return "The API token was rejected. Please sign in again."
    if isinstance(error, RejectedRequest):
        return f"The catalog rejected the request ({error.status_code}): {error.message}"
    if isinstance(error, TransportFailure):
        if error.code is ErrorCode.API_RATE_LIMIT:
            return "The catalog is throttling requests. Try again in a moment."
        return f"Could not reach the catalog: {error.message}"
    return error.message
