"""cjcatalog Error Handling Module

This module defines the error handling system for cjcatalog, providing
structured error classes with context information.

The error hierarchy follows these principles:
- One Source of Truth: All error codes are defined in ErrorCode enum
- Structured Context: ErrorContext provides additional information
- Typed Failures: callers branch on the exception class, never on messages
- Proper Exception Chaining: Original exceptions are preserved
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Union

# Type alias for primitive context values (str, int, float, bool only)
PrimitiveContextValue = Union[str, int, float, bool]

# Keys never exported by safe_dict
SAFE_DICT_MASK_KEYS: tuple[str, ...] = ("api_key", "access_token", "refresh_token")


class ErrorCode(str, Enum):
    """Error codes for cjcatalog.

    This enum serves as the single source of truth for all error codes
    used throughout the package.
    """

    # Network and upstream API errors
    NETWORK_ERROR = "NETWORK_ERROR"
    API_RATE_LIMIT = "API_RATE_LIMIT"
    API_REQUEST_FAILED = "API_REQUEST_FAILED"
    API_SERVER_ERROR = "API_SERVER_ERROR"
    API_APPLICATION_ERROR = "API_APPLICATION_ERROR"
    API_INVALID_RESPONSE = "API_INVALID_RESPONSE"

    # Authentication errors
    AUTH_UNAVAILABLE = "AUTH_UNAVAILABLE"
    AUTH_RATE_LIMITED = "AUTH_RATE_LIMITED"
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"

    # Cache and token store errors
    CACHE_READ_FAILED = "CACHE_READ_FAILED"
    CACHE_WRITE_FAILED = "CACHE_WRITE_FAILED"
    CACHE_CORRUPTED = "CACHE_CORRUPTED"
    TOKEN_STORE_READ_FAILED = "TOKEN_STORE_READ_FAILED"  # noqa: S105  # nosec B105
    TOKEN_STORE_WRITE_FAILED = "TOKEN_STORE_WRITE_FAILED"  # noqa: S105  # nosec B105

    # Validation and concurrency errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONCURRENCY_ERROR = "CONCURRENCY_ERROR"
    OPERATION_TIMEOUT = "OPERATION_TIMEOUT"


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Coerce additional_data values to primitives.

    Converts Path, Enum, Decimal to primitive types; ``None`` values are
    dropped.

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
        if val is None:
            continue
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
class ErrorContextModel:
    """Context information for errors.

    Only primitive types (str, int, float, bool) are allowed in
    additional_data so the context can always be serialized into a log
    record.

    Attributes:
        operation: Optional operation name that caused the error
        endpoint: Optional upstream endpoint involved
        additional_data: Optional dict with primitive values only
    """

    operation: str | None = None
    endpoint: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        """Post-initialization validation and coercion."""
        if self.additional_data is not None:
            coerced = _coerce_primitives(self.additional_data)
            object.__setattr__(self, "additional_data", coerced)

    def safe_dict(self, *, mask_keys: tuple[str, ...] | None = None) -> dict[str, Any]:
        """Export context as dict with secret masking.

        Args:
            mask_keys: Keys to drop from additional_data. Defaults to
                SAFE_DICT_MASK_KEYS.

        Returns:
            Dictionary with a guaranteed ``additional_data`` key.

        Example:
            >>> context = ErrorContextModel(
            ...     operation="refresh", additional_data={"access_token": "x"}
            ... )
            >>> context.safe_dict()
            {'operation': 'refresh', 'additional_data': {}}
        """
        if mask_keys is None:
            mask_keys = SAFE_DICT_MASK_KEYS

        data: dict[str, Any] = {}
        if self.operation is not None:
            data["operation"] = self.operation
        if self.endpoint is not None:
            data["endpoint"] = self.endpoint

        data["additional_data"] = {
            key: val
            for key, val in (self.additional_data or {}).items()
            if key not in mask_keys
        }
        return data


ErrorContext = ErrorContextModel


class CatalogError(Exception):
    """Base exception class for all cjcatalog errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize CatalogError.

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
        """Return string representation of the error."""
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging with secret masking."""
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.safe_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class ApplicationError(CatalogError):
    """Application-level errors.

    Raised for invalid arguments and misuse of library objects, for example
    a non-positive concurrency limit or releasing a throttle ticket twice.
    """


class InfrastructureError(CatalogError):
    """Errors raised while talking to external systems."""


class SecurityError(CatalogError):
    """Credential and authentication related errors."""


class UpstreamError(InfrastructureError):
    """The upstream API answered with a failure.

    Covers non-2xx HTTP statuses other than 429 and 2xx responses whose
    envelope carries a non-success code. Not retried.

    Attributes:
        status_code: HTTP status of the response (0 for transport failures)
        upstream_code: Application code from the response envelope, if any
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        status_code: int = 0,
        upstream_code: int | None = None,
    ) -> None:
        super().__init__(code, message, context, original_error)
        self.status_code = status_code
        self.upstream_code = upstream_code


class RateLimited(UpstreamError):
    """The upstream signalled "too many requests".

    Either HTTP 429 or the 1600200 code inside a 200 envelope. Retried by the
    executor and surfaced only once retries are exhausted.
    """


class MalformedResponse(UpstreamError):
    """A 2xx response whose body does not match the upstream contract."""


class AuthUnavailable(SecurityError):
    """No usable access token could be obtained.

    Raised when both tokens are expired and a fresh authentication failed,
    and no stale token within the grace window exists.
    """


class ConfigurationError(AuthUnavailable):
    """Credentials are not configured; authentication can never succeed."""


class OperationTimeout(CatalogError):
    """The caller's deadline expired before the operation completed."""


class CacheError(InfrastructureError):
    """Cache or token store persistence failed."""


def create_config_error(
    message: str,
    config_key: str | None = None,
    operation: str | None = None,
) -> ConfigurationError:
    """Create a configuration error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"config_key": config_key} if config_key else None
    )
    context = ErrorContext(operation=operation, additional_data=additional_data)
    return ConfigurationError(ErrorCode.MISSING_CREDENTIALS, message, context)


def create_validation_error(
    message: str,
    field: str | None = None,
    operation: str | None = None,
) -> ApplicationError:
    """Create a validation error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"field": field} if field else None
    )
    context = ErrorContext(operation=operation, additional_data=additional_data)
    return ApplicationError(ErrorCode.VALIDATION_ERROR, message, context)


def create_malformed_response_error(
    message: str,
    endpoint: str | None = None,
    operation: str | None = None,
    status_code: int = 200,
    original_error: Exception | None = None,
) -> MalformedResponse:
    """Create a malformed response error with context."""
    context = ErrorContext(operation=operation, endpoint=endpoint)
    return MalformedResponse(
        ErrorCode.API_INVALID_RESPONSE,
        message,
        context,
        original_error,
        status_code=status_code,
    )
