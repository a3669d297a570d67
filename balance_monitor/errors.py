"""
Balance Monitor - Core Error Types

Defines the exception hierarchy for the monitor runtime.
All exceptions inherit from MonitorError for consistent error handling.

- ErrorCode enum for structured tool responses
- Billing API error types (HTTP, timeout, malformed payload)
- Retry classification helpers
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """
    Standard error codes for MCP tool responses.

    Used for structured error handling and client-side error recovery.
    """

    # Input validation errors
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_PARAMETER_VALUE = "INVALID_PARAMETER_VALUE"

    # Billing API errors
    BILLING_API_ERROR = "BILLING_API_ERROR"
    BILLING_TIMEOUT = "BILLING_TIMEOUT"
    BILLING_BAD_RESPONSE = "BILLING_BAD_RESPONSE"

    # Feature availability errors
    FEATURE_DISABLED = "FEATURE_DISABLED"

    # Delivery and storage errors
    NOTIFICATION_FAILED = "NOTIFICATION_FAILED"
    STORAGE_ERROR = "STORAGE_ERROR"
    COLLECTION_FAILED = "COLLECTION_FAILED"

    # Forecasting
    FORECAST_UNAVAILABLE = "FORECAST_UNAVAILABLE"

    # Auth
    UNAUTHORIZED = "UNAUTHORIZED"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class MonitorError(Exception):
    """Base exception for all Balance Monitor errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(MonitorError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, status_code=500)


class ValidationError(MonitorError):
    """Raised when input validation fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, status_code=400)


class BillingAPIError(MonitorError):
    """Raised when the billing API call fails."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int = 502,
    ):
        super().__init__(message, details, status_code=status_code)


class BillingTimeoutError(BillingAPIError):
    """Raised when the billing API does not answer in time."""

    def __init__(self, provider: str, timeout: float):
        message = f"Billing provider {provider} timed out after {timeout}s"
        super().__init__(message, {"provider": provider, "timeout": timeout}, status_code=504)


class BillingResponseError(BillingAPIError):
    """Raised when the billing API answers with an unusable payload."""

    pass


class NotificationError(MonitorError):
    """Raised when a push notification cannot be delivered."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, status_code=502)


class StorageError(MonitorError):
    """Raised when the snapshot database cannot be read or written."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, status_code=500)


class CollectionError(MonitorError):
    """Raised when a usage collection run fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, status_code=500)


class UnauthorizedError(MonitorError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401)


def make_error_response(
    error_code: ErrorCode,
    message: str,
    context: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create a standardized error response for MCP tools.

    Args:
        error_code: Standard error code
        message: Human-readable error message
        context: Additional context/details

    Returns:
        Standardized error response dictionary

    Example:
        >>> make_error_response(
        ...     ErrorCode.INVALID_INPUT,
        ...     "action must be one of init, start, stop, restart",
        ...     {"parameter": "action", "provided_value": "pause"}
        ... )
        {
            "success": False,
            "error_code": "INVALID_INPUT",
            "message": "action must be one of init, start, stop, restart",
            "details": {"parameter": "action", "provided_value": "pause"}
        }
    """
    return {
        "success": False,
        "error_code": error_code.value,
        "message": message,
        "details": context or {},
    }


def is_retryable_error(error: Exception) -> bool:
    """
    Check if an error is transient and should be retried.

    Args:
        error: Exception to check

    Returns:
        True if error is retryable (transient)
    """
    if isinstance(error, BillingTimeoutError):
        return True

    # A payload we cannot parse will not get better on retry
    if isinstance(error, BillingResponseError):
        return False

    if isinstance(error, BillingAPIError):
        status = error.details.get("status")
        if isinstance(status, int):
            return status == 429 or status >= 500

        error_msg = str(error).lower()
        transient_indicators = [
            "timeout",
            "connection",
            "network",
            "503",
            "502",
            "504",
            "unavailable",
            "temporary",
        ]
        return any(indicator in error_msg for indicator in transient_indicators)

    return False


def extract_error_code(error: Exception) -> ErrorCode:
    """
    Extract appropriate ErrorCode from an exception.

    Args:
        error: Exception to categorize

    Returns:
        Appropriate ErrorCode for the exception
    """
    if isinstance(error, BillingTimeoutError):
        return ErrorCode.BILLING_TIMEOUT

    if isinstance(error, BillingResponseError):
        return ErrorCode.BILLING_BAD_RESPONSE

    if isinstance(error, BillingAPIError):
        return ErrorCode.BILLING_API_ERROR

    if isinstance(error, ValidationError):
        return ErrorCode.INVALID_INPUT

    if isinstance(error, NotificationError):
        return ErrorCode.NOTIFICATION_FAILED

    if isinstance(error, StorageError):
        return ErrorCode.STORAGE_ERROR

    if isinstance(error, CollectionError):
        return ErrorCode.COLLECTION_FAILED

    if isinstance(error, UnauthorizedError):
        return ErrorCode.UNAUTHORIZED

    if isinstance(error, ConfigurationError):
        return ErrorCode.FEATURE_DISABLED

    return ErrorCode.INTERNAL_ERROR
