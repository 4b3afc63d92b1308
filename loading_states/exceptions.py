"""
Custom exceptions for the loading states coordinator.

This module defines the exception hierarchy raised by the coordinator. Errors
thrown by user operations are never wrapped or replaced by these classes; they
pass through untouched. The classes here cover what the coordinator itself
synthesizes (timeouts, invalid input) or needs to box (non-exception payloads).
"""

from typing import Any, Optional


class LoadingStatesError(Exception):
    """
    Base exception for all loading states errors.

    All custom exceptions in this package inherit from this class, so callers
    can catch coordinator-specific errors with a single except clause.
    """

    pass


class OperationTimeoutError(LoadingStatesError, TimeoutError):
    """
    Raised when a tracked operation does not settle within its timeout.

    The underlying work is not cancelled; only the displayed state and the
    caller's awaited result are affected.

    Args:
        key: The loading key the operation ran under
        timeout: The configured timeout in seconds
    """

    def __init__(self, key: str, timeout: float):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Operation '{key}' timed out after {timeout:g}s")


class OperationError(LoadingStatesError):
    """
    Raised in place of a failure payload that is not an exception.

    Used when a caller reports a failure with a plain message (or any other
    non-exception value); the payload is stored as ``str(payload)``.

    Args:
        message: Human-readable error description
        payload: The original failure value (optional)
    """

    def __init__(self, message: str, payload: Any = None):
        self.payload = payload
        super().__init__(message)


class ValidationError(LoadingStatesError):
    """
    Raised when configuration or tracker input is invalid.

    This includes:
    - Negative durations in an OperationConfig
    - Retry attempts below one
    - Bulk operation totals below one, or counts beyond the total

    Args:
        message: Human-readable error description
        field_name: The field that failed validation (optional)
        invalid_value: The value that failed validation (optional)
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        invalid_value: Optional[Any] = None,
    ):
        self.field_name = field_name
        self.invalid_value = invalid_value
        error_parts = [message]
        if field_name:
            error_parts.append(f"field: {field_name}")
        if invalid_value is not None:
            error_parts.append(f"value: {invalid_value}")
        super().__init__(" | ".join(error_parts))


class NetworkError(LoadingStatesError):
    """
    Raised when a network quality probe fails.

    The monitor treats a failed probe as a slow connection; this error is
    only visible to callers that run the probe directly.

    Args:
        message: Human-readable error description
        url: The URL that failed (optional)
        status_code: HTTP status code if applicable (optional)
    """

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        error_parts = [message]
        if url:
            error_parts.append(f"URL: {url}")
        if status_code:
            error_parts.append(f"Status: {status_code}")
        super().__init__(" | ".join(error_parts))


def as_exception(error: Any) -> BaseException:
    """
    Return ``error`` unchanged if it is an exception, else box it.

    Args:
        error: An exception instance or any failure payload

    Returns:
        The exception itself, or an OperationError carrying ``str(error)``
    """
    if isinstance(error, BaseException):
        return error
    return OperationError(str(error), payload=error)
