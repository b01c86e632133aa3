"""
Custom exceptions for the OpenLog transport.

Provides structured error details so failures can be logged and
reported to observers without parsing message strings.
"""

from typing import Any, Dict, Optional


class OpenLogException(Exception):
    """Base exception for the OpenLog transport."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(OpenLogException):
    """Raised when a transport is constructed with invalid settings."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="configuration_error",
            details=details,
        )


class DeliveryFailure(OpenLogException):
    """
    Raised when a single delivery attempt fails.

    Covers both non-2xx responses (``status_code`` is set) and
    network-level errors (``status_code`` is None).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = dict(details or {})
        if status_code is not None:
            details["status_code"] = status_code

        super().__init__(
            message=message,
            error_code="delivery_failure",
            details=details,
        )
        self.status_code = status_code


class BatchExhaustion(OpenLogException):
    """Reported when every delivery attempt for a batch has failed."""

    def __init__(
        self,
        entries: int,
        attempts: int,
        last_error: Optional[DeliveryFailure] = None,
    ) -> None:
        details: Dict[str, Any] = {"entries": entries, "attempts": attempts}
        if last_error is not None:
            details["last_error"] = str(last_error)

        super().__init__(
            message=f"Batch of {entries} entries undelivered after {attempts} attempts",
            error_code="batch_exhaustion",
            details=details,
        )
        self.entries = entries
        self.attempts = attempts
        self.last_error = last_error


class TransportClosedError(OpenLogException):
    """Raised when a lifecycle call is made on a closed transport."""

    def __init__(self, message: str = "Log transport is closed") -> None:
        super().__init__(
            message=message,
            error_code="transport_closed",
        )
