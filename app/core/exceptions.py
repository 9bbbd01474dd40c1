"""
Base exception classes for application-wide error handling.

Every domain error carries a human-readable message, a machine-readable
error code and optional details, so views can render them uniformly and
clients can branch on the code.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Bad input, rejected before any state change
    ├── NotFoundError - Referenced booking/escrow/payout/provider missing
    ├── PermissionDeniedError - Actor not allowed to perform the operation
    ├── ConflictError - State conflicts
    │   └── InvalidStateError - Transition not legal from the current state
    ├── ConfigurationError - Required setup missing (e.g. payout destination)
    └── ExternalServiceError - Third-party service failures

Usage:
    from core.exceptions import InvalidStateError, NotFoundError

    raise InvalidStateError(
        "Cannot complete booking in 'pending' status",
        details={"current_status": "pending", "action": "complete"},
    )

    # Convert to dict for API response
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)

Note:
    DRF handles API-layer exceptions (serialization, authentication).
    These exceptions are raised by services; core.responses maps them to
    HTTP status codes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, ids, states)
        http_status: Status code used when the error reaches a view
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Booking not found",
                "error_code": "BOOKING_NOT_FOUND",
                "details": {"booking_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for service-layer validation (amounts, rates, schedule windows).
    DRF serializers validate request shape before services are called.
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        raise NotFoundError(
            f"Payout {payout_id} not found",
            error_code="PAYOUT_NOT_FOUND",
            details={"payout_id": str(payout_id)},
        )
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the acting user may not perform an operation.

    For authentication failures (missing/invalid token) DRF's
    NotAuthenticated applies instead.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for duplicates, concurrent modification and lock contention.
    HTTP 409 Conflict.
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class InvalidStateError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    Covers double release/refund of an escrow, completing a booking that is
    not in progress, disputing released funds, and similar cases.

    Example:
        raise InvalidStateError(
            "Cannot dispute an escrow that has been released",
            details={"current_state": "released", "action": "start_dispute"},
        )
    """

    default_error_code: str = "INVALID_STATE"


class ConfigurationError(BaseApplicationError):
    """
    Raised when required configuration is missing.

    A provider without a bank account or mobile money number cannot be paid;
    the payout fails with this error before any gateway call.
    """

    default_error_code: str = "CONFIGURATION_ERROR"
    http_status: int = 422


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Log the original error for debugging but don't expose internal details
    to clients. HTTP 502 Bad Gateway.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502


__all__ = [
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "ConflictError",
    "InvalidStateError",
    "ConfigurationError",
    "ExternalServiceError",
]
