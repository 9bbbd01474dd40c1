"""
Payment-specific exceptions for escrow and payout operations.

This module provides a hierarchy of exceptions for payment operations,
covering payment domain errors, concurrency control errors, and
gateway errors.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── EscrowNotFoundError - Escrow lookup failures
    └── PayoutNotFoundError - Payout lookup failures

    GatewayError - Base for transfer gateway errors (inherits ExternalServiceError)
    ├── GatewayRejectedError - Gateway refused the request (permanent)
    ├── GatewayRateLimitError - Rate limited (transient, retry)
    ├── GatewayUnavailableError - Gateway unavailable (transient, retry)
    └── GatewayTimeoutError - Request timeout (transient, retry)

    StaleRecordError - Optimistic locking conflict (inherits ConflictError)
    LockAcquisitionError - Distributed lock timeout (inherits ConflictError)

Usage:
    from payments.exceptions import GatewayError, LockAcquisitionError

    try:
        response = PaystackAdapter._request("POST", "/transfer", payload)
    except GatewayError as e:
        if e.is_retryable:
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import ConflictError, ExternalServiceError, NotFoundError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(NotFoundError):
    """Base exception for payment lookups surfaced to API clients."""

    default_error_code: str = "PAYMENT_NOT_FOUND"


class EscrowNotFoundError(PaymentError):
    default_error_code: str = "ESCROW_NOT_FOUND"


class PayoutNotFoundError(PaymentError):
    default_error_code: str = "PAYOUT_NOT_FOUND"


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(ExternalServiceError):
    """
    Base exception for all transfer gateway errors.

    Provides common attributes for gateway error handling:
    - gateway_code: Gateway's own error code or HTTP status
    - is_retryable: Whether the request can be retried

    Use is_retryable to determine retry behavior:
    - True: Transient error, safe to retry with backoff (same reference)
    - False: Permanent error, do not retry

    Example:
        except GatewayError as e:
            if e.is_retryable:
                time.sleep(backoff_delay(attempt))
            else:
                return ServiceResult.from_exception(e)
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        gateway_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if gateway_code:
            details["gateway_code"] = gateway_code
        super().__init__(message, error_code=error_code, details=details)
        self.gateway_code = gateway_code


class GatewayRejectedError(GatewayError):
    """
    The gateway refused the request.

    Invalid recipient, insufficient platform balance, malformed request.
    Permanent: the same request will not succeed without a change.
    """

    default_error_code: str = "GATEWAY_REJECTED"


class GatewayRateLimitError(GatewayError):
    default_error_code: str = "GATEWAY_RATE_LIMITED"
    is_retryable: bool = True


class GatewayUnavailableError(GatewayError):
    """
    Gateway is temporarily unavailable.

    Connection errors and 5xx responses.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayTimeoutError(GatewayError):
    """
    Gateway call timed out.

    The request was sent but no response was received within
    PAYSTACK_API_TIMEOUT_SECONDS. The transfer may still have been created;
    retries reuse the same reference so the gateway deduplicates them.
    """

    default_error_code: str = "GATEWAY_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects concurrent modification.

    The record was modified by another process between read and update.
    The caller should retry with fresh data or abort.

    Attributes:
        details: Contains pk, expected_version, and current_version
    """

    default_error_code: str = "STALE_RECORD"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Another process holds the lock and it couldn't be acquired within the
    timeout period.

    Attributes:
        details: Contains key and timeout information
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "EscrowNotFoundError",
    "PayoutNotFoundError",
    # Gateway
    "GatewayError",
    "GatewayRejectedError",
    "GatewayRateLimitError",
    "GatewayUnavailableError",
    "GatewayTimeoutError",
    # Concurrency control
    "StaleRecordError",
    "LockAcquisitionError",
]
