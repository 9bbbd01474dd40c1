"""
Paystack transfer API adapter for provider payouts.

This module provides the PaystackAdapter class which encapsulates all
Paystack API interactions. All gateway calls go through this adapter to
ensure consistent error handling, timeouts, idempotency, and observability.

Features:
- Explicit timeout on every request
- HTTP and network errors translated to payments.exceptions gateway errors
- Bounded retry with exponential backoff for transient errors only
- Structured logging with timing metrics
- Results returned as ServiceResult so callers never see a raw exception

Configuration (via settings):
- PAYSTACK_SECRET_KEY: Secret API key
- PAYSTACK_BASE_URL: API base URL (default: https://api.paystack.co)
- PAYSTACK_API_TIMEOUT_SECONDS: Request timeout (default: 10)
- PAYSTACK_MAX_RETRIES: Attempts per call for transient errors (default: 3)

Usage:
    from payments.adapters import PaystackAdapter

    result = PaystackAdapter().initiate_transfer(
        amount_cents=210000,
        currency="kes",
        recipient_code="RCP_xxx",
        reference="payout_9f1c..._1718000000000",
        reason="Payout for booking BK-2024-000123",
    )
    if result.success:
        transfer = result.data
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any

import requests
from django.conf import settings

from core.services import ServiceResult
from payments.adapters.base import RecipientResult, TransferRecipient, TransferResult
from payments.exceptions import (
    GatewayError,
    GatewayRateLimitError,
    GatewayRejectedError,
    GatewayTimeoutError,
    GatewayUnavailableError,
)


# =============================================================================
# Retry Logic Helpers
# =============================================================================


def is_retryable_gateway_error(error: Exception) -> bool:
    """True for transient gateway errors that are safe to retry."""
    if isinstance(error, GatewayError):
        return getattr(error, "is_retryable", False)
    return False


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)

    Returns:
        Delay in seconds with jitter (0-25% of calculated delay)

    Example:
        # Attempt 0: 1.0 - 1.25 seconds
        # Attempt 2: 4.0 - 5.0 seconds
        delay = backoff_delay(attempt=2)
    """
    delay = min(base * (2**attempt), max_delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter


# =============================================================================
# Paystack Adapter
# =============================================================================


class PaystackAdapter:
    """
    Adapter for the Paystack transfer API.

    One instance holds one requests.Session; PayoutService keeps a single
    instance as its default gateway.

    Args:
        secret_key / base_url / timeout / max_retries: Override settings
        session: Pre-built session (tests pass a mock)
    """

    def __init__(
        self,
        secret_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.secret_key = secret_key if secret_key is not None else settings.PAYSTACK_SECRET_KEY
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.PAYSTACK_API_TIMEOUT_SECONDS
        self.max_retries = max(1, max_retries or settings.PAYSTACK_MAX_RETRIES)
        self._session = session

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update(
                {
                    "Authorization": f"Bearer {self.secret_key}",
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                }
            )
        return self._session

    # =========================================================================
    # Operations
    # =========================================================================

    def create_recipient(self, recipient: TransferRecipient) -> ServiceResult[RecipientResult]:
        """
        Register a transfer recipient (bank account or mobile money number).

        Returns:
            ServiceResult with the recipient code (RCP_xxx)
        """
        payload = {
            "type": recipient.recipient_type,
            "name": recipient.name,
            "account_number": recipient.account_number,
            "bank_code": recipient.bank_code,
            "currency": recipient.currency.upper(),
        }
        try:
            data = self._call("create_recipient", "POST", "/transferrecipient", payload)
        except GatewayError as e:
            return ServiceResult.from_exception(e)

        return ServiceResult.success(
            RecipientResult(recipient_code=data["recipient_code"], raw_response=data)
        )

    def initiate_transfer(
        self,
        amount_cents: int,
        currency: str,
        recipient_code: str,
        reference: str,
        reason: str = "",
    ) -> ServiceResult[TransferResult]:
        """
        Send money from the platform balance to a recipient.

        The reference doubles as the idempotency key: retries inside this
        call reuse it, so the gateway never creates two transfers for it.

        Args:
            amount_cents: Amount in smallest currency unit
            currency: ISO 4217 currency code
            recipient_code: Registered recipient (RCP_xxx)
            reference: Unique transfer reference
            reason: Narration shown to the recipient

        Returns:
            ServiceResult with TransferResult, or a failure with the
            gateway's message and an error code
        """
        payload = {
            "source": "balance",
            "amount": amount_cents,
            "currency": currency.upper(),
            "recipient": recipient_code,
            "reference": reference,
            "reason": reason,
        }
        try:
            data = self._call("initiate_transfer", "POST", "/transfer", payload)
        except GatewayError as e:
            return ServiceResult.from_exception(e)

        return ServiceResult.success(
            TransferResult(
                transfer_id=str(data.get("id", "")),
                transfer_code=data.get("transfer_code", ""),
                reference=data.get("reference", reference),
                status=data.get("status", ""),
                amount_cents=data.get("amount", amount_cents),
                currency=str(data.get("currency", currency)).lower(),
                raw_response=data,
            )
        )

    # =========================================================================
    # Transport
    # =========================================================================

    def _call(
        self,
        operation: str,
        method: str,
        path: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Send a request, retrying transient errors with backoff.

        Returns:
            The ``data`` object of a successful response

        Raises:
            GatewayError: Permanent error, or transient error after the last attempt
        """
        logger = self.get_logger()
        log_context = {
            "operation": operation,
            "reference": payload.get("reference"),
            "amount_cents": payload.get("amount"),
        }

        for attempt in range(self.max_retries):
            start_time = time.time()
            try:
                data = self._send(method, path, payload)
            except GatewayError as e:
                duration_ms = (time.time() - start_time) * 1000
                last_attempt = attempt + 1 >= self.max_retries
                logger.warning(
                    "Paystack operation failed",
                    extra={
                        **log_context,
                        "attempt": attempt + 1,
                        "error_code": e.error_code,
                        "retryable": e.is_retryable,
                        "duration_ms": duration_ms,
                    },
                )
                if not e.is_retryable or last_attempt:
                    raise
                time.sleep(backoff_delay(attempt))
                continue

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Paystack operation completed",
                extra={**log_context, "attempt": attempt + 1, "duration_ms": duration_ms},
            )
            return data

        raise GatewayUnavailableError("Paystack request was not attempted")

    def _send(self, method: str, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """One HTTP round trip, translated to gateway errors."""
        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                json=payload,
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise GatewayTimeoutError(
                f"Paystack did not respond within {self.timeout}s",
                gateway_code="timeout",
            )
        except requests.RequestException as e:
            raise GatewayUnavailableError(
                f"Could not connect to Paystack: {e}",
                gateway_code="connection_error",
            )

        if response.status_code == 429:
            raise GatewayRateLimitError(
                "Paystack rate limit exceeded",
                gateway_code="429",
            )
        if response.status_code >= 500:
            raise GatewayUnavailableError(
                f"Paystack service error ({response.status_code})",
                gateway_code=str(response.status_code),
            )

        try:
            body = response.json()
        except ValueError:
            raise GatewayUnavailableError(
                "Failed to parse Paystack response",
                gateway_code="invalid_response",
            )

        if response.status_code >= 400 or not body.get("status"):
            raise GatewayRejectedError(
                body.get("message") or f"Paystack rejected the request ({response.status_code})",
                gateway_code=str(body.get("code") or response.status_code),
            )

        return body.get("data") or {}
