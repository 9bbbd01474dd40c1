"""
Payment adapters for external services.

All transfer gateway calls go through these adapters to ensure consistent
error handling, timeouts, idempotency, and observability.

Usage:
    from payments.adapters import PaystackAdapter, RecipientType, TransferRecipient

    gateway = PaystackAdapter()
    result = gateway.create_recipient(
        TransferRecipient(
            recipient_type=RecipientType.MOBILE_MONEY,
            name="Jane Wanjiku",
            account_number="254712345678",
            bank_code="MPESA",
        )
    )
"""

from payments.adapters.base import (
    RecipientResult,
    RecipientType,
    TransferGateway,
    TransferRecipient,
    TransferResult,
)
from payments.adapters.paystack_adapter import (
    PaystackAdapter,
    backoff_delay,
    is_retryable_gateway_error,
)

__all__ = [
    "PaystackAdapter",
    "RecipientResult",
    "RecipientType",
    "TransferGateway",
    "TransferRecipient",
    "TransferResult",
    "backoff_delay",
    "is_retryable_gateway_error",
]
