"""
Transfer gateway capability consumed by the payout engine.

PayoutService only talks to a gateway through this protocol, so the Paystack
adapter can be swapped for a fake in tests (PayoutService.set_gateway).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from core.services import ServiceResult


class RecipientType:
    BANK = "nuban"
    MOBILE_MONEY = "mobile_money"


@dataclass
class TransferRecipient:
    """
    Destination details used to register a transfer recipient.

    Attributes:
        recipient_type: RecipientType.BANK or RecipientType.MOBILE_MONEY
        name: Account holder name
        account_number: Bank account or mobile money number
        bank_code: Bank code (MPESA for M-Pesa mobile money)
        currency: ISO 4217 code (uppercase on the wire)
    """

    recipient_type: str
    name: str
    account_number: str
    bank_code: str
    currency: str = "kes"


@dataclass
class RecipientResult:
    recipient_code: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransferResult:
    """
    Result from a transfer initiation.

    Attributes:
        transfer_id: Gateway transfer ID
        transfer_code: Gateway transfer code (TRF_xxx)
        reference: Idempotency reference that was sent
        status: Gateway status (success, pending, otp, ...)
        amount_cents: Amount transferred
        currency: Currency code
        raw_response: Full response payload (for debugging)
    """

    transfer_id: str
    transfer_code: str
    reference: str
    status: str
    amount_cents: int
    currency: str
    raw_response: dict[str, Any] = field(default_factory=dict)


class TransferGateway(Protocol):
    def create_recipient(
        self, recipient: TransferRecipient
    ) -> ServiceResult[RecipientResult]: ...

    def initiate_transfer(
        self,
        amount_cents: int,
        currency: str,
        recipient_code: str,
        reference: str,
        reason: str = "",
    ) -> ServiceResult[TransferResult]: ...
