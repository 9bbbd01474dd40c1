"""
Payment services for escrow and payout operations.

This module provides:
- EscrowLedger: Holds, releases, refunds and disputes booking funds
- PayoutService: Creates payouts and sends them through the gateway

Usage:
    from payments.services import EscrowLedger, PayoutService

    escrow, _ = EscrowLedger.open_escrow(booking, payment_reference="QK7...")
    EscrowLedger.release(escrow.id, released_by=client)

    payout = PayoutService.create_payout(booking.id)
    summary = PayoutService.process_ready_payouts()
"""

from payments.services.escrow_service import EscrowLedger, EscrowOperationResult
from payments.services.payout_service import (
    BulkItemResult,
    PayoutProcessResult,
    PayoutService,
    SweepSummary,
    generate_transfer_reference,
)

__all__ = [
    "BulkItemResult",
    "EscrowLedger",
    "EscrowOperationResult",
    "PayoutProcessResult",
    "PayoutService",
    "SweepSummary",
    "generate_transfer_reference",
]
