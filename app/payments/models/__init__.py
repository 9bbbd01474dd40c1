"""
Payment domain models.

This module contains all payment-related models:
- EscrowPayment: Client funds held against a booking until release or refund
- Payout: Money transfers to providers for completed bookings
"""

from payments.models.escrow_payment import EscrowPayment
from payments.models.payout import Payout, PayoutMethod

__all__ = [
    "EscrowPayment",
    "Payout",
    "PayoutMethod",
]
