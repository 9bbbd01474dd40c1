"""
Payout configuration.

PayoutPolicy gathers the payout settings into one immutable struct that is
passed to PayoutService and the scheduler, so tests can run the engine with
a different delay or rate without touching Django settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.conf import settings


@dataclass(frozen=True)
class PayoutPolicy:
    """
    Attributes:
        commission_rate: Platform share of each booking
        payout_delay: Time between service completion and earliest payout
        batch_size: Maximum payouts selected per sweep
        sweep_lock_ttl_seconds: Expiry of the single-flight sweep lock
        payout_lock_ttl_seconds: Expiry of the per-payout lock
        currency: Default currency code
    """

    commission_rate: Decimal
    payout_delay: timedelta
    batch_size: int = 100
    sweep_lock_ttl_seconds: int = 600
    payout_lock_ttl_seconds: int = 120
    currency: str = "kes"

    @classmethod
    def from_settings(cls) -> PayoutPolicy:
        return cls(
            commission_rate=Decimal(str(settings.PAYOUT_COMMISSION_RATE)),
            payout_delay=timedelta(minutes=settings.PAYOUT_DELAY_MINUTES),
            batch_size=settings.PAYOUT_SWEEP_BATCH_SIZE,
            sweep_lock_ttl_seconds=settings.PAYOUT_SWEEP_LOCK_TTL_SECONDS,
            payout_lock_ttl_seconds=settings.PAYOUT_LOCK_TTL_SECONDS,
            currency=settings.PAYOUT_DEFAULT_CURRENCY,
        )
