"""
Refund eligibility for cancelled bookings.

The refund percentage depends on the booking status at the moment of
cancellation, read from BOOKING_REFUND_POLICY. A confirmed booking
cancelled inside BOOKING_FULL_REFUND_CUTOFF_HOURS of its start only gets
BOOKING_LATE_CANCELLATION_REFUND_PERCENT.

Usage:
    from bookings.policies import RefundPolicy

    decision = RefundPolicy.from_settings().evaluate(booking)
    if decision.eligible:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from bookings.state_machines import BookingStatus

if TYPE_CHECKING:
    from bookings.models import Booking


@dataclass(frozen=True)
class RefundDecision:
    percentage: int
    amount_cents: int

    @property
    def eligible(self) -> bool:
        return self.percentage > 0


@dataclass(frozen=True)
class RefundPolicy:
    """
    Attributes:
        percentages: Refund percentage by pre-cancellation status
        full_refund_cutoff: Minimum notice for a full refund of a confirmed booking
        late_cancellation_percentage: Refund for a confirmed booking cancelled late
    """

    percentages: dict[str, int] = field(default_factory=dict)
    full_refund_cutoff: timedelta = timedelta(hours=24)
    late_cancellation_percentage: int = 50

    @classmethod
    def from_settings(cls) -> RefundPolicy:
        return cls(
            percentages=dict(settings.BOOKING_REFUND_POLICY),
            full_refund_cutoff=timedelta(hours=settings.BOOKING_FULL_REFUND_CUTOFF_HOURS),
            late_cancellation_percentage=settings.BOOKING_LATE_CANCELLATION_REFUND_PERCENT,
        )

    def percentage_for(self, booking: Booking, now: datetime | None = None) -> int:
        now = now or timezone.now()
        percentage = self.percentages.get(booking.status, 0)
        if (
            booking.status == BookingStatus.CONFIRMED
            and booking.scheduled_start - now < self.full_refund_cutoff
        ):
            percentage = min(percentage, self.late_cancellation_percentage)
        return max(0, min(percentage, 100))

    def evaluate(self, booking: Booking, now: datetime | None = None) -> RefundDecision:
        """
        Refund decision for cancelling the booking now.

        Only money actually paid can be refunded; an unpaid booking keeps its
        percentage but a zero amount.
        """
        percentage = self.percentage_for(booking, now)
        amount_cents = booking.total_amount_cents * percentage // 100 if booking.is_paid else 0
        return RefundDecision(percentage=percentage, amount_cents=amount_cents)
