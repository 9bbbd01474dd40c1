"""
Unit tests for RefundPolicy.

Bookings are built in memory; nothing here touches the database.
"""

from datetime import date, time, timedelta

import pytest

from bookings.models import Booking
from bookings.policies import RefundPolicy
from bookings.state_machines import BookingStatus, PaymentStatus

POLICY = RefundPolicy(
    percentages={"pending": 100, "confirmed": 100, "in_progress": 0},
    full_refund_cutoff=timedelta(hours=24),
    late_cancellation_percentage=50,
)


def make_booking(status, paid=True):
    return Booking(
        status=status,
        scheduled_date=date(2024, 10, 21),
        start_time=time(10, 0),
        end_time=time(12, 0),
        base_amount_cents=300000,
        total_amount_cents=300000,
        payment_status=PaymentStatus.COMPLETED if paid else PaymentStatus.PENDING,
    )


class TestRefundPolicy:
    def test_pending_booking_full_refund(self):
        booking = make_booking(BookingStatus.PENDING)

        decision = POLICY.evaluate(booking, now=booking.scheduled_start - timedelta(hours=2))

        assert decision.percentage == 100
        assert decision.amount_cents == 300000
        assert decision.eligible

    def test_confirmed_with_notice_full_refund(self):
        booking = make_booking(BookingStatus.CONFIRMED)

        decision = POLICY.evaluate(booking, now=booking.scheduled_start - timedelta(days=2))

        assert decision.percentage == 100

    def test_confirmed_late_cancellation_half_refund(self):
        booking = make_booking(BookingStatus.CONFIRMED)

        decision = POLICY.evaluate(booking, now=booking.scheduled_start - timedelta(hours=3))

        assert decision.percentage == 50
        assert decision.amount_cents == 150000

    def test_in_progress_no_refund(self):
        decision = POLICY.evaluate(make_booking(BookingStatus.IN_PROGRESS))

        assert decision.percentage == 0
        assert not decision.eligible

    def test_unpaid_booking_refunds_nothing(self):
        decision = POLICY.evaluate(make_booking(BookingStatus.PENDING, paid=False))

        assert decision.percentage == 100
        assert decision.amount_cents == 0

    @pytest.mark.parametrize("configured, expected", [(150, 100), (-10, 0)])
    def test_percentage_clamped(self, configured, expected):
        policy = RefundPolicy(percentages={"pending": configured})

        assert policy.percentage_for(make_booking(BookingStatus.PENDING)) == expected

    def test_from_settings(self, settings):
        settings.BOOKING_REFUND_POLICY = {"pending": 80}
        settings.BOOKING_FULL_REFUND_CUTOFF_HOURS = 48
        settings.BOOKING_LATE_CANCELLATION_REFUND_PERCENT = 25

        policy = RefundPolicy.from_settings()

        assert policy.percentages == {"pending": 80}
        assert policy.full_refund_cutoff == timedelta(hours=48)
        assert policy.late_cancellation_percentage == 25
