"""
Tests for PayoutService.

Tests cover:
- One payout per booking, split by the commission rate
- Pay-after bookings waiting for the client payment
- Sweeps sending due payouts through the gateway
- Gateway failures recorded without automatic retry
- Operator re-queue, cancel and bulk actions
- History and statistics
"""

from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.utils import timezone
from freezegun import freeze_time

from bookings.state_machines import BookingStatus, DisputeOutcome, PaymentTiming
from bookings.tests.factories import (
    BookingFactory,
    CompletedBookingFactory,
    InProgressBookingFactory,
)
from core.exceptions import InvalidStateError, ValidationError
from payments.exceptions import GatewayRejectedError, PayoutNotFoundError
from payments.models import Payout
from payments.policies import PayoutPolicy
from payments.services import PayoutService
from payments.state_machines import PayoutState
from payments.tests.factories import PayoutFactory
from providers.models import ProviderProfile
from providers.tests.factories import BankProviderProfileFactory


def reload(payout):
    return Payout.objects.get(pk=payout.pk)


@pytest.fixture
def policy():
    return PayoutPolicy(commission_rate=Decimal("0.30"), payout_delay=timedelta(minutes=60))


@pytest.mark.django_db
class TestCreatePayout:
    def test_creates_pending_payout_for_paid_booking(self, client_user, provider, policy):
        booking = CompletedBookingFactory(client=client_user, provider=provider, paid=True)

        with freeze_time("2026-03-02 09:00:00"):
            payout = PayoutService.create_payout(booking.id, policy=policy)

        assert payout.state == PayoutState.PENDING
        assert payout.gross_amount_cents == 300000
        assert payout.commission_amount_cents == 90000
        assert payout.payout_amount_cents == 210000
        assert payout.provider == provider
        assert payout.scheduled_at == datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc)

    def test_unpaid_booking_awaits_payment(self, client_user, provider, policy):
        booking = CompletedBookingFactory(
            client=client_user, provider=provider, payment_timing=PaymentTiming.PAY_AFTER
        )

        payout = PayoutService.create_payout(booking.id, policy=policy)

        assert payout.state == PayoutState.AWAITING_PAYMENT

    def test_second_call_returns_same_payout(self, client_user, provider, policy):
        booking = CompletedBookingFactory(client=client_user, provider=provider, paid=True)

        first = PayoutService.create_payout(booking.id, policy=policy)
        second = PayoutService.create_payout(booking.id, policy=policy)

        assert first.pk == second.pk
        assert Payout.objects.filter(booking=booking).count() == 1

    def test_booking_not_completed_rejected(self, client_user, provider):
        booking = InProgressBookingFactory(client=client_user, provider=provider, paid=True)

        with pytest.raises(InvalidStateError):
            PayoutService.create_payout(booking.id)

        assert not Payout.objects.filter(booking=booking).exists()

    def test_payment_completed_promotes_awaiting_payout(self, client_user, provider):
        booking = CompletedBookingFactory(
            client=client_user, provider=provider, payment_timing=PaymentTiming.PAY_AFTER
        )
        PayoutService.create_payout(booking.id)

        payout = PayoutService.on_payment_completed(booking.id)

        assert payout.state == PayoutState.PENDING
        assert reload(payout).state == PayoutState.PENDING

    def test_payment_completed_without_payout(self, client_user, provider):
        booking = BookingFactory(client=client_user, provider=provider)

        assert PayoutService.on_payment_completed(booking.id) is None

    def test_cancel_for_booking(self, pending_payout):
        PayoutService.cancel_for_booking(pending_payout.booking_id, reason="Refunded")

        payout = reload(pending_payout)
        assert payout.state == PayoutState.CANCELLED
        assert payout.failure_reason == "Refunded"


@pytest.mark.django_db
class TestProcessReadyPayouts:
    def test_sends_due_payout(self, pending_payout, provider_profile, fake_gateway):
        summary = PayoutService.process_ready_payouts()

        assert summary.completed == 1
        payout = reload(pending_payout)
        assert payout.state == PayoutState.COMPLETED
        assert payout.attempt_count == 1
        assert payout.transfer_id == "TRF_0001"
        assert payout.transfer_reference.startswith(f"payout_{payout.id.hex}_")
        assert fake_gateway.transfers[0]["amount_cents"] == 210000
        assert fake_gateway.transfers[0]["reference"] == payout.transfer_reference

    def test_registers_recipient_once(self, client_user, provider, provider_profile, fake_gateway):
        PayoutFactory(booking__client=client_user, booking__provider=provider)
        PayoutFactory(booking__client=client_user, booking__provider=provider)

        PayoutService.process_ready_payouts()

        assert len(fake_gateway.recipients) == 1
        profile = ProviderProfile.objects.get(pk=provider_profile.pk)
        assert profile.paystack_recipient_code == "RCP_0001"
        assert profile.total_earnings_cents == 420000

    def test_bank_provider_uses_bank_recipient(self, client_user, fake_gateway):
        profile = BankProviderProfileFactory()
        payout = PayoutFactory(booking__client=client_user, booking__provider=profile.user)

        PayoutService.process_ready_payouts()

        assert fake_gateway.recipients[0].account_number == "0123456789"
        assert reload(payout).payout_method == "bank"

    def test_future_payout_is_not_sent(self, pending_payout, fake_gateway):
        future = PayoutFactory(
            booking__provider=pending_payout.provider,
            scheduled_at=timezone.now() + timedelta(minutes=10),
        )

        summary = PayoutService.process_ready_payouts()

        assert summary.processed == 1
        assert reload(future).state == PayoutState.PENDING
        assert reload(future).attempt_count == 0

    def test_awaiting_payment_is_not_sent(self, client_user, provider, fake_gateway):
        payout = PayoutFactory(
            booking__client=client_user,
            booking__provider=provider,
            state=PayoutState.AWAITING_PAYMENT,
        )

        PayoutService.process_ready_payouts()

        assert reload(payout).state == PayoutState.AWAITING_PAYMENT
        assert fake_gateway.transfers == []

    def test_open_dispute_holds_payout(self, client_user, provider, fake_gateway):
        payout = PayoutFactory(
            booking=CompletedBookingFactory(
                client=client_user, provider=provider, paid=True, status=BookingStatus.DISPUTED
            ),
        )

        PayoutService.process_ready_payouts()

        assert reload(payout).state == PayoutState.PENDING

    def test_manual_processing_holds_disputed_payout(
        self, client_user, provider, provider_profile, fake_gateway
    ):
        payout = PayoutFactory(
            booking=CompletedBookingFactory(
                client=client_user, provider=provider, paid=True, status=BookingStatus.DISPUTED
            ),
        )

        result = PayoutService.process_single(payout.id)

        assert result.status == "skipped"
        assert result.error_code == "DISPUTE_OPEN"
        assert reload(payout).state == PayoutState.PENDING
        assert fake_gateway.transfers == []

    def test_resolved_dispute_no_longer_holds_payout(
        self, client_user, provider, provider_profile, fake_gateway
    ):
        payout = PayoutFactory(
            booking=CompletedBookingFactory(
                client=client_user,
                provider=provider,
                paid=True,
                status=BookingStatus.DISPUTED,
                dispute_outcome=DisputeOutcome.RELEASED,
            ),
        )

        result = PayoutService.process_single(payout.id)

        assert result.status == "completed"
        assert len(fake_gateway.transfers) == 1

    def test_gateway_failure_marks_failed(self, pending_payout, provider_profile, fake_gateway):
        fake_gateway.fail_with = GatewayRejectedError("Insufficient balance")

        summary = PayoutService.process_ready_payouts()

        assert summary.failed == 1
        payout = reload(pending_payout)
        assert payout.state == PayoutState.FAILED
        assert payout.attempt_count == 1
        assert payout.failure_reason == "Insufficient balance"
        assert payout.failed_at is not None

    def test_failed_payout_waits_for_requeue(self, pending_payout, provider_profile, fake_gateway, admin_user):
        fake_gateway.fail_with = GatewayRejectedError("Insufficient balance")
        PayoutService.process_ready_payouts()
        fake_gateway.fail_with = None

        second = PayoutService.process_ready_payouts()

        assert second.processed == 0
        assert len(fake_gateway.transfers) == 1

        with freeze_time(timezone.now() + timedelta(minutes=5)):
            PayoutService.requeue(pending_payout.id, actor=admin_user)
            third = PayoutService.process_ready_payouts()

        assert third.completed == 1
        payout = reload(pending_payout)
        assert payout.state == PayoutState.COMPLETED
        assert payout.attempt_count == 2
        # Each attempt goes out with its own reference
        assert fake_gateway.transfers[0]["reference"] != fake_gateway.transfers[1]["reference"]

    def test_missing_destination_fails_payout(self, client_user, fake_gateway):
        profile = BankProviderProfileFactory(bank_account_number="")
        payout = PayoutFactory(booking__client=client_user, booking__provider=profile.user)

        PayoutService.process_ready_payouts()

        failed = reload(payout)
        assert failed.state == PayoutState.FAILED
        assert failed.failure_reason == "Provider has no payout destination configured"
        assert fake_gateway.transfers == []

    def test_locked_payout_is_skipped(self, pending_payout, mock_redis, fake_gateway):
        mock_redis.set.return_value = False

        result = PayoutService.process_single(pending_payout.id)

        assert result.status == "skipped"
        assert reload(pending_payout).state == PayoutState.PENDING
        assert fake_gateway.transfers == []


@pytest.mark.django_db
class TestOperatorActions:
    def test_requeue_requires_failed(self, pending_payout, admin_user):
        with pytest.raises(InvalidStateError):
            PayoutService.requeue(pending_payout.id, actor=admin_user)

    def test_requeue_unknown_payout(self, admin_user):
        with pytest.raises(PayoutNotFoundError):
            PayoutService.requeue("00000000-0000-0000-0000-000000000000", actor=admin_user)

    def test_requeue_resets_failure(self, client_user, provider, admin_user):
        payout = PayoutFactory(
            booking__client=client_user,
            booking__provider=provider,
            state=PayoutState.FAILED,
            failure_reason="Timeout",
            attempt_count=1,
        )

        PayoutService.requeue(payout.id, actor=admin_user)

        requeued = reload(payout)
        assert requeued.state == PayoutState.PENDING
        assert requeued.failure_reason is None
        assert requeued.attempt_count == 1

    def test_cancel_pending(self, pending_payout, admin_user):
        PayoutService.cancel(pending_payout.id, actor=admin_user, reason="Duplicate booking")

        payout = reload(pending_payout)
        assert payout.state == PayoutState.CANCELLED
        assert payout.failure_reason == "Duplicate booking"

    def test_cancel_completed_rejected(self, client_user, provider, admin_user):
        payout = PayoutFactory(
            booking__client=client_user, booking__provider=provider, state=PayoutState.COMPLETED
        )

        with pytest.raises(InvalidStateError):
            PayoutService.cancel(payout.id, actor=admin_user)

    def test_bulk_requeue_reports_each_payout(self, client_user, provider, admin_user):
        failed = PayoutFactory(
            booking__client=client_user, booking__provider=provider, state=PayoutState.FAILED
        )
        pending = PayoutFactory(booking__client=client_user, booking__provider=provider)

        results = PayoutService.bulk_requeue([failed.id, pending.id], actor=admin_user)

        assert [r.success for r in results] == [True, False]
        assert results[1].error_code == "INVALID_STATE"
        assert reload(failed).state == PayoutState.PENDING

    def test_bulk_process_requeues_failed(self, client_user, provider, provider_profile, fake_gateway):
        payout = PayoutFactory(
            booking__client=client_user, booking__provider=provider, state=PayoutState.FAILED
        )

        results = PayoutService.bulk_process([payout.id])

        assert results[0].success is True
        assert reload(payout).state == PayoutState.COMPLETED


    def test_bulk_process_reports_disputed_payout(
        self, client_user, provider, provider_profile, fake_gateway
    ):
        disputed = PayoutFactory(
            booking=CompletedBookingFactory(
                client=client_user, provider=provider, paid=True, status=BookingStatus.DISPUTED
            ),
            state=PayoutState.FAILED,
        )

        results = PayoutService.bulk_process([disputed.id])

        assert results[0].success is False
        assert results[0].error_code == "DISPUTE_OPEN"
        assert reload(disputed).state == PayoutState.PENDING
        assert fake_gateway.transfers == []



@pytest.mark.django_db
class TestHistoryAndStats:
    def test_history_filters_by_provider_and_status(self, client_user, provider):
        mine = PayoutFactory(booking__client=client_user, booking__provider=provider)
        PayoutFactory(
            booking__client=client_user, booking__provider=provider, state=PayoutState.FAILED
        )
        PayoutFactory()

        history = PayoutService.get_payout_history(provider_id=provider.pk, status="pending")

        assert list(history) == [mine]

    def test_history_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            PayoutService.get_payout_history(status="paid")

    def test_stats(self, client_user, provider):
        PayoutFactory(
            booking__client=client_user, booking__provider=provider, state=PayoutState.COMPLETED
        )
        PayoutFactory(booking__client=client_user, booking__provider=provider)

        stats = PayoutService.get_payout_stats(provider_id=provider.pk)

        assert stats["total_count"] == 2
        assert stats["total_paid_cents"] == 210000
        assert stats["total_pending_cents"] == 210000
        assert stats["by_status"][PayoutState.FAILED]["count"] == 0
