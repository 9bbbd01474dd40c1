"""
Tests for BookingService.

Tests cover:
- Creation with an explicit provider, a listed service, or matching
- Role checks on every transition
- Completion paying out exactly once
- Cancellation refunds and splits from the refund policy
- Admin settlement of funds held for a cancelled booking
- Disputes freezing funds and admin resolution
- Payment recording and its idempotency
- Retry on a concurrent version change
"""

from datetime import time, timedelta

import pytest
from django.utils import timezone

from bookings.exceptions import BookingNotFoundError, PaymentRequiredError
from bookings.models import Booking
from bookings.services import BookingService
from bookings.state_machines import (
    BookingStatus,
    DisputeOutcome,
    PaymentStatus,
    PaymentTiming,
)
from bookings.tests.factories import BookingFactory, InProgressBookingFactory
from core.exceptions import (
    InvalidStateError,
    PermissionDeniedError,
    ValidationError,
)
from payments.exceptions import StaleRecordError
from payments.locks import check_version
from payments.models import EscrowPayment, Payout
from payments.state_machines import (
    DisputeDecision,
    DisputeInitiator,
    EscrowState,
    PayoutState,
)
from payments.tests.factories import PayoutFactory
from providers.models import ProviderProfile, ProviderStatus
from providers.tests.factories import ProviderProfileFactory, ProviderServiceFactory


def booking_data(**kwargs):
    data = {
        "category": "plumbing",
        "description": "Kitchen sink leaking",
        "scheduled_date": timezone.localdate() + timedelta(days=3),
        "start_time": time(10, 0),
        "end_time": time(12, 0),
        "location_area": "Westlands",
        "total_amount_cents": 300000,
    }
    data.update(kwargs)
    return data


def reload(booking):
    return Booking.objects.get(pk=booking.pk)


def escrow_for(booking):
    return EscrowPayment.objects.get(booking_id=booking.pk)


@pytest.mark.django_db
class TestCreateBooking:
    """Tests for BookingService.create_booking()."""

    def test_with_explicit_provider(self, client_user, provider):
        booking = BookingService.create_booking(
            client_user, booking_data(provider_id=provider.pk)
        )

        assert booking.status == BookingStatus.PENDING
        assert booking.provider_id == provider.pk
        assert booking.base_amount_cents == 300000
        assert booking.timeline.count() == 1

    def test_listed_service_sets_provider_and_category(self, client_user, provider):
        service = ProviderServiceFactory(provider=provider, category="electrical")

        booking = BookingService.create_booking(
            client_user, booking_data(category="", service_id=service.id)
        )

        assert booking.provider_id == provider.pk
        assert booking.service_id == service.id
        assert booking.category == "electrical"

    def test_service_of_another_provider_rejected(self, client_user, provider):
        service = ProviderServiceFactory()

        with pytest.raises(ValidationError):
            BookingService.create_booking(
                client_user, booking_data(provider_id=provider.pk, service_id=service.id)
            )

    def test_best_match_assigned_without_provider(self, client_user):
        profile = ProviderProfileFactory(service_areas=["Westlands"])
        ProviderServiceFactory(provider=profile.user, category="plumbing")

        booking = BookingService.create_booking(client_user, booking_data())

        assert booking.provider_id == profile.user_id

    def test_no_match_leaves_booking_unassigned(self, client_user):
        booking = BookingService.create_booking(client_user, booking_data())

        assert booking.provider_id is None
        assert booking.status == BookingStatus.PENDING

    def test_unapproved_provider_rejected(self, client_user):
        profile = ProviderProfileFactory(status=ProviderStatus.SUSPENDED)

        with pytest.raises(ValidationError) as exc_info:
            BookingService.create_booking(
                client_user, booking_data(provider_id=profile.user_id)
            )
        assert exc_info.value.error_code == "PROVIDER_UNAVAILABLE"

    def test_providers_cannot_book(self, provider):
        with pytest.raises(PermissionDeniedError):
            BookingService.create_booking(provider, booking_data())

    def test_end_before_start_rejected(self, client_user, provider):
        with pytest.raises(ValidationError):
            BookingService.create_booking(
                client_user,
                booking_data(provider_id=provider.pk, start_time=time(12, 0), end_time=time(10, 0)),
            )


@pytest.mark.django_db
class TestAssignProvider:
    def test_client_assigns_provider(self, client_user, provider):
        booking = BookingFactory(client=client_user, provider=None)

        booking = BookingService.assign_provider(booking.id, provider.pk, actor=client_user)

        assert booking.provider_id == provider.pk
        assert booking.version == 2

    def test_only_pending_bookings(self, confirmed_booking, client_user):
        other = ProviderProfileFactory()

        with pytest.raises(InvalidStateError):
            BookingService.assign_provider(confirmed_booking.id, other.user_id, actor=client_user)

    def test_provider_cannot_assign(self, pending_booking, provider):
        other = ProviderProfileFactory()

        with pytest.raises(PermissionDeniedError):
            BookingService.assign_provider(pending_booking.id, other.user_id, actor=provider)


@pytest.mark.django_db
class TestForwardTransitions:
    """Tests for confirm() and start()."""

    def test_provider_confirms_and_starts(self, pending_booking, provider):
        BookingService.confirm(pending_booking.id, actor=provider)
        booking = BookingService.start(pending_booking.id, actor=provider)

        assert booking.status == BookingStatus.IN_PROGRESS
        assert list(booking.timeline.values_list("status", flat=True)) == [
            BookingStatus.CONFIRMED,
            BookingStatus.IN_PROGRESS,
        ]

    def test_client_cannot_confirm(self, pending_booking, client_user):
        with pytest.raises(PermissionDeniedError):
            BookingService.confirm(pending_booking.id, actor=client_user)

    def test_unassigned_booking_cannot_be_confirmed(self, admin_user):
        booking = BookingFactory(provider=None)

        with pytest.raises(InvalidStateError):
            BookingService.confirm(booking.id, actor=admin_user)

    def test_start_requires_confirmation(self, pending_booking, provider):
        with pytest.raises(InvalidStateError):
            BookingService.start(pending_booking.id, actor=provider)

        assert reload(pending_booking).status == BookingStatus.PENDING

    def test_missing_booking(self, provider):
        with pytest.raises(BookingNotFoundError):
            BookingService.confirm("00000000-0000-0000-0000-000000000000", actor=provider)


@pytest.mark.django_db
class TestComplete:
    """Tests for complete() and release_payment()."""

    def test_complete_releases_escrow_and_creates_payout(
        self, paid_in_progress_booking, client_user, provider_profile
    ):
        booking = BookingService.complete(paid_in_progress_booking.id, actor=client_user)

        assert booking.status == BookingStatus.COMPLETED
        assert escrow_for(booking).state == EscrowState.RELEASED
        payout = Payout.objects.get(booking=booking)
        assert payout.state == PayoutState.PENDING
        assert payout.provider_id == provider_profile.user_id

        provider_profile.refresh_from_db()
        assert provider_profile.completed_jobs == 11

    def test_second_completion_is_rejected_and_pays_once(
        self, paid_in_progress_booking, client_user, provider_profile
    ):
        BookingService.complete(paid_in_progress_booking.id, actor=client_user)

        with pytest.raises(InvalidStateError):
            BookingService.complete(paid_in_progress_booking.id, actor=client_user)

        assert Payout.objects.filter(booking_id=paid_in_progress_booking.id).count() == 1
        assert ProviderProfile.objects.get(pk=provider_profile.pk).completed_jobs == 11

    def test_pay_now_booking_requires_payment(self, in_progress_booking, client_user):
        with pytest.raises(PaymentRequiredError):
            BookingService.complete(in_progress_booking.id, actor=client_user)

        assert reload(in_progress_booking).status == BookingStatus.IN_PROGRESS

    def test_pay_after_booking_gets_payout_awaiting_payment(self, client_user, provider):
        booking = InProgressBookingFactory(
            client=client_user, provider=provider, payment_timing=PaymentTiming.PAY_AFTER
        )

        BookingService.complete(booking.id, actor=client_user)
        payout = Payout.objects.get(booking=booking)
        assert payout.state == PayoutState.AWAITING_PAYMENT

        BookingService.record_payment(booking.id, reference="PAY-LATE-1", actor=client_user)

        assert Payout.objects.get(pk=payout.pk).state == PayoutState.PENDING
        assert escrow_for(booking).state == EscrowState.RELEASED

    def test_complete_without_release_then_release(self, paid_in_progress_booking, client_user):
        booking = BookingService.complete(
            paid_in_progress_booking.id, actor=client_user, release_payment=False
        )
        assert escrow_for(booking).state == EscrowState.PENDING
        assert not Payout.objects.filter(booking=booking).exists()

        BookingService.release_payment(booking.id, actor=client_user)

        assert escrow_for(booking).state == EscrowState.RELEASED
        assert Payout.objects.filter(booking=booking).exists()

    def test_provider_cannot_complete(self, paid_in_progress_booking, provider):
        with pytest.raises(PermissionDeniedError):
            BookingService.complete(paid_in_progress_booking.id, actor=provider)

    def test_release_requires_completion(self, paid_in_progress_booking, client_user):
        with pytest.raises(InvalidStateError):
            BookingService.release_payment(paid_in_progress_booking.id, actor=client_user)


@pytest.mark.django_db
class TestCancel:
    """Tests for cancel()."""

    def test_paid_pending_booking_refunded_in_full(self, pending_booking, client_user):
        BookingService.record_payment(pending_booking.id, reference="PAY-1", actor=client_user)

        booking = BookingService.cancel(pending_booking.id, actor=client_user, reason="Plans changed")

        assert booking.status == BookingStatus.CANCELLED
        assert booking.refund_percentage == 100
        assert booking.refund_amount_cents == 300000
        assert booking.payment_status == PaymentStatus.REFUNDED
        assert booking.cancelled_by == client_user
        assert escrow_for(booking).state == EscrowState.REFUNDED

    def test_in_progress_cancellation_not_refunded(self, paid_in_progress_booking, provider):
        booking = BookingService.cancel(paid_in_progress_booking.id, actor=provider)

        assert booking.status == BookingStatus.CANCELLED
        assert booking.refund_eligible is False
        assert booking.payment_status == PaymentStatus.COMPLETED
        assert escrow_for(booking).state == EscrowState.PENDING

    def test_unpaid_booking_cancelled_without_escrow(self, pending_booking, client_user):
        booking = BookingService.cancel(pending_booking.id, actor=client_user)

        assert booking.status == BookingStatus.CANCELLED
        assert booking.refund_amount_cents == 0
        assert not EscrowPayment.objects.filter(booking_id=booking.pk).exists()

    def test_late_cancellation_splits_held_funds(self, confirmed_booking, client_user, settings):
        settings.BOOKING_FULL_REFUND_CUTOFF_HOURS = 24 * 7
        BookingService.record_payment(confirmed_booking.id, reference="PAY-1", actor=client_user)

        booking = BookingService.cancel(confirmed_booking.id, actor=client_user)

        assert booking.refund_percentage == 50
        assert booking.refund_amount_cents == 150000
        assert booking.payment_status == PaymentStatus.PARTIALLY_REFUNDED
        escrow = escrow_for(booking)
        assert escrow.state == EscrowState.RELEASED
        assert escrow.refunded_amount_cents == 150000
        assert escrow.platform_fee_cents == 45000
        assert escrow.provider_amount_cents == 105000
        payout = Payout.objects.get(booking=booking)
        assert payout.state == PayoutState.PENDING
        assert payout.gross_amount_cents == 150000
        assert payout.payout_amount_cents == 105000

    def test_late_cancellation_of_unpaid_booking_moves_no_money(
        self, confirmed_booking, client_user, settings
    ):
        settings.BOOKING_FULL_REFUND_CUTOFF_HOURS = 24 * 7

        booking = BookingService.cancel(confirmed_booking.id, actor=client_user)

        assert booking.refund_percentage == 50
        assert booking.refund_amount_cents == 0
        assert not Payout.objects.filter(booking=booking).exists()

    def test_completed_booking_cannot_be_cancelled(self, paid_in_progress_booking, client_user):
        BookingService.complete(paid_in_progress_booking.id, actor=client_user)

        with pytest.raises(InvalidStateError):
            BookingService.cancel(paid_in_progress_booking.id, actor=client_user)

    def test_stranger_cannot_cancel(self, pending_booking, stranger):
        with pytest.raises(PermissionDeniedError):
            BookingService.cancel(pending_booking.id, actor=stranger)


@pytest.mark.django_db
class TestSettleCancelledPayment:
    """Tests for settle_cancelled_payment()."""

    @pytest.fixture
    def cancelled_with_held_funds(self, paid_in_progress_booking, provider):
        return BookingService.cancel(paid_in_progress_booking.id, actor=provider)

    def test_release_pays_provider(self, cancelled_with_held_funds, admin_user):
        booking = BookingService.settle_cancelled_payment(
            cancelled_with_held_funds.id,
            DisputeDecision.RELEASE,
            actor=admin_user,
            notes="Work was done",
        )

        assert booking.status == BookingStatus.CANCELLED
        assert booking.refund_eligible is False
        escrow = escrow_for(booking)
        assert escrow.state == EscrowState.RELEASED
        assert escrow.released_by == admin_user
        payout = Payout.objects.get(booking=booking)
        assert payout.state == PayoutState.PENDING
        assert payout.gross_amount_cents == 300000

    def test_refund_returns_everything(self, cancelled_with_held_funds, admin_user):
        booking = BookingService.settle_cancelled_payment(
            cancelled_with_held_funds.id, DisputeDecision.REFUND, actor=admin_user
        )

        assert booking.refund_percentage == 100
        assert booking.refund_amount_cents == 300000
        assert booking.payment_status == PaymentStatus.REFUNDED
        assert escrow_for(booking).state == EscrowState.REFUNDED
        assert not Payout.objects.filter(booking=booking).exists()

    def test_settled_once(self, cancelled_with_held_funds, admin_user):
        BookingService.settle_cancelled_payment(
            cancelled_with_held_funds.id, DisputeDecision.REFUND, actor=admin_user
        )

        with pytest.raises(InvalidStateError):
            BookingService.settle_cancelled_payment(
                cancelled_with_held_funds.id, DisputeDecision.RELEASE, actor=admin_user
            )

    def test_only_admin_settles(self, cancelled_with_held_funds, client_user):
        with pytest.raises(PermissionDeniedError):
            BookingService.settle_cancelled_payment(
                cancelled_with_held_funds.id, DisputeDecision.REFUND, actor=client_user
            )

        assert escrow_for(cancelled_with_held_funds).state == EscrowState.PENDING

    def test_booking_must_be_cancelled(self, paid_in_progress_booking, admin_user):
        with pytest.raises(InvalidStateError):
            BookingService.settle_cancelled_payment(
                paid_in_progress_booking.id, DisputeDecision.RELEASE, actor=admin_user
            )

    def test_unknown_decision(self, cancelled_with_held_funds, admin_user):
        with pytest.raises(ValidationError):
            BookingService.settle_cancelled_payment(
                cancelled_with_held_funds.id, "split", actor=admin_user
            )


@pytest.mark.django_db
class TestDispute:
    """Tests for dispute() and resolve_dispute()."""

    def test_dispute_freezes_held_funds(self, paid_in_progress_booking, client_user):
        booking = BookingService.dispute(
            paid_in_progress_booking.id, actor=client_user, reason="Leak not fixed"
        )

        assert booking.status == BookingStatus.DISPUTED
        assert booking.disputed_by == client_user
        escrow = escrow_for(booking)
        assert escrow.state == EscrowState.DISPUTED
        assert escrow.dispute_initiator == DisputeInitiator.CLIENT

    def test_reason_required(self, paid_in_progress_booking, client_user):
        with pytest.raises(ValidationError):
            BookingService.dispute(paid_in_progress_booking.id, actor=client_user, reason=" ")

    def test_released_funds_cannot_be_disputed(self, paid_in_progress_booking, client_user):
        BookingService.complete(paid_in_progress_booking.id, actor=client_user)

        with pytest.raises(InvalidStateError):
            BookingService.dispute(
                paid_in_progress_booking.id, actor=client_user, reason="Too late"
            )

        assert reload(paid_in_progress_booking).status == BookingStatus.COMPLETED

    def test_completed_booking_with_held_funds_can_be_disputed(
        self, paid_in_progress_booking, provider
    ):
        BookingService.complete(
            paid_in_progress_booking.id,
            actor=paid_in_progress_booking.client,
            release_payment=False,
        )

        booking = BookingService.dispute(
            paid_in_progress_booking.id, actor=provider, reason="Client refuses to release"
        )

        assert escrow_for(booking).dispute_initiator == DisputeInitiator.PROVIDER

    def test_disputed_booking_cannot_be_completed(self, paid_in_progress_booking, client_user):
        BookingService.dispute(paid_in_progress_booking.id, actor=client_user, reason="Bad job")

        with pytest.raises(InvalidStateError):
            BookingService.complete(paid_in_progress_booking.id, actor=client_user)

    def test_resolve_in_providers_favour(
        self, paid_in_progress_booking, client_user, admin_user
    ):
        BookingService.dispute(paid_in_progress_booking.id, actor=client_user, reason="Bad job")

        booking = BookingService.resolve_dispute(
            paid_in_progress_booking.id,
            DisputeDecision.RELEASE,
            resolved_by=admin_user,
            notes="Work verified",
        )

        assert booking.dispute_outcome == DisputeOutcome.RELEASED
        assert booking.dispute_resolved_at is not None
        assert escrow_for(booking).state == EscrowState.RELEASED
        assert Payout.objects.get(booking=booking).state == PayoutState.PENDING

    def test_resolve_in_clients_favour(self, paid_in_progress_booking, client_user, admin_user):
        BookingService.dispute(paid_in_progress_booking.id, actor=client_user, reason="No show")

        booking = BookingService.resolve_dispute(
            paid_in_progress_booking.id, DisputeDecision.REFUND, resolved_by=admin_user
        )

        assert booking.dispute_outcome == DisputeOutcome.REFUNDED
        assert booking.payment_status == PaymentStatus.REFUNDED
        assert escrow_for(booking).state == EscrowState.REFUNDED
        assert not Payout.objects.filter(booking=booking).exists()

    def test_refund_rejected_once_payout_sent(
        self, paid_in_progress_booking, client_user, admin_user
    ):
        booking = BookingService.dispute(
            paid_in_progress_booking.id, actor=client_user, reason="Bad job"
        )
        PayoutFactory(booking=booking, state=PayoutState.COMPLETED)

        with pytest.raises(InvalidStateError):
            BookingService.resolve_dispute(
                booking.id, DisputeDecision.REFUND, resolved_by=admin_user
            )

        assert reload(booking).is_dispute_open
        assert escrow_for(booking).state == EscrowState.DISPUTED

    def test_only_admin_resolves(self, paid_in_progress_booking, client_user):
        BookingService.dispute(paid_in_progress_booking.id, actor=client_user, reason="Bad job")

        with pytest.raises(PermissionDeniedError):
            BookingService.resolve_dispute(
                paid_in_progress_booking.id, DisputeDecision.REFUND, resolved_by=client_user
            )

    def test_dispute_resolved_once(self, paid_in_progress_booking, client_user, admin_user):
        BookingService.dispute(paid_in_progress_booking.id, actor=client_user, reason="Bad job")
        BookingService.resolve_dispute(
            paid_in_progress_booking.id, DisputeDecision.REFUND, resolved_by=admin_user
        )

        with pytest.raises(InvalidStateError):
            BookingService.resolve_dispute(
                paid_in_progress_booking.id, DisputeDecision.RELEASE, resolved_by=admin_user
            )

    def test_unknown_decision(self, paid_in_progress_booking, admin_user):
        with pytest.raises(ValidationError):
            BookingService.resolve_dispute(
                paid_in_progress_booking.id, "split", resolved_by=admin_user
            )


@pytest.mark.django_db
class TestRecordPayment:
    """Tests for record_payment()."""

    def test_opens_escrow(self, in_progress_booking, client_user):
        booking = BookingService.record_payment(
            in_progress_booking.id, reference="PAY-1", actor=client_user
        )

        assert booking.is_paid
        assert booking.paid_at is not None
        escrow = escrow_for(booking)
        assert escrow.state == EscrowState.PENDING
        assert escrow.amount_cents == 300000
        assert escrow.payment_reference == "PAY-1"

    def test_idempotent(self, in_progress_booking, client_user):
        BookingService.record_payment(in_progress_booking.id, reference="PAY-1", actor=client_user)
        booking = BookingService.record_payment(
            in_progress_booking.id, reference="PAY-2", actor=client_user
        )

        assert booking.payment_reference == "PAY-1"
        assert EscrowPayment.objects.filter(booking_id=booking.pk).count() == 1

    def test_payment_into_open_dispute_is_frozen(self, client_user, provider):
        booking = InProgressBookingFactory(
            client=client_user, provider=provider, payment_timing=PaymentTiming.PAY_AFTER
        )
        BookingService.dispute(booking.id, actor=provider, reason="Client unreachable")

        BookingService.record_payment(booking.id, reference="PAY-1", actor=client_user)

        assert escrow_for(booking).state == EscrowState.DISPUTED

    def test_cancelled_booking_rejected(self, pending_booking, client_user):
        BookingService.cancel(pending_booking.id, actor=client_user)

        with pytest.raises(InvalidStateError):
            BookingService.record_payment(pending_booking.id, reference="PAY-1", actor=client_user)

    def test_reference_required(self, pending_booking, client_user):
        with pytest.raises(ValidationError):
            BookingService.record_payment(pending_booking.id, reference="", actor=client_user)


@pytest.mark.django_db
class TestConcurrency:
    def test_stale_version_retried_once(self, pending_booking, provider, mocker):
        calls = []

        def flaky_check(model_class, pk, expected_version):
            calls.append(expected_version)
            if len(calls) == 1:
                raise StaleRecordError("Booking was modified")
            return check_version(model_class, pk, expected_version)

        mocker.patch("bookings.services.check_version", side_effect=flaky_check)

        booking = BookingService.confirm(pending_booking.id, actor=provider)

        assert booking.status == BookingStatus.CONFIRMED
        assert len(calls) == 2

    def test_persistent_conflict_propagates(self, pending_booking, provider, mocker):
        mocker.patch(
            "bookings.services.check_version",
            side_effect=StaleRecordError("Booking was modified"),
        )

        with pytest.raises(StaleRecordError):
            BookingService.confirm(pending_booking.id, actor=provider)

        assert reload(pending_booking).status == BookingStatus.PENDING


@pytest.mark.django_db
class TestLookups:
    def test_non_participant_sees_not_found(self, pending_booking, stranger):
        with pytest.raises(BookingNotFoundError):
            BookingService.get_for_user(pending_booking.id, stranger)

    def test_list_for_user_filters_status(self, pending_booking, confirmed_booking, client_user):
        bookings = BookingService.list_for_user(client_user, status=BookingStatus.CONFIRMED)

        assert list(bookings) == [confirmed_booking]

    def test_admin_sees_all(self, pending_booking, admin_user):
        assert pending_booking in BookingService.list_for_user(admin_user)

    def test_unknown_status_filter(self, client_user):
        with pytest.raises(ValidationError):
            BookingService.list_for_user(client_user, status="archived")
