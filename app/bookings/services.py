"""
Booking lifecycle service.

BookingService owns every Booking status change and coordinates the money
side through EscrowLedger and PayoutService. Each mutation follows the same
read-modify-write shape:

    1. Read the booking and remember its version
    2. In one transaction, re-lock it with check_version (StaleRecordError
       if someone saved in between) and apply the django-fsm transition
    3. Append the timeline entry, call the escrow/payout collaborators, save
    4. After the transaction, notify the other party

A StaleRecordError is retried once with fresh state; an InvalidStateError
never is.

Usage:
    from bookings.services import BookingService

    booking = BookingService.create_booking(client, {...})
    booking = BookingService.confirm(booking.id, actor=provider)
    booking = BookingService.start(booking.id, actor=provider)
    booking = BookingService.record_payment(booking.id, reference="QK7...", actor=client)
    booking = BookingService.complete(booking.id, actor=client)
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from django.utils import timezone

from core.exceptions import (
    InvalidStateError,
    PermissionDeniedError,
    ValidationError,
)
from core.services import BaseService

from bookings.exceptions import BookingNotFoundError, PaymentRequiredError
from bookings.models import Booking
from bookings.policies import RefundPolicy
from bookings.state_machines import (
    BookingStatus,
    DisputeOutcome,
    PaymentStatus,
    PaymentTiming,
    Urgency,
)
from matching.scoring import Budget
from matching.services import MatchRequest, ProviderMatcher
from notifications.services import NotificationService
from payments.locks import check_version
from payments.models import Payout
from payments.services import EscrowLedger, PayoutService
from payments.state_machines import (
    DisputeDecision,
    DisputeInitiator,
    EscrowState,
    PayoutState,
)
from providers.models import ProviderService, ProviderStatus
from providers.services import ProviderDirectory

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

    from authentication.models import User
    from django.db.models import QuerySet


# Roles reuse the dispute initiator values so a role can open a dispute directly
ADMIN = DisputeInitiator.ADMIN
CLIENT = DisputeInitiator.CLIENT
PROVIDER = DisputeInitiator.PROVIDER

SENT_PAYOUT_STATES = [PayoutState.PROCESSING, PayoutState.COMPLETED]


class BookingService(BaseService):
    """
    Service for the booking lifecycle.

    Methods:
        create_booking: Validate, pick a provider if none given, create
        assign_provider: Set the provider on a pending booking
        confirm / start / complete: Forward transitions
        release_payment: Release held funds of a completed booking
        cancel: Cancel with the configured refund policy
        dispute / resolve_dispute: Freeze and settle contested funds
        record_payment: Payment hook; opens the escrow
    """

    # =========================================================================
    # Lookups & Roles
    # =========================================================================

    @classmethod
    def get(cls, booking_id) -> Booking:
        try:
            return Booking.objects.select_related("client", "provider").get(pk=booking_id)
        except Booking.DoesNotExist:
            raise BookingNotFoundError(
                f"Booking {booking_id} not found",
                details={"booking_id": str(booking_id)},
            )

    @classmethod
    def get_for_user(cls, booking_id, user: User) -> Booking:
        """Booking visible to the user; others' bookings look like missing ones."""
        booking = cls.get(booking_id)
        if cls.role_of(booking, user) is None:
            raise BookingNotFoundError(
                f"Booking {booking_id} not found",
                details={"booking_id": str(booking_id)},
            )
        return booking

    @classmethod
    def list_for_user(cls, user: User, status: str | None = None) -> QuerySet[Booking]:
        queryset = Booking.objects.for_participant(user).select_related("client", "provider")
        if status:
            if status not in BookingStatus.values:
                raise ValidationError(
                    f"Unknown booking status '{status}'",
                    details={"status": status, "allowed": list(BookingStatus.values)},
                )
            queryset = queryset.filter(status=status)
        return queryset

    @classmethod
    def role_of(cls, booking: Booking, user: User) -> str | None:
        if user is None:
            return None
        if getattr(user, "is_platform_admin", False):
            return ADMIN
        if booking.client_id == user.pk:
            return CLIENT
        if booking.provider_id is not None and booking.provider_id == user.pk:
            return PROVIDER
        return None

    @classmethod
    def _require_role(cls, booking: Booking, user: User, allowed: set[str], action: str) -> str:
        role = cls.role_of(booking, user)
        if role not in allowed:
            raise PermissionDeniedError(
                f"You are not allowed to {action} this booking",
                details={"booking_id": str(booking.pk), "action": action},
            )
        return role

    @classmethod
    def _mutate(cls, booking_id, context: str, mutate: Callable[[Booking], Any]) -> Booking:
        """
        Run ``mutate`` on a version-checked, row-locked booking in one transaction.

        Returns:
            The saved booking
        """

        def operation() -> Booking:
            snapshot = Booking.objects.filter(pk=booking_id).values_list("version", flat=True)
            version = snapshot.first()
            if version is None:
                raise BookingNotFoundError(
                    f"Booking {booking_id} not found",
                    details={"booking_id": str(booking_id)},
                )
            with cls.atomic():
                booking = check_version(Booking, booking_id, version)
                mutate(booking)
            return booking

        return cls.retry_on_conflict(operation, context=context)

    # =========================================================================
    # Creation & Assignment
    # =========================================================================

    @classmethod
    def _approved_provider(cls, provider_id, client: User):
        profile = ProviderDirectory.get_profile(provider_id)
        if profile.status != ProviderStatus.APPROVED or not profile.user.is_active:
            raise ValidationError(
                "Provider is not available for bookings",
                error_code="PROVIDER_UNAVAILABLE",
                details={"provider_id": provider_id, "status": profile.status},
            )
        if profile.user_id == client.pk:
            raise ValidationError(
                "You cannot book yourself",
                details={"provider_id": provider_id},
            )
        return profile

    @classmethod
    def _validate_booking_data(cls, data: dict[str, Any]) -> None:
        errors = {}
        total = data.get("total_amount_cents")
        if total is None or total <= 0:
            errors["total_amount_cents"] = ["Total amount must be greater than zero."]
        start, end = data.get("start_time"), data.get("end_time")
        if start is None or end is None or start >= end:
            errors["end_time"] = ["End time must be after start time."]
        if not data.get("category") and not data.get("service_id"):
            errors["category"] = ["This field is required."]
        if not data.get("scheduled_date"):
            errors["scheduled_date"] = ["This field is required."]
        if errors:
            raise ValidationError("Invalid booking request", details={"errors": errors})

    @classmethod
    def _match_provider(cls, client: User, data: dict[str, Any]) -> int | None:
        budget = None
        if data.get("budget_min") is not None and data.get("budget_max") is not None:
            budget = Budget(min=data["budget_min"], max=data["budget_max"])
        duration = Decimal(
            (data["end_time"].hour * 60 + data["end_time"].minute)
            - (data["start_time"].hour * 60 + data["start_time"].minute)
        ) / 60
        matches = ProviderMatcher.find_matches(
            MatchRequest(
                category=data["category"],
                area=data.get("location_area") or None,
                scheduled_date=data["scheduled_date"],
                start_time=data["start_time"],
                urgency=data.get("urgency") or Urgency.NORMAL,
                budget=budget,
                duration_hours=duration,
                exclude_provider_ids={client.pk},
            ),
            limit=1,
        )
        return matches[0].provider_id if matches else None

    @classmethod
    def create_booking(cls, client: User, data: dict[str, Any]) -> Booking:
        """
        Create a booking for a client.

        With no provider_id the best match is assigned; if nobody qualifies the
        booking stays pending without a provider until one is assigned.

        Args:
            client: Booking client
            data: Validated booking fields (see BookingCreateSerializer)

        Raises:
            PermissionDeniedError: Caller is not a client
            ValidationError: Bad amounts, schedule, category, provider or service
        """
        if not client.is_client:
            raise PermissionDeniedError("Only clients can create bookings")
        cls._validate_booking_data(data)

        data = dict(data)
        provider_id = data.pop("provider_id", None)
        service_id = data.pop("service_id", None)
        budget = {
            "budget_min": data.pop("budget_min", None),
            "budget_max": data.pop("budget_max", None),
        }

        service = None
        if service_id is not None:
            service = ProviderService.objects.filter(pk=service_id, is_active=True).first()
            if service is None:
                raise ValidationError(
                    "Service not found or inactive",
                    details={"service_id": str(service_id)},
                )
            if provider_id is not None and service.provider_id != provider_id:
                raise ValidationError(
                    "Service does not belong to the selected provider",
                    details={"service_id": str(service_id), "provider_id": provider_id},
                )
            provider_id = service.provider_id
            data["category"] = data.get("category") or service.category

        if provider_id is not None:
            cls._approved_provider(provider_id, client)
        else:
            provider_id = cls._match_provider(client, {**data, **budget})

        data.setdefault("base_amount_cents", data["total_amount_cents"])

        with cls.atomic():
            booking = Booking.objects.create(
                client=client,
                provider_id=provider_id,
                service=service,
                **data,
            )
            note = "Booking created" if provider_id else "Booking created; awaiting provider"
            booking.add_timeline_entry(actor=client, note=note)

        cls.get_logger().info(
            "Booking created",
            extra={
                "booking_id": str(booking.pk),
                "client_id": client.pk,
                "provider_id": provider_id,
                "matched": service_id is None and provider_id is not None,
            },
        )
        NotificationService.notify_booking_status(booking, "created", actor=client)
        return booking

    @classmethod
    def assign_provider(cls, booking_id, provider_id, actor: User) -> Booking:
        """
        Assign a provider to a pending booking.

        Raises:
            PermissionDeniedError: Actor is not the client or an admin
            InvalidStateError: Booking is no longer pending
            ValidationError: Provider not approved, or is the client
        """

        def mutate(booking: Booking) -> None:
            cls._require_role(booking, actor, {CLIENT, ADMIN}, "assign a provider to")
            if booking.status != BookingStatus.PENDING:
                raise InvalidStateError(
                    f"Cannot assign a provider to a booking in '{booking.status}' state",
                    details={"booking_id": str(booking.pk), "current_state": booking.status},
                )
            cls._approved_provider(provider_id, booking.client)
            booking.provider_id = provider_id
            if booking.service_id and booking.service.provider_id != provider_id:
                booking.service = None
            booking.save()
            booking.add_timeline_entry(actor=actor, note="Provider assigned")

        booking = cls._mutate(booking_id, "assign_provider", mutate)
        NotificationService.notify_booking_status(booking, "assigned", actor=actor)
        return booking

    # =========================================================================
    # Forward Transitions
    # =========================================================================

    @classmethod
    def confirm(cls, booking_id, actor: User) -> Booking:
        """PENDING -> CONFIRMED by the assigned provider or an admin."""

        def mutate(booking: Booking) -> None:
            cls._require_role(booking, actor, {PROVIDER, ADMIN}, "confirm")
            cls.apply_transition(booking, "confirm")
            booking.save()
            booking.add_timeline_entry(actor=actor, note="Booking confirmed")

        booking = cls._mutate(booking_id, "confirm", mutate)
        NotificationService.notify_booking_status(booking, "confirmed", actor=actor)
        return booking

    @classmethod
    def start(cls, booking_id, actor: User) -> Booking:
        """CONFIRMED -> IN_PROGRESS by the assigned provider or an admin."""

        def mutate(booking: Booking) -> None:
            cls._require_role(booking, actor, {PROVIDER, ADMIN}, "start")
            cls.apply_transition(booking, "start")
            booking.save()
            booking.add_timeline_entry(actor=actor, note="Work started")

        booking = cls._mutate(booking_id, "start", mutate)
        NotificationService.notify_booking_status(booking, "started", actor=actor)
        return booking

    @classmethod
    def complete(cls, booking_id, actor: User, release_payment: bool = True) -> Booking:
        """
        IN_PROGRESS -> COMPLETED by the client or an admin.

        A pay-now booking needs funds held in escrow. With release_payment the
        held funds are released and the payout is created; a pay-after booking
        that is still unpaid gets a payout waiting for the payment.

        Raises:
            PermissionDeniedError: Actor is not the client or an admin
            InvalidStateError: Booking is not in progress (e.g. already completed)
            PaymentRequiredError: Pay-now booking without held funds
        """

        def mutate(booking: Booking) -> None:
            cls._require_role(booking, actor, {CLIENT, ADMIN}, "complete")
            escrow = EscrowLedger.get_for_booking(booking.pk)
            funds_held = escrow is not None and escrow.state == EscrowState.PENDING
            if (
                booking.status == BookingStatus.IN_PROGRESS
                and booking.payment_timing == PaymentTiming.PAY_NOW
                and not funds_held
            ):
                raise PaymentRequiredError(
                    "The client must pay before the booking can be completed",
                    details={"booking_id": str(booking.pk)},
                )

            cls.apply_transition(booking, "complete")
            booking.save()
            booking.add_timeline_entry(actor=actor, note="Booking completed")
            ProviderDirectory.record_completed_job(booking.provider_id)

            released = False
            if release_payment and funds_held:
                EscrowLedger.release(escrow.id, released_by=actor)
                released = True
            if released or not booking.is_paid:
                PayoutService.create_payout(booking.pk)

        booking = cls._mutate(booking_id, "complete", mutate)
        NotificationService.notify_booking_status(booking, "completed", actor=actor)
        return booking

    @classmethod
    def release_payment(cls, booking_id, actor: User) -> Booking:
        """
        Release held funds of a completed booking and create its payout.

        Raises:
            InvalidStateError: Booking not completed, or nothing held to release
        """

        def mutate(booking: Booking) -> None:
            cls._require_role(booking, actor, {CLIENT, ADMIN}, "release payment for")
            if booking.status != BookingStatus.COMPLETED:
                raise InvalidStateError(
                    f"Cannot release payment for a booking in '{booking.status}' state",
                    details={"booking_id": str(booking.pk), "current_state": booking.status},
                )
            escrow = EscrowLedger.get_for_booking(booking.pk)
            if escrow is None:
                raise PaymentRequiredError(
                    "No payment has been recorded for this booking",
                    details={"booking_id": str(booking.pk)},
                )
            result = EscrowLedger.release(escrow.id, released_by=actor)
            PayoutService.create_payout(booking.pk)
            if not result.already_done:
                booking.add_timeline_entry(actor=actor, note="Payment released to provider")

        return cls._mutate(booking_id, "release_payment", mutate)

    # =========================================================================
    # Cancellation
    # =========================================================================

    @classmethod
    def cancel(cls, booking_id, actor: User, reason: str = "") -> Booking:
        """
        Cancel a booking that has not been completed.

        The refund percentage comes from the status before cancelling. Held
        funds are settled by it: a full refund returns everything, a partial
        one returns the eligible share and releases the rest through the
        commission split (payout created on that share), and zero keeps the
        funds held for an admin to settle. A payout not yet sent is cancelled.

        Raises:
            PermissionDeniedError: Actor is not a participant or an admin
            InvalidStateError: Booking completed, cancelled or disputed
        """
        policy = RefundPolicy.from_settings()

        def mutate(booking: Booking) -> None:
            cls._require_role(booking, actor, {CLIENT, PROVIDER, ADMIN}, "cancel")
            decision = policy.evaluate(booking)
            cls.apply_transition(
                booking,
                "cancel",
                cancelled_by=actor,
                reason=reason,
                refund_percentage=decision.percentage,
                refund_amount_cents=decision.amount_cents,
            )
            PayoutService.cancel_for_booking(booking.pk, reason="Booking cancelled")

            escrow = EscrowLedger.get_for_booking(booking.pk)
            split = False
            if escrow is not None and escrow.state == EscrowState.PENDING and decision.eligible:
                note = reason or "Booking cancelled"
                if 0 < decision.amount_cents < escrow.amount_cents and booking.provider_id:
                    EscrowLedger.split(
                        escrow.id,
                        refund_amount_cents=decision.amount_cents,
                        settled_by=actor,
                        reason=note,
                    )
                    booking.payment_status = PaymentStatus.PARTIALLY_REFUNDED
                    split = True
                else:
                    EscrowLedger.refund(escrow.id, reason=note, refunded_by=actor)
                    booking.payment_status = PaymentStatus.REFUNDED

            booking.save()
            if split:
                PayoutService.create_payout(booking.pk)
            booking.add_timeline_entry(actor=actor, note=reason or "Booking cancelled")

        booking = cls._mutate(booking_id, "cancel", mutate)
        NotificationService.notify_booking_status(booking, "cancelled", actor=actor)
        return booking

    @classmethod
    def settle_cancelled_payment(
        cls,
        booking_id,
        decision: str,
        actor: User,
        notes: str = "",
    ) -> Booking:
        """
        Admin settlement of funds still held for a cancelled booking.

        A cancellation with no refund leaves the escrow held. release pays the
        provider (payout created); refund returns everything to the client.

        Raises:
            PermissionDeniedError: Not an admin
            ValidationError: Unknown decision
            InvalidStateError: Booking not cancelled, or no funds held
        """
        if decision not in DisputeDecision.values:
            raise ValidationError(
                f"Unknown settlement decision '{decision}'",
                details={"allowed": list(DisputeDecision.values)},
            )

        def mutate(booking: Booking) -> None:
            cls._require_role(booking, actor, {ADMIN}, "settle payments for")
            if booking.status != BookingStatus.CANCELLED:
                raise InvalidStateError(
                    "Only a cancelled booking's held payment can be settled here",
                    details={"booking_id": str(booking.pk), "current_state": booking.status},
                )
            escrow = EscrowLedger.get_for_booking(booking.pk)
            if escrow is None or escrow.state != EscrowState.PENDING:
                raise InvalidStateError(
                    "No held payment to settle for this booking",
                    details={
                        "booking_id": str(booking.pk),
                        "escrow_state": escrow.state if escrow is not None else None,
                    },
                )

            if decision == DisputeDecision.RELEASE:
                if booking.provider_id is None:
                    raise ValidationError(
                        "Booking has no provider to pay",
                        details={"booking_id": str(booking.pk)},
                    )
                EscrowLedger.release(escrow.id, released_by=actor)
                booking.refund_percentage = 0
                booking.refund_amount_cents = 0
                booking.refund_eligible = False
                booking.save()
                PayoutService.create_payout(booking.pk)
                note = "Held payment released to provider"
            else:
                EscrowLedger.refund(
                    escrow.id,
                    reason=notes or "Cancelled booking refunded",
                    refunded_by=actor,
                )
                booking.refund_percentage = 100
                booking.refund_amount_cents = escrow.amount_cents
                booking.refund_eligible = True
                booking.payment_status = PaymentStatus.REFUNDED
                booking.save()
                note = "Held payment refunded to client"

            booking.add_timeline_entry(actor=actor, note=f"{note}. {notes}".strip())

        return cls._mutate(booking_id, "settle_cancelled_payment", mutate)

    # =========================================================================
    # Disputes
    # =========================================================================

    @classmethod
    def dispute(cls, booking_id, actor: User, reason: str, description: str = "") -> Booking:
        """
        Raise a dispute on an in-progress or completed booking.

        Held funds are frozen in the escrow until an admin resolves it.

        Raises:
            ValidationError: Missing reason
            InvalidStateError: Wrong booking status, funds already released,
                or payout already sent
        """
        if not reason or not reason.strip():
            raise ValidationError("A dispute reason is required")

        def mutate(booking: Booking) -> None:
            role = cls._require_role(booking, actor, {CLIENT, PROVIDER, ADMIN}, "dispute")

            escrow = EscrowLedger.get_for_booking(booking.pk)
            if escrow is not None and escrow.state == EscrowState.RELEASED:
                raise InvalidStateError(
                    "Cannot dispute a booking whose payment has been released",
                    details={"booking_id": str(booking.pk), "escrow_state": escrow.state},
                )
            payout = Payout.objects.select_for_update().filter(booking_id=booking.pk).first()
            if payout is not None and payout.state in SENT_PAYOUT_STATES:
                raise InvalidStateError(
                    "Cannot dispute a booking whose payout has been sent",
                    details={"booking_id": str(booking.pk), "payout_state": payout.state},
                )

            cls.apply_transition(booking, "dispute", disputed_by=actor, reason=reason)
            if escrow is not None and escrow.state == EscrowState.PENDING:
                EscrowLedger.start_dispute(
                    escrow.id,
                    reason=reason,
                    initiator=role,
                    description=description,
                    raised_by=actor,
                )
            booking.save()
            booking.add_timeline_entry(actor=actor, note=reason)

        booking = cls._mutate(booking_id, "dispute", mutate)
        NotificationService.notify_booking_status(booking, "disputed", actor=actor)
        return booking

    @classmethod
    def resolve_dispute(
        cls,
        booking_id,
        decision: str,
        resolved_by: User,
        notes: str = "",
    ) -> Booking:
        """
        Admin decision on an open dispute.

        release pays the provider (payout created); refund returns held funds
        to the client and cancels any unsent payout.

        Raises:
            PermissionDeniedError: Not an admin
            ValidationError: Unknown decision
            InvalidStateError: No open dispute on the booking, or a refund after the
                payout was sent
        """
        if decision not in DisputeDecision.values:
            raise ValidationError(
                f"Unknown dispute decision '{decision}'",
                details={"allowed": list(DisputeDecision.values)},
            )

        def mutate(booking: Booking) -> None:
            cls._require_role(booking, resolved_by, {ADMIN}, "resolve disputes on")
            if not booking.is_dispute_open:
                raise InvalidStateError(
                    "Booking has no open dispute",
                    details={"booking_id": str(booking.pk), "current_state": booking.status},
                )

            if decision == DisputeDecision.REFUND:
                payout = (
                    Payout.objects.select_for_update().filter(booking_id=booking.pk).first()
                )
                if payout is not None and payout.state in SENT_PAYOUT_STATES:
                    raise InvalidStateError(
                        "Cannot refund a booking whose payout has been sent",
                        details={"booking_id": str(booking.pk), "payout_state": payout.state},
                    )

            escrow = EscrowLedger.get_for_booking(booking.pk)
            if escrow is not None and escrow.state == EscrowState.DISPUTED:
                EscrowLedger.resolve_dispute(
                    escrow.id, decision, resolved_by=resolved_by, notes=notes
                )

            booking.dispute_resolved_at = timezone.now()
            if decision == DisputeDecision.RELEASE:
                booking.dispute_outcome = DisputeOutcome.RELEASED
                booking.save()
                PayoutService.create_payout(booking.pk)
            else:
                booking.dispute_outcome = DisputeOutcome.REFUNDED
                if booking.is_paid:
                    booking.payment_status = PaymentStatus.REFUNDED
                booking.save()
                PayoutService.cancel_for_booking(booking.pk, reason="Dispute refunded")

            booking.add_timeline_entry(
                actor=resolved_by,
                note=f"Dispute resolved: {booking.get_dispute_outcome_display()}. {notes}".strip(),
            )

        booking = cls._mutate(booking_id, "resolve_dispute", mutate)
        NotificationService.notify_booking_status(booking, "dispute_resolved", actor=resolved_by)
        return booking

    # =========================================================================
    # Payment Hook
    # =========================================================================

    @classmethod
    def record_payment(cls, booking_id, reference: str, actor: User) -> Booking:
        """
        Record the client's payment and hold it in escrow.

        Idempotent once the booking is paid. Paying a booking that is already
        completed releases the funds straight away; paying into an open
        dispute freezes them.

        Raises:
            ValidationError: Missing payment reference
            InvalidStateError: Booking cancelled
        """
        if not reference or not reference.strip():
            raise ValidationError("A payment reference is required")

        paid_now = []

        def mutate(booking: Booking) -> None:
            cls._require_role(booking, actor, {CLIENT, ADMIN}, "pay for")
            if booking.is_paid:
                return
            if booking.status == BookingStatus.CANCELLED:
                raise InvalidStateError(
                    "Cannot record payment for a cancelled booking",
                    details={"booking_id": str(booking.pk)},
                )

            booking.payment_status = PaymentStatus.COMPLETED
            booking.payment_reference = reference
            booking.paid_at = timezone.now()
            booking.save()
            booking.add_timeline_entry(actor=actor, note=f"Payment received ({reference})")

            escrow, _ = EscrowLedger.open_escrow(booking, payment_reference=reference)
            if escrow.state == EscrowState.PENDING:
                if booking.is_dispute_open:
                    EscrowLedger.start_dispute(
                        escrow.id,
                        reason=booking.dispute_reason or "Booking under dispute",
                        initiator=cls.role_of(booking, booking.disputed_by) or ADMIN,
                        raised_by=booking.disputed_by,
                    )
                elif booking.dispute_outcome == DisputeOutcome.REFUNDED:
                    EscrowLedger.refund(
                        escrow.id, reason="Dispute resolved in favour of the client"
                    )
                    booking.payment_status = PaymentStatus.REFUNDED
                    booking.save()
                elif (
                    booking.status == BookingStatus.COMPLETED
                    or booking.dispute_outcome == DisputeOutcome.RELEASED
                ):
                    EscrowLedger.release(escrow.id, released_by=actor)
            PayoutService.on_payment_completed(booking.pk)
            paid_now.append(True)

        booking = cls._mutate(booking_id, "record_payment", mutate)
        if paid_now:
            NotificationService.notify_booking_status(booking, "payment_received", actor=actor)
        return booking
