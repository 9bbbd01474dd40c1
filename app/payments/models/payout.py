"""
Payout model for tracking money transfers to providers.

A Payout represents the provider's share of one completed booking leaving
the platform through the payment gateway. It is created when the booking
completes and sent by the payout sweep once its scheduled time has passed.

Usage:
    from payments.models import Payout
    from payments.state_machines import PayoutState

    ready = Payout.objects.ready_for_sweep(now=timezone.now())

    # State transitions using django-fsm
    payout.start_processing()  # pending -> processing
    payout.save()

    # After the gateway accepts the transfer
    payout.complete(transfer_reference="payout_...", transfer_id="TRF_...")
    payout.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from bookings.state_machines import BookingStatus
from payments.state_machines import PayoutState


class PayoutMethod(models.TextChoices):
    BANK = "bank", "Bank Transfer"
    MOBILE_MONEY = "mobile_money", "Mobile Money"


class PayoutQuerySet(models.QuerySet):
    def for_provider(self, provider_id) -> PayoutQuerySet:
        return self.filter(provider_id=provider_id)

    def ready_for_sweep(self, now=None) -> PayoutQuerySet:
        """
        Pending payouts whose scheduled time has passed, oldest first.

        Payouts of bookings under an open dispute wait for the decision.
        """
        now = now or timezone.now()
        return (
            self.filter(state=PayoutState.PENDING, scheduled_at__lte=now)
            .exclude(booking__status=BookingStatus.DISPUTED, booking__dispute_outcome="")
            .order_by("scheduled_at", "created_at")
        )


class Payout(UUIDPrimaryKeyMixin, BaseModel):
    """
    Represents money transfer to a provider for one booking.

    State Flow:
        AWAITING_PAYMENT -> PENDING (client payment recorded)
        PENDING -> PROCESSING -> COMPLETED
        PROCESSING -> FAILED -> PENDING (operator re-queue)
        AWAITING_PAYMENT/PENDING -> CANCELLED

    Fields:
        booking: Source booking (one payout per booking)
        provider / client: Parties of the booking
        escrow: Escrow the funds were released from (null for pay-after bookings)
        gross_amount_cents: Booking total
        commission_rate: Platform rate applied
        commission_amount_cents / payout_amount_cents: Split of the gross
        currency: ISO 4217 currency code
        state: Current FSM state
        service_completed_at / scheduled_at / processed_at / completed_at /
            failed_at / cancelled_at: Timeline
        payout_method: Bank or mobile money, resolved when processing
        recipient_code: Gateway recipient used for the transfer
        transfer_reference: Idempotency reference sent to the gateway
        transfer_id: Gateway transfer identifier
        failure_reason: Human-readable reason if failed or cancelled
        attempt_count / last_attempt_at: Attempt bookkeeping
        version: Optimistic locking version
        metadata: Flexible JSON storage

    Note:
        Failed payouts are never picked up by the sweep; an operator has to
        re-queue them.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    booking = models.OneToOneField(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="payout",
        help_text="Booking this payout pays for",
    )

    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payouts",
        help_text="Provider receiving the payout",
    )

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="+",
    )

    escrow = models.ForeignKey(
        "payments.EscrowPayment",
        on_delete=models.PROTECT,
        related_name="payouts",
        null=True,
        blank=True,
    )

    # ==========================================================================
    # Amounts & Currency
    # ==========================================================================

    gross_amount_cents = models.PositiveBigIntegerField(
        help_text="Booking total in smallest currency unit",
    )

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        help_text="Platform commission rate applied (e.g. 0.3000)",
    )

    commission_amount_cents = models.PositiveBigIntegerField()

    payout_amount_cents = models.PositiveBigIntegerField(
        help_text="Amount sent to the provider in smallest currency unit",
    )

    currency = models.CharField(
        max_length=3,
        default="kes",
        help_text="ISO 4217 currency code (lowercase)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    state = FSMField(
        default=PayoutState.PENDING,
        choices=PayoutState.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payout (managed by FSM)",
    )

    # ==========================================================================
    # Timeline
    # ==========================================================================

    service_completed_at = models.DateTimeField()

    scheduled_at = models.DateTimeField(
        db_index=True,
        help_text="Earliest time the sweep may send this payout",
    )

    processed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Gateway Integration
    # ==========================================================================

    payout_method = models.CharField(
        max_length=20,
        choices=PayoutMethod.choices,
        blank=True,
        default="",
    )

    recipient_code = models.CharField(max_length=64, blank=True, default="")

    transfer_reference = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        unique=True,
        help_text="Idempotency reference sent with the transfer",
    )

    transfer_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        help_text="Gateway transfer identifier",
    )

    failure_reason = models.TextField(null=True, blank=True)

    # ==========================================================================
    # Retry Bookkeeping & Concurrency Control
    # ==========================================================================

    attempt_count = models.PositiveIntegerField(default=0)
    last_attempt_at = models.DateTimeField(null=True, blank=True)

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata for extensibility",
    )

    objects = PayoutQuerySet.as_manager()

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payout"
        verbose_name_plural = "Payouts"
        indexes = [
            models.Index(fields=["provider", "state"], name="payout_provider_state_idx"),
            models.Index(fields=["state", "scheduled_at"], name="payout_state_sched_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(payout_amount_cents__gt=0),
                name="payout_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with ID, state, and amount."""
        amount_display = f"{self.payout_amount_cents / 100:.2f} {self.currency.upper()}"
        return f"Payout({self.id}, {self.state}, {amount_display})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.
        """
        is_update = self.pk and not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "version" not in update_fields:
                kwargs["update_fields"] = [*update_fields, "version"]
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=state,
        source=PayoutState.AWAITING_PAYMENT,
        target=PayoutState.PENDING,
    )
    def mark_payment_received(self):
        """
        Client payment arrived for a pay-after booking.

        Transition: AWAITING_PAYMENT -> PENDING
        """
        pass

    @transition(
        field=state,
        source=PayoutState.PENDING,
        target=PayoutState.PROCESSING,
    )
    def start_processing(self):
        """
        Claim the payout for a transfer attempt.

        Transition: PENDING -> PROCESSING

        Committed before the gateway call so a concurrent attempt sees a
        non-pending payout and backs off.
        """
        now = timezone.now()
        self.processed_at = now
        self.last_attempt_at = now
        self.attempt_count += 1

    @transition(
        field=state,
        source=PayoutState.PROCESSING,
        target=PayoutState.COMPLETED,
    )
    def complete(self, transfer_reference: str | None = None, transfer_id: str | None = None):
        """
        Mark payout as completed.

        Transition: PROCESSING -> COMPLETED
        """
        self.completed_at = timezone.now()
        if transfer_reference:
            self.transfer_reference = transfer_reference
        if transfer_id:
            self.transfer_id = transfer_id
        self.failure_reason = None

    @transition(
        field=state,
        source=PayoutState.PROCESSING,
        target=PayoutState.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark payout as failed.

        Transition: PROCESSING -> FAILED

        Args:
            reason: Failure reason shown in payout history
        """
        self.failed_at = timezone.now()
        self.failure_reason = reason or "Unknown error"

    @transition(
        field=state,
        source=PayoutState.FAILED,
        target=PayoutState.PENDING,
    )
    def requeue(self):
        """
        Re-queue a failed payout for the next sweep.

        Transition: FAILED -> PENDING

        Resets failure state and schedules it for now. The attempt count is
        kept.
        """
        self.failed_at = None
        self.failure_reason = None
        self.transfer_reference = None
        self.transfer_id = None
        self.scheduled_at = timezone.now()

    @transition(
        field=state,
        source=[PayoutState.AWAITING_PAYMENT, PayoutState.PENDING],
        target=PayoutState.CANCELLED,
    )
    def cancel(self, reason: str | None = None):
        """
        Cancel a payout that has not been sent.

        Transition: AWAITING_PAYMENT/PENDING -> CANCELLED

        Used when the booking is refunded or by an operator.
        """
        self.cancelled_at = timezone.now()
        if reason:
            self.failure_reason = reason

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_complete(self) -> bool:
        return self.state == PayoutState.COMPLETED

    @property
    def can_retry(self) -> bool:
        return self.state == PayoutState.FAILED

    @property
    def can_cancel(self) -> bool:
        return self.state in [PayoutState.AWAITING_PAYMENT, PayoutState.PENDING]
