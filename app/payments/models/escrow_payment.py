"""
EscrowPayment model for funds held against a booking.

An EscrowPayment records a client's payment for a booking from the moment
it is received until it is released to the provider, refunded to the client
or settled by a dispute decision. Money never moves while the escrow is
held; release and refund only record the outcome the payout engine and the
refund flow act on.

Usage:
    from payments.models import EscrowPayment
    from payments.state_machines import EscrowState

    escrow = EscrowPayment.objects.for_booking(booking.id).get()

    # State transitions using django-fsm
    escrow.release(released_by=client, platform_fee_cents=90000, provider_amount_cents=210000)
    escrow.save()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.managers import SoftDeleteManager, SoftDeleteQuerySet
from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import DisputeDecision, DisputeInitiator, EscrowState

if TYPE_CHECKING:
    from typing import Any


class EscrowPaymentQuerySet(SoftDeleteQuerySet):
    def for_booking(self, booking_id) -> EscrowPaymentQuerySet:
        return self.filter(booking_id=booking_id)

    def for_client(self, client_id) -> EscrowPaymentQuerySet:
        return self.filter(client_id=client_id)

    def for_provider(self, provider_id) -> EscrowPaymentQuerySet:
        return self.filter(provider_id=provider_id)

    def held(self) -> EscrowPaymentQuerySet:
        return self.filter(state=EscrowState.PENDING)


class EscrowPaymentManager(SoftDeleteManager):
    """Default manager: hides soft-deleted escrows, exposes the queryset helpers."""

    queryset_class = EscrowPaymentQuerySet

    def for_booking(self, booking_id) -> EscrowPaymentQuerySet:
        return self.get_queryset().for_booking(booking_id)

    def for_client(self, client_id) -> EscrowPaymentQuerySet:
        return self.get_queryset().for_client(client_id)

    def for_provider(self, provider_id) -> EscrowPaymentQuerySet:
        return self.get_queryset().for_provider(provider_id)


class EscrowPayment(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
    """
    Client funds held for one booking.

    State Flow:
        PENDING -> RELEASED (booking completed by the client or an admin)
        PENDING -> REFUNDED (booking cancelled with a full refund)
        PENDING -> RELEASED with refunded_amount_cents (split after a
            partial-refund cancellation)
        PENDING -> DISPUTED -> RELEASED / REFUNDED (admin resolution)

    Fields:
        booking: Booking the funds were paid for
        client: Paying client
        provider: Provider the funds are held for (filled on release if the
            booking had no provider when payment arrived)
        amount_cents: Gross amount held in smallest currency unit
        currency: ISO 4217 currency code (lowercase)
        payment_reference: Gateway receipt for the client payment
        state: Current FSM state
        platform_fee_cents / provider_amount_cents: Split recorded on release
        released_by / released_at: Release audit
        refund_reason / refunded_by / refunded_at: Refund audit
        refunded_amount_cents: Client share of a split settlement (the rest is
            released to the provider)
        dispute_*: Dispute details
        resolution_*: Admin decision closing a dispute
        evidence: Evidence items submitted during a dispute
        events: Append-only audit events {type, at, actor, data}
        version: Optimistic locking version

    Note:
        At most one non-deleted escrow exists per booking; the conditional
        unique constraint makes find-or-create race-safe.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="escrow_payments",
        help_text="Booking these funds were paid for",
    )

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="client_escrows",
    )

    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="provider_escrows",
        null=True,
        blank=True,
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount_cents = models.PositiveBigIntegerField(
        help_text="Gross amount held in smallest currency unit",
    )

    currency = models.CharField(
        max_length=3,
        default="kes",
        help_text="ISO 4217 currency code (lowercase)",
    )

    payment_reference = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Gateway receipt for the client payment",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    state = FSMField(
        default=EscrowState.PENDING,
        choices=EscrowState.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the escrow (managed by FSM)",
    )

    # ==========================================================================
    # Release
    # ==========================================================================

    platform_fee_cents = models.PositiveBigIntegerField(null=True, blank=True)
    provider_amount_cents = models.PositiveBigIntegerField(null=True, blank=True)
    released_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )
    released_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Refund
    # ==========================================================================

    refunded_amount_cents = models.PositiveBigIntegerField(
        default=0,
        help_text="Part of the held amount returned to the client on a split settlement",
    )
    refund_reason = models.TextField(blank=True, default="")
    refunded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )
    refunded_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Dispute & Resolution
    # ==========================================================================

    dispute_reason = models.CharField(max_length=255, blank=True, default="")
    dispute_initiator = models.CharField(
        max_length=20,
        choices=DisputeInitiator.choices,
        blank=True,
        default="",
    )
    dispute_description = models.TextField(blank=True, default="")
    dispute_raised_at = models.DateTimeField(null=True, blank=True)

    resolution_decision = models.CharField(
        max_length=20,
        choices=DisputeDecision.choices,
        blank=True,
        default="",
    )
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )
    resolution_notes = models.TextField(blank=True, default="")
    resolved_at = models.DateTimeField(null=True, blank=True)

    evidence = models.JSONField(default=list, blank=True)
    events = models.JSONField(
        default=list,
        blank=True,
        help_text="Append-only audit events",
    )

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    objects = EscrowPaymentManager()
    all_objects = models.Manager()

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Escrow Payment"
        verbose_name_plural = "Escrow Payments"
        indexes = [
            models.Index(fields=["client", "state"], name="escrow_client_state_idx"),
            models.Index(fields=["provider", "state"], name="escrow_provider_state_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["booking"],
                condition=models.Q(is_deleted=False),
                name="unique_active_escrow_per_booking",
            ),
            models.CheckConstraint(
                check=models.Q(amount_cents__gt=0),
                name="escrow_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        amount_display = f"{self.amount_cents / 100:.2f} {self.currency.upper()}"
        return f"EscrowPayment({self.id}, {self.state}, {amount_display})"

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

    def record_event(self, event_type: str, actor=None, **data: Any) -> None:
        """Append an audit event; persisted with the next save."""
        self.events = [
            *(self.events or []),
            {
                "type": event_type,
                "at": timezone.now().isoformat(),
                "actor": getattr(actor, "pk", actor),
                "data": data,
            },
        ]

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=state,
        source=[EscrowState.PENDING, EscrowState.DISPUTED],
        target=EscrowState.RELEASED,
    )
    def release(
        self,
        released_by=None,
        platform_fee_cents: int = 0,
        provider_amount_cents: int | None = None,
    ):
        """
        Release the held funds to the provider.

        Transition: PENDING/DISPUTED -> RELEASED

        Args:
            released_by: User releasing the funds (client or admin)
            platform_fee_cents: Commission retained by the platform
            provider_amount_cents: Share owed to the provider
        """
        self.released_by = released_by
        self.released_at = timezone.now()
        self.platform_fee_cents = platform_fee_cents
        self.provider_amount_cents = (
            provider_amount_cents
            if provider_amount_cents is not None
            else self.amount_cents - platform_fee_cents
        )

    @transition(
        field=state,
        source=[EscrowState.PENDING, EscrowState.DISPUTED],
        target=EscrowState.REFUNDED,
    )
    def refund(self, reason: str = "", refunded_by=None):
        """
        Refund the held funds to the client.

        Transition: PENDING/DISPUTED -> REFUNDED
        """
        self.refund_reason = reason or ""
        self.refunded_by = refunded_by
        self.refunded_at = timezone.now()

    @transition(
        field=state,
        source=EscrowState.PENDING,
        target=EscrowState.DISPUTED,
    )
    def start_dispute(
        self,
        reason: str,
        initiator: str,
        description: str = "",
    ):
        """
        Freeze the funds pending an admin decision.

        Transition: PENDING -> DISPUTED
        """
        self.dispute_reason = reason
        self.dispute_initiator = initiator
        self.dispute_description = description or ""
        self.dispute_raised_at = timezone.now()

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_held(self) -> bool:
        return self.state == EscrowState.PENDING

    @property
    def is_disputed(self) -> bool:
        return self.state == EscrowState.DISPUTED

    @property
    def retained_amount_cents(self) -> int:
        """Held amount minus any share returned to the client."""
        return self.amount_cents - (self.refunded_amount_cents or 0)

    @property
    def is_settled(self) -> bool:
        """Funds have left escrow in either direction."""
        return self.state in [EscrowState.RELEASED, EscrowState.REFUNDED]
