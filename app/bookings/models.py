"""
Booking models.

A Booking is one requested engagement between a client and a provider. Its
status moves through a django-fsm state machine; every status change is
recorded as a BookingTimelineEntry, which can never be edited afterwards.

Usage:
    from bookings.models import Booking
    from bookings.state_machines import BookingStatus

    booking = Booking.objects.for_participant(user).get(pk=booking_id)

    # State transitions using django-fsm
    booking.confirm()  # pending -> confirmed
    booking.save()
    booking.add_timeline_entry(actor=provider, note="Provider accepted")
"""

from __future__ import annotations

import secrets
from datetime import datetime

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from bookings.exceptions import ImmutableTimelineError
from bookings.state_machines import (
    BookingStatus,
    DisputeOutcome,
    PaymentMethod,
    PaymentStatus,
    PaymentTiming,
    Urgency,
)


def generate_booking_number() -> str:
    """Human-readable reference, e.g. "BK-241019-7F3A9C"."""
    return f"BK-{timezone.now():%y%m%d}-{secrets.token_hex(3).upper()}"


class BookingQuerySet(models.QuerySet):
    def for_client(self, client_id) -> BookingQuerySet:
        return self.filter(client_id=client_id)

    def for_provider(self, provider_id) -> BookingQuerySet:
        return self.filter(provider_id=provider_id)

    def for_participant(self, user) -> BookingQuerySet:
        """Bookings the user may see; admins see everything."""
        if getattr(user, "is_platform_admin", False):
            return self.all()
        return self.filter(Q(client_id=user.pk) | Q(provider_id=user.pk))


class Booking(UUIDPrimaryKeyMixin, BaseModel):
    """
    One engagement between a client and a provider for a service.

    State Flow:
        PENDING -> CONFIRMED -> IN_PROGRESS -> COMPLETED
        PENDING/CONFIRMED/IN_PROGRESS -> CANCELLED
        IN_PROGRESS/COMPLETED -> DISPUTED

    Fields:
        booking_number: Human-readable reference shown to users
        client / provider: Parties (provider may be empty while pending)
        service / category: Listed service booked, and its category
        scheduled_date / start_time / end_time: Requested time window
        location_*: Where the work happens
        base_amount_cents / total_amount_cents / currency: Pricing
        payment_*: Payment summary maintained by the payment hook
        urgency: normal, urgent or emergency
        status: Current FSM state
        cancelled_* / refund_*: Cancellation outcome
        disputed_* / dispute_*: Dispute details and final outcome
        version: Optimistic locking version
    """

    booking_number = models.CharField(
        max_length=20,
        unique=True,
        default=generate_booking_number,
        editable=False,
    )

    # ==========================================================================
    # Parties & Service
    # ==========================================================================

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="client_bookings",
    )
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="provider_bookings",
        null=True,
        blank=True,
        help_text="Assigned provider; empty until one is assigned",
    )
    service = models.ForeignKey(
        "providers.ProviderService",
        on_delete=models.SET_NULL,
        related_name="bookings",
        null=True,
        blank=True,
    )
    category = models.CharField(max_length=50, db_index=True)
    description = models.TextField(blank=True, default="")

    # ==========================================================================
    # Schedule & Location
    # ==========================================================================

    scheduled_date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()

    location_area = models.CharField(max_length=100, blank=True, default="")
    location_address = models.CharField(max_length=255, blank=True, default="")
    location_city = models.CharField(max_length=100, blank=True, default="")
    location_latitude = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True
    )
    location_longitude = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True
    )
    location_instructions = models.TextField(blank=True, default="")

    # ==========================================================================
    # Pricing & Payment
    # ==========================================================================

    base_amount_cents = models.PositiveBigIntegerField(
        help_text="Service price before extras, in smallest currency unit"
    )
    total_amount_cents = models.PositiveBigIntegerField(
        help_text="Amount the client pays, in smallest currency unit"
    )
    currency = models.CharField(
        max_length=3,
        default="kes",
        help_text="ISO 4217 currency code (lowercase)",
    )

    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.MPESA,
    )
    payment_timing = models.CharField(
        max_length=20,
        choices=PaymentTiming.choices,
        default=PaymentTiming.PAY_NOW,
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    payment_reference = models.CharField(max_length=255, blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)

    urgency = models.CharField(
        max_length=20,
        choices=Urgency.choices,
        default=Urgency.NORMAL,
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=BookingStatus.PENDING,
        choices=BookingStatus.choices,
        protected=True,
        db_index=True,
        help_text="Current status of the booking (managed by FSM)",
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Cancellation
    # ==========================================================================

    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, default="")
    refund_eligible = models.BooleanField(default=False)
    refund_percentage = models.PositiveSmallIntegerField(default=0)
    refund_amount_cents = models.PositiveBigIntegerField(default=0)

    # ==========================================================================
    # Dispute
    # ==========================================================================

    disputed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )
    disputed_at = models.DateTimeField(null=True, blank=True)
    dispute_reason = models.CharField(max_length=255, blank=True, default="")
    dispute_outcome = models.CharField(
        max_length=20,
        choices=DisputeOutcome.choices,
        blank=True,
        default="",
        help_text="Escrow decision that closed the dispute",
    )
    dispute_resolved_at = models.DateTimeField(null=True, blank=True)

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    objects = BookingQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Booking"
        verbose_name_plural = "Bookings"
        indexes = [
            models.Index(fields=["client", "status"], name="booking_client_status_idx"),
            models.Index(fields=["provider", "status"], name="booking_provider_status_idx"),
            models.Index(fields=["provider", "created_at"], name="booking_provider_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(total_amount_cents__gt=0),
                name="booking_total_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Booking({self.booking_number}, {self.status})"

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

    def has_provider(self) -> bool:
        return self.provider_id is not None

    @transition(
        field=status,
        source=BookingStatus.PENDING,
        target=BookingStatus.CONFIRMED,
        conditions=[has_provider],
    )
    def confirm(self):
        """
        Provider accepted the job.

        Transition: PENDING -> CONFIRMED (requires an assigned provider)
        """
        self.confirmed_at = timezone.now()

    @transition(
        field=status,
        source=BookingStatus.CONFIRMED,
        target=BookingStatus.IN_PROGRESS,
    )
    def start(self):
        self.started_at = timezone.now()

    @transition(
        field=status,
        source=BookingStatus.IN_PROGRESS,
        target=BookingStatus.COMPLETED,
    )
    def complete(self):
        self.completed_at = timezone.now()

    @transition(
        field=status,
        source=[
            BookingStatus.PENDING,
            BookingStatus.CONFIRMED,
            BookingStatus.IN_PROGRESS,
        ],
        target=BookingStatus.CANCELLED,
    )
    def cancel(
        self,
        cancelled_by=None,
        reason: str = "",
        refund_percentage: int = 0,
        refund_amount_cents: int = 0,
    ):
        """
        Cancel the booking and record the refund decision.

        Transition: PENDING/CONFIRMED/IN_PROGRESS -> CANCELLED
        """
        self.cancelled_by = cancelled_by
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason or ""
        self.refund_percentage = refund_percentage
        self.refund_eligible = refund_percentage > 0
        self.refund_amount_cents = refund_amount_cents

    @transition(
        field=status,
        source=[BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED],
        target=BookingStatus.DISPUTED,
    )
    def dispute(self, disputed_by=None, reason: str = ""):
        self.disputed_by = disputed_by
        self.disputed_at = timezone.now()
        self.dispute_reason = reason

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def add_timeline_entry(self, actor=None, note: str = "", status: str | None = None):
        """Append a timeline entry for the current (or given) status."""
        return BookingTimelineEntry.objects.create(
            booking=self,
            status=status or self.status,
            actor=actor,
            note=note,
        )

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED

    @property
    def is_dispute_open(self) -> bool:
        return self.status == BookingStatus.DISPUTED and not self.dispute_outcome

    @property
    def scheduled_start(self) -> datetime:
        """Aware datetime of the scheduled start in the project time zone."""
        return timezone.make_aware(
            datetime.combine(self.scheduled_date, self.start_time)
        )

    @property
    def duration_hours(self) -> float:
        start = datetime.combine(self.scheduled_date, self.start_time)
        end = datetime.combine(self.scheduled_date, self.end_time)
        return max((end - start).total_seconds() / 3600, 0)

    def is_participant(self, user) -> bool:
        return user.pk in (self.client_id, self.provider_id)


class BookingTimelineEntry(UUIDPrimaryKeyMixin, BaseModel):
    """
    One immutable entry in a booking's status history.

    Fields:
        booking: Booking the entry belongs to
        status: Booking status recorded by this entry
        actor: User who caused it (empty for system actions)
        note: Free-text context

    Entries are append-only: saving an existing entry or deleting one raises
    ImmutableTimelineError.
    """

    booking = models.ForeignKey(
        Booking,
        on_delete=models.CASCADE,
        related_name="timeline",
    )
    status = models.CharField(max_length=20, choices=BookingStatus.choices)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )
    note = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Booking Timeline Entry"
        verbose_name_plural = "Booking Timeline Entries"

    def __str__(self) -> str:
        return f"{self.booking_id}: {self.status}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableTimelineError(
                "Timeline entries cannot be modified",
                details={"entry_id": str(self.pk)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableTimelineError(
            "Timeline entries cannot be deleted",
            details={"entry_id": str(self.pk)},
        )
