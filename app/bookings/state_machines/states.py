"""
State enums for booking models.

Booking Status:
    pending → confirmed → in_progress → completed
    pending/confirmed/in_progress → cancelled
    in_progress/completed → disputed

A dispute is closed by the escrow decision, recorded on the booking as
dispute_outcome; the status stays DISPUTED.
"""

from django.db import models


class BookingStatus(models.TextChoices):
    """
    States for the Booking lifecycle.

    Terminal states: COMPLETED (unless disputed), CANCELLED, DISPUTED once resolved
    """

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    DISPUTED = "disputed", "Disputed"


class PaymentMethod(models.TextChoices):
    MPESA = "mpesa", "M-Pesa"
    CARD = "card", "Card"
    CASH = "cash", "Cash"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"


class PaymentTiming(models.TextChoices):
    """
    When the client pays.

    PAY_NOW bookings need held funds before completion; PAY_AFTER bookings
    complete first and their payout waits for the payment.
    """

    PAY_NOW = "pay_now", "Pay Now"
    PAY_AFTER = "pay_after", "Pay After Service"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"


class Urgency(models.TextChoices):
    NORMAL = "normal", "Normal"
    URGENT = "urgent", "Urgent"
    EMERGENCY = "emergency", "Emergency"


class DisputeOutcome(models.TextChoices):
    """Where the funds went when the dispute was closed."""

    RELEASED = "released", "Released to Provider"
    REFUNDED = "refunded", "Refunded to Client"


ACTIVE_STATUSES = [
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.IN_PROGRESS,
]


__all__ = [
    "ACTIVE_STATUSES",
    "BookingStatus",
    "DisputeOutcome",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentTiming",
    "Urgency",
]
