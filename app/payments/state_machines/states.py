"""
State enums for payment models.

This module defines all state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

EscrowPayment States:
    pending → released
    pending → refunded
    pending → disputed → released / refunded (admin decision)

Payout States:
    awaiting_payment → pending → processing → completed
    processing → failed → pending (explicit re-queue only)
    awaiting_payment/pending → cancelled
"""

from django.db import models


class EscrowState(models.TextChoices):
    """
    States for the EscrowPayment lifecycle.

    Terminal states: RELEASED, REFUNDED

    State Flow:
        PENDING → RELEASED (booking completed)
        PENDING → REFUNDED (booking cancelled)
        PENDING → DISPUTED → RELEASED / REFUNDED
    """

    PENDING = "pending", "Held"
    DISPUTED = "disputed", "Disputed"
    RELEASED = "released", "Released"
    REFUNDED = "refunded", "Refunded"


class PayoutState(models.TextChoices):
    """
    States for the Payout model lifecycle.

    Terminal states: COMPLETED, CANCELLED (FAILED can be re-queued)

    State Flow:
        AWAITING_PAYMENT → PENDING (client payment recorded)
        PENDING → PROCESSING → COMPLETED
        PROCESSING → FAILED → PENDING (operator re-queue)
        AWAITING_PAYMENT/PENDING → CANCELLED
    """

    AWAITING_PAYMENT = "awaiting_payment", "Awaiting Client Payment"
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


class DisputeInitiator(models.TextChoices):
    CLIENT = "client", "Client"
    PROVIDER = "provider", "Provider"
    ADMIN = "admin", "Admin"


class DisputeDecision(models.TextChoices):
    """Admin decision closing a dispute; routes the escrow to its terminal state."""

    RELEASE = "release", "Release to Provider"
    REFUND = "refund", "Refund to Client"


class EvidenceType(models.TextChoices):
    PHOTO = "photo", "Photo"
    DOCUMENT = "document", "Document"
    MESSAGE = "message", "Message"
    OTHER = "other", "Other"


__all__ = [
    "EscrowState",
    "PayoutState",
    "DisputeInitiator",
    "DisputeDecision",
    "EvidenceType",
]
