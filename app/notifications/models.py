"""
Notification model.

A Notification is an immutable, fully rendered notice for one user. The
title and body are rendered when the notice is created so the record stays
a faithful history even if the booking or payout changes later.

Usage:
    from notifications.models import Notification, NotificationType

    unread = Notification.objects.filter(recipient=user, is_read=False)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class NotificationType(models.TextChoices):
    """Keys of the notices the marketplace sends."""

    BOOKING_CREATED = "booking_created", "Booking Created"
    BOOKING_ASSIGNED = "booking_assigned", "Provider Assigned"
    BOOKING_CONFIRMED = "booking_confirmed", "Booking Confirmed"
    BOOKING_STARTED = "booking_started", "Booking Started"
    BOOKING_COMPLETED = "booking_completed", "Booking Completed"
    BOOKING_CANCELLED = "booking_cancelled", "Booking Cancelled"
    BOOKING_DISPUTED = "booking_disputed", "Booking Disputed"
    DISPUTE_RESOLVED = "dispute_resolved", "Dispute Resolved"
    PAYMENT_RECEIVED = "payment_received", "Payment Received"
    PAYOUT_COMPLETED = "payout_completed", "Payout Completed"
    PAYOUT_FAILED = "payout_failed", "Payout Failed"


class Notification(UUIDPrimaryKeyMixin, BaseModel):
    """
    Individual notification record for a user.

    Fields:
        recipient: User receiving the notification (scopes all queries)
        actor: Optional user who triggered the notification
        notification_type: Key from NotificationType
        title: Fully rendered title string
        body: Fully rendered body string
        data: Arbitrary JSON context (booking id, payout id, amounts)
        is_read / read_at: Read status
        email_sent_at: When the email copy was sent, if it was

    Note:
        - recipient CASCADE: Notifications deleted when user deleted
        - actor SET_NULL: Notification preserved when actor deleted
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="triggered_notifications",
        help_text="User who triggered this notification (optional)",
    )

    notification_type = models.CharField(
        max_length=50,
        choices=NotificationType.choices,
        db_index=True,
    )

    title = models.CharField(
        max_length=500,
        help_text="Fully rendered notification title",
    )

    body = models.TextField(
        blank=True,
        default="",
        help_text="Fully rendered notification body",
    )

    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary context data (ids, amounts, deep links)",
    )

    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether recipient has read this notification",
    )
    read_at = models.DateTimeField(null=True, blank=True)

    email_sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]  # Newest first
        indexes = [
            # Primary query: user's unread notifications
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return (
            f"Notification({self.notification_type}) -> "
            f"User {self.recipient_id} [{read_status}]"
        )
