"""
Notification service layer.

NotificationService is the notification port of the marketplace: booking
and payout flows call it and never depend on delivery succeeding. Every
public method records an in-app Notification and, after the surrounding
transaction commits, enqueues the email copy. Failures are logged and
swallowed so a broken notice can never roll back a booking or a payout.

Usage:
    from notifications.services import NotificationService

    NotificationService.notify_booking_status(booking, event="confirmed", actor=provider)
    NotificationService.notify_payout_failed(payout)

    result = NotificationService.mark_as_read(notification, user)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult

from notifications.models import Notification, NotificationType

if TYPE_CHECKING:
    from typing import Any

    from authentication.models import User
    from bookings.models import Booking
    from payments.models import Payout


# (type, title, body) per booking event; formatted with the booking context
BOOKING_EVENT_MESSAGES: dict[str, tuple[str, str, str]] = {
    "created": (
        NotificationType.BOOKING_CREATED,
        "New booking {number}",
        "A {category} job has been booked for {date} at {time}.",
    ),
    "assigned": (
        NotificationType.BOOKING_ASSIGNED,
        "Booking {number} assigned",
        "A provider has been assigned to your {category} booking.",
    ),
    "confirmed": (
        NotificationType.BOOKING_CONFIRMED,
        "Booking {number} confirmed",
        "Your {category} booking on {date} at {time} is confirmed.",
    ),
    "started": (
        NotificationType.BOOKING_STARTED,
        "Booking {number} started",
        "Work on your {category} booking has started.",
    ),
    "completed": (
        NotificationType.BOOKING_COMPLETED,
        "Booking {number} completed",
        "The {category} job has been marked as completed.",
    ),
    "cancelled": (
        NotificationType.BOOKING_CANCELLED,
        "Booking {number} cancelled",
        "The {category} booking on {date} has been cancelled.",
    ),
    "disputed": (
        NotificationType.BOOKING_DISPUTED,
        "Dispute opened on booking {number}",
        "A dispute has been raised on the {category} booking. Our team will review it.",
    ),
    "dispute_resolved": (
        NotificationType.DISPUTE_RESOLVED,
        "Dispute on booking {number} resolved",
        "The dispute on the {category} booking has been resolved.",
    ),
    "payment_received": (
        NotificationType.PAYMENT_RECEIVED,
        "Payment received for booking {number}",
        "Payment of {amount} has been received and is held until the job is done.",
    ),
}


def format_amount(amount_cents: int, currency: str) -> str:
    """Format minor units for display, e.g. "KES 2,100.00"."""
    return f"{currency.upper()} {amount_cents / 100:,.2f}"


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        notify: Record a notice and schedule its email copy
        notify_booking_status: Tell the other booking party about a change
        notify_payout_completed / notify_payout_failed: Tell the provider
        mark_as_read / mark_all_as_read: Inbox read status
    """

    @classmethod
    def notify(
        cls,
        recipient: User,
        notification_type: str,
        title: str,
        body: str = "",
        data: dict[str, Any] | None = None,
        actor: User | None = None,
        send_email: bool = True,
    ) -> Notification | None:
        """
        Record a notification for a user.

        Runs in its own savepoint so a failure here leaves the caller's
        transaction usable.

        Returns:
            The Notification, or None if it could not be recorded
        """
        from notifications.tasks import send_email_notification

        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    recipient=recipient,
                    actor=actor,
                    notification_type=notification_type,
                    title=title,
                    body=body,
                    data=data or {},
                )
        except Exception:
            cls.get_logger().exception(
                "Failed to record notification",
                extra={
                    "recipient_id": getattr(recipient, "pk", None),
                    "notification_type": notification_type,
                },
            )
            return None

        if send_email and recipient.email:
            notification_id = str(notification.id)
            transaction.on_commit(
                lambda: cls._enqueue_email(send_email_notification, notification_id)
            )
        return notification

    @classmethod
    def _enqueue_email(cls, task, notification_id: str) -> None:
        try:
            task.delay(notification_id)
        except Exception:
            cls.get_logger().exception(
                "Failed to enqueue notification email",
                extra={"notification_id": notification_id},
            )

    # =========================================================================
    # Booking notices
    # =========================================================================

    @classmethod
    def notify_booking_status(
        cls,
        booking: Booking,
        event: str,
        actor: User | None = None,
        note: str = "",
    ) -> list[Notification]:
        """
        Notify the booking's client and provider, except the actor.

        Args:
            booking: Booking that changed
            event: Key of BOOKING_EVENT_MESSAGES
            actor: User who caused the change (not notified)
            note: Extra line appended to the body
        """
        if event not in BOOKING_EVENT_MESSAGES:
            cls.get_logger().warning(
                "Unknown booking notification event",
                extra={"event": event, "booking_id": str(booking.pk)},
            )
            return []

        notification_type, title_template, body_template = BOOKING_EVENT_MESSAGES[event]
        context = {
            "number": booking.booking_number,
            "category": booking.category,
            "date": booking.scheduled_date.isoformat(),
            "time": booking.start_time.strftime("%H:%M"),
            "amount": format_amount(booking.total_amount_cents, booking.currency),
        }
        title = title_template.format(**context)
        body = body_template.format(**context)
        if note:
            body = f"{body} {note}"

        actor_id = getattr(actor, "pk", None)
        recipients = [
            user
            for user in (booking.client, booking.provider)
            if user is not None and user.pk != actor_id
        ]

        notifications = []
        for recipient in recipients:
            notification = cls.notify(
                recipient,
                notification_type,
                title,
                body,
                data={
                    "booking_id": str(booking.pk),
                    "booking_number": booking.booking_number,
                    "status": booking.status,
                    "event": event,
                },
                actor=actor,
            )
            if notification is not None:
                notifications.append(notification)
        return notifications

    # =========================================================================
    # Payout notices
    # =========================================================================

    @classmethod
    def _payout_data(cls, payout: Payout) -> dict[str, Any]:
        return {
            "payout_id": str(payout.id),
            "booking_id": str(payout.booking_id),
            "payout_amount_cents": payout.payout_amount_cents,
            "currency": payout.currency,
            "state": payout.state,
        }

    @classmethod
    def notify_payout_completed(cls, payout: Payout) -> Notification | None:
        amount = format_amount(payout.payout_amount_cents, payout.currency)
        booking_number = payout.metadata.get("booking_number", "")
        return cls.notify(
            payout.provider,
            NotificationType.PAYOUT_COMPLETED,
            f"Payout of {amount} sent",
            f"Your earnings for booking {booking_number} are on their way.",
            data=cls._payout_data(payout),
        )

    @classmethod
    def notify_payout_failed(cls, payout: Payout) -> Notification | None:
        amount = format_amount(payout.payout_amount_cents, payout.currency)
        reason = payout.failure_reason or "Unknown error"
        return cls.notify(
            payout.provider,
            NotificationType.PAYOUT_FAILED,
            f"Payout of {amount} failed",
            f"We could not send your payout: {reason}. "
            "Please check your payout details; our team will retry it.",
            data={**cls._payout_data(payout), "failure_reason": reason},
        )

    # =========================================================================
    # Inbox
    # =========================================================================

    @classmethod
    def mark_as_read(cls, notification: Notification, user: User) -> ServiceResult[Notification]:
        """
        Mark a notification as read. Idempotent.

        Error codes:
            NOT_OWNER: The notification belongs to another user
        """
        if notification.recipient_id != user.pk:
            return ServiceResult.failure(
                "Notification belongs to another user",
                error_code="NOT_OWNER",
            )
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=["is_read", "read_at", "updated_at"])
        return ServiceResult.success(notification)

    @classmethod
    def mark_all_as_read(cls, user: User) -> ServiceResult[int]:
        count = Notification.objects.filter(recipient=user, is_read=False).update(
            is_read=True, read_at=timezone.now()
        )
        cls.get_logger().info(
            "Marked notifications as read",
            extra={"user_id": user.pk, "count": count},
        )
        return ServiceResult.success(count)
