"""
Celery tasks for notification delivery.

Tasks:
    send_email_notification: Deliver the email copy of a notification

Design:
    - Tasks receive the notification id (UUID string), never the instance
    - Idempotent: a notification with email_sent_at set is not sent again
    - Transient failures are retried with backoff

Usage:
    from notifications.tasks import send_email_notification

    # Enqueued by NotificationService.notify() after commit
    send_email_notification.delay(notification_id="uuid-string")
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone as django_timezone

from notifications.models import Notification

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_email_notification(self, notification_id: str) -> bool:
    """
    Send notification via email.

    Args:
        notification_id: UUID string of the Notification

    Returns:
        True if sent, False if skipped
    """
    notification = (
        Notification.objects.select_related("recipient")
        .filter(id=notification_id)
        .first()
    )
    if notification is None:
        logger.warning(f"Email notification skipped: {notification_id} not found")
        return False

    if notification.email_sent_at is not None:
        return False

    recipient = notification.recipient
    if not recipient.email:
        logger.info(
            f"Email notification skipped for {notification_id}: recipient has no email"
        )
        return False

    logger.info(f"Sending email notification {notification_id} to {recipient.email}")

    send_mail(
        subject=notification.title,
        message=notification.body or notification.title,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient.email],
    )

    notification.email_sent_at = django_timezone.now()
    notification.save(update_fields=["email_sent_at", "updated_at"])
    return True
