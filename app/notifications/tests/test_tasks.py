"""
Tests for notification Celery tasks.

Tasks are called directly (synchronously); mail goes to the locmem backend.
"""

import pytest
from django.core import mail
from django.utils import timezone

from notifications.tasks import send_email_notification
from notifications.tests.factories import NotificationFactory


@pytest.mark.django_db
class TestSendEmailNotification:
    def test_sends_email_and_marks_sent(self, user):
        notification = NotificationFactory(recipient=user, title="Booking confirmed", body="See you")

        assert send_email_notification(str(notification.id)) is True

        assert len(mail.outbox) == 1
        assert mail.outbox[0].subject == "Booking confirmed"
        assert mail.outbox[0].to == [user.email]
        notification.refresh_from_db()
        assert notification.email_sent_at is not None

    def test_already_sent_is_skipped(self, user):
        notification = NotificationFactory(recipient=user, email_sent_at=timezone.now())

        assert send_email_notification(str(notification.id)) is False
        assert mail.outbox == []

    def test_missing_notification(self, db):
        assert send_email_notification("00000000-0000-0000-0000-000000000000") is False

    def test_empty_body_falls_back_to_title(self, user):
        notification = NotificationFactory(recipient=user, title="Payout sent", body="")

        send_email_notification(str(notification.id))

        assert mail.outbox[0].body == "Payout sent"
