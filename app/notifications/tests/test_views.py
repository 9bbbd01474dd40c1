"""
API tests for /api/v1/notifications/.
"""

import pytest
from django.urls import reverse
from rest_framework import status

from notifications.models import Notification, NotificationType
from notifications.tests.factories import NotificationFactory


@pytest.mark.django_db
class TestNotificationList:
    def test_lists_own_notifications(
        self, authenticated_client_factory, user, other_user, unread_notification
    ):
        NotificationFactory(recipient=other_user)

        response = authenticated_client_factory(user).get(reverse("notifications:notification-list"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 1
        assert response.data["results"][0]["id"] == str(unread_notification.id)

    def test_filter_by_read_status(
        self, authenticated_client_factory, user, unread_notification, read_notification
    ):
        response = authenticated_client_factory(user).get(
            reverse("notifications:notification-list"), {"is_read": "false"}
        )

        assert [item["id"] for item in response.data["results"]] == [str(unread_notification.id)]

    def test_filter_by_type(self, authenticated_client_factory, user, unread_notification):
        NotificationFactory(recipient=user, notification_type=NotificationType.PAYOUT_FAILED)

        response = authenticated_client_factory(user).get(
            reverse("notifications:notification-list"), {"type": "payout_failed"}
        )

        assert response.data["count"] == 1
        assert response.data["results"][0]["notification_type"] == "payout_failed"

    def test_requires_authentication(self, api_client):
        response = api_client.get(reverse("notifications:notification-list"))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestNotificationActions:
    def test_unread_count(self, authenticated_client_factory, user, unread_notification, read_notification):
        response = authenticated_client_factory(user).get(
            reverse("notifications:notification-unread-count")
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"unread_count": 1}

    def test_mark_read(self, authenticated_client_factory, user, unread_notification):
        response = authenticated_client_factory(user).post(
            reverse("notifications:notification-read", kwargs={"pk": unread_notification.pk})
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["is_read"] is True

    def test_cannot_read_other_users_notification(
        self, authenticated_client_factory, other_user, unread_notification
    ):
        response = authenticated_client_factory(other_user).post(
            reverse("notifications:notification-read", kwargs={"pk": unread_notification.pk})
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert Notification.objects.get(pk=unread_notification.pk).is_read is False

    def test_read_all(self, authenticated_client_factory, user):
        NotificationFactory.create_batch(2, recipient=user)

        response = authenticated_client_factory(user).post(
            reverse("notifications:notification-read-all")
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"marked_count": 2}
