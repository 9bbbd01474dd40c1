"""
Pytest fixtures for notification tests.
"""

import pytest
from django.utils import timezone

from authentication.tests.factories import ProviderUserFactory, UserFactory
from notifications.tests.factories import NotificationFactory


@pytest.fixture
def user(db):
    """User receiving notifications."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def provider_user(db):
    return ProviderUserFactory()


@pytest.fixture
def unread_notification(user):
    return NotificationFactory(recipient=user)


@pytest.fixture
def read_notification(user):
    return NotificationFactory(recipient=user, is_read=True, read_at=timezone.now())
