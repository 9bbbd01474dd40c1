"""
Pytest fixtures for booking tests.

Usage:
    def test_confirm(pending_booking, provider):
        BookingService.confirm(pending_booking.id, actor=provider)
"""

import pytest

from authentication.tests.factories import AdminUserFactory, UserFactory
from bookings.tests.factories import (
    BookingFactory,
    ConfirmedBookingFactory,
    InProgressBookingFactory,
)
from bookings.services import BookingService
from providers.tests.factories import ProviderProfileFactory


@pytest.fixture
def client_user(db):
    return UserFactory()


@pytest.fixture
def provider_profile(db):
    return ProviderProfileFactory()


@pytest.fixture
def provider(provider_profile):
    return provider_profile.user


@pytest.fixture
def admin_user(db):
    return AdminUserFactory()


@pytest.fixture
def stranger(db):
    return UserFactory()


@pytest.fixture
def pending_booking(client_user, provider):
    return BookingFactory(client=client_user, provider=provider)


@pytest.fixture
def confirmed_booking(client_user, provider):
    return ConfirmedBookingFactory(client=client_user, provider=provider)


@pytest.fixture
def in_progress_booking(client_user, provider):
    return InProgressBookingFactory(client=client_user, provider=provider)


@pytest.fixture
def paid_in_progress_booking(in_progress_booking, client_user):
    """In-progress booking whose payment is held in escrow."""
    return BookingService.record_payment(
        in_progress_booking.id, reference="PAY-HELD-1", actor=client_user
    )
