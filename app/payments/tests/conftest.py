"""
Pytest fixtures for payment tests.

Redis and the transfer gateway are replaced for every test in this package:
- mock_redis: get_redis_connection returns a MagicMock whose set() grants
  every lock
- fake_gateway: in-memory TransferGateway installed on PayoutService

Usage:
    def test_sweep(pending_payout, fake_gateway):
        PayoutService.process_ready_payouts()
        assert len(fake_gateway.transfers) == 1
"""

from unittest.mock import MagicMock, patch

import pytest

from authentication.tests.factories import AdminUserFactory, UserFactory
from bookings.services import BookingService
from bookings.tests.factories import InProgressBookingFactory
from core.services import ServiceResult
from payments.adapters import RecipientResult, TransferResult
from payments.services import PayoutService
from payments.tests.factories import PayoutFactory
from providers.tests.factories import ProviderProfileFactory


class FakeGateway:
    """
    In-memory transfer gateway.

    Set fail_with to a GatewayError to make every transfer fail with it.
    """

    def __init__(self):
        self.recipients = []
        self.transfers = []
        self.fail_with = None

    def create_recipient(self, recipient):
        self.recipients.append(recipient)
        return ServiceResult.success(
            RecipientResult(recipient_code=f"RCP_{len(self.recipients):04d}")
        )

    def initiate_transfer(self, amount_cents, currency, recipient_code, reference, reason=""):
        self.transfers.append(
            {
                "amount_cents": amount_cents,
                "currency": currency,
                "recipient_code": recipient_code,
                "reference": reference,
                "reason": reason,
            }
        )
        if self.fail_with is not None:
            return ServiceResult.from_exception(self.fail_with)
        return ServiceResult.success(
            TransferResult(
                transfer_id=str(len(self.transfers)),
                transfer_code=f"TRF_{len(self.transfers):04d}",
                reference=reference,
                status="success",
                amount_cents=amount_cents,
                currency=currency,
            )
        )


# =============================================================================
# Infrastructure
# =============================================================================


@pytest.fixture(autouse=True)
def mock_redis():
    """Redis client double; every lock is granted unless a test says otherwise."""
    redis = MagicMock()
    redis.set.return_value = True
    redis.eval.return_value = 1
    with patch("payments.locks.get_redis_connection", return_value=redis):
        yield redis


@pytest.fixture(autouse=True)
def fake_gateway():
    gateway = FakeGateway()
    PayoutService.set_gateway(gateway)
    yield gateway
    PayoutService.set_gateway(None)


# =============================================================================
# Users
# =============================================================================


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


# =============================================================================
# Escrows & Payouts
# =============================================================================


@pytest.fixture
def held_escrow(client_user, provider):
    """Escrow opened by recording payment on an in-progress booking."""
    booking = InProgressBookingFactory(client=client_user, provider=provider)
    BookingService.record_payment(booking.id, reference="PAY-HELD-1", actor=client_user)
    return booking.escrow_payments.get()


@pytest.fixture
def pending_payout(client_user, provider):
    return PayoutFactory(booking__client=client_user, booking__provider=provider)
