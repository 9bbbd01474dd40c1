"""
Tests for the Paystack transfer adapter.

The HTTP session is a MagicMock; no request leaves the test process.
"""

from unittest.mock import MagicMock

import pytest
import requests

from payments.adapters import (
    PaystackAdapter,
    RecipientType,
    TransferRecipient,
    backoff_delay,
    is_retryable_gateway_error,
)
from payments.exceptions import GatewayRejectedError, GatewayTimeoutError


def response(status_code=200, body=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body if body is not None else {}
    return resp


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def adapter(session):
    return PaystackAdapter(
        secret_key="sk_test_xxx",
        base_url="https://api.paystack.test/",
        timeout=5,
        max_retries=3,
        session=session,
    )


@pytest.fixture(autouse=True)
def no_sleep(mocker):
    return mocker.patch("payments.adapters.paystack_adapter.time.sleep")


class TestInitiateTransfer:
    def test_success(self, adapter, session):
        session.request.return_value = response(
            body={
                "status": True,
                "data": {
                    "id": 4521,
                    "transfer_code": "TRF_abc",
                    "reference": "payout_1",
                    "status": "success",
                    "amount": 210000,
                    "currency": "KES",
                },
            }
        )

        result = adapter.initiate_transfer(
            amount_cents=210000,
            currency="kes",
            recipient_code="RCP_1",
            reference="payout_1",
            reason="Payout for booking BK1",
        )

        assert result.success is True
        assert result.data.transfer_id == "4521"
        assert result.data.transfer_code == "TRF_abc"
        assert result.data.currency == "kes"
        method, url = session.request.call_args[0]
        assert (method, url) == ("POST", "https://api.paystack.test/transfer")
        payload = session.request.call_args[1]["json"]
        assert payload["amount"] == 210000
        assert payload["currency"] == "KES"
        assert payload["reference"] == "payout_1"
        assert session.request.call_args[1]["timeout"] == 5

    def test_transient_error_retried_with_same_reference(self, adapter, session, no_sleep):
        session.request.side_effect = [
            response(status_code=503),
            requests.Timeout(),
            response(body={"status": True, "data": {"transfer_code": "TRF_ok"}}),
        ]

        result = adapter.initiate_transfer(210000, "kes", "RCP_1", "payout_1")

        assert result.success is True
        assert session.request.call_count == 3
        references = {call[1]["json"]["reference"] for call in session.request.call_args_list}
        assert references == {"payout_1"}
        assert no_sleep.call_count == 2

    def test_gives_up_after_max_retries(self, adapter, session):
        session.request.return_value = response(status_code=502)

        result = adapter.initiate_transfer(210000, "kes", "RCP_1", "payout_1")

        assert result.success is False
        assert result.error_code == "GATEWAY_UNAVAILABLE"
        assert session.request.call_count == 3

    def test_rejection_not_retried(self, adapter, session):
        session.request.return_value = response(
            status_code=400,
            body={"status": False, "message": "Insufficient balance"},
        )

        result = adapter.initiate_transfer(210000, "kes", "RCP_1", "payout_1")

        assert result.success is False
        assert result.error == "Insufficient balance"
        assert result.error_code == "GATEWAY_REJECTED"
        assert session.request.call_count == 1

    def test_rate_limit_is_retryable(self, adapter, session):
        session.request.side_effect = [
            response(status_code=429),
            response(body={"status": True, "data": {}}),
        ]

        assert adapter.initiate_transfer(100, "kes", "RCP_1", "payout_2").success is True

    def test_unparseable_body(self, adapter, session):
        bad = response()
        bad.json.side_effect = ValueError("no json")
        session.request.return_value = bad

        result = adapter.initiate_transfer(100, "kes", "RCP_1", "payout_3")

        assert result.error_code == "GATEWAY_UNAVAILABLE"


class TestCreateRecipient:
    def test_mobile_money_recipient(self, adapter, session):
        session.request.return_value = response(
            body={"status": True, "data": {"recipient_code": "RCP_new"}}
        )

        result = adapter.create_recipient(
            TransferRecipient(
                recipient_type=RecipientType.MOBILE_MONEY,
                name="Jane Wanjiku",
                account_number="254712345678",
                bank_code="MPESA",
            )
        )

        assert result.data.recipient_code == "RCP_new"
        payload = session.request.call_args[1]["json"]
        assert payload["type"] == "mobile_money"
        assert payload["currency"] == "KES"
        assert session.request.call_args[0][1] == "https://api.paystack.test/transferrecipient"


class TestRetryHelpers:
    def test_backoff_grows_and_is_capped(self):
        assert 1.0 <= backoff_delay(0) <= 1.25
        assert 4.0 <= backoff_delay(2) <= 5.0
        assert backoff_delay(10, max_delay=60.0) <= 75.0

    def test_retryable_classification(self):
        assert is_retryable_gateway_error(GatewayTimeoutError("slow")) is True
        assert is_retryable_gateway_error(GatewayRejectedError("no")) is False
        assert is_retryable_gateway_error(ValueError("other")) is False
