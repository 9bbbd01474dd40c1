"""
Tests for the commission calculator and minor-unit helpers.
"""

from decimal import Decimal

import pytest

from core.exceptions import ValidationError
from payments.commission import CommissionCalculator, from_minor_units, to_minor_units


class TestCommissionCalculator:
    def test_thirty_percent_of_three_thousand(self):
        breakdown = CommissionCalculator(Decimal("0.30")).calculate(300000)

        assert breakdown.gross_amount_cents == 300000
        assert breakdown.commission_amount_cents == 90000
        assert breakdown.payout_amount_cents == 210000
        assert breakdown.commission_rate == Decimal("0.30")

    def test_commission_rounds_half_up(self):
        breakdown = CommissionCalculator("0.30").calculate(5)

        # 1.5 cents of commission rounds to 2
        assert breakdown.commission_amount_cents == 2
        assert breakdown.payout_amount_cents == 3

    @pytest.mark.parametrize("gross", [0, 1, 7, 333, 99999, 123457])
    def test_parts_add_back_to_gross(self, gross):
        breakdown = CommissionCalculator("0.15").calculate(gross)

        assert breakdown.commission_amount_cents + breakdown.payout_amount_cents == gross

    def test_zero_rate_pays_everything(self):
        breakdown = CommissionCalculator(0).calculate(250000)

        assert breakdown.commission_amount_cents == 0
        assert breakdown.payout_amount_cents == 250000

    def test_default_rate_comes_from_settings(self, settings):
        settings.PAYOUT_COMMISSION_RATE = 0.25

        breakdown = CommissionCalculator().calculate(100000)

        assert breakdown.commission_amount_cents == 25000

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            CommissionCalculator("0.30").calculate(-1)

    @pytest.mark.parametrize("amount", [3000.0, "3000", True])
    def test_non_integer_amount_rejected(self, amount):
        with pytest.raises(ValidationError):
            CommissionCalculator("0.30").calculate(amount)

    @pytest.mark.parametrize("rate", ["1", "1.5", "-0.1", "abc"])
    def test_rate_outside_range_rejected(self, rate):
        with pytest.raises(ValidationError) as exc_info:
            CommissionCalculator(rate)

        assert exc_info.value.error_code == "INVALID_COMMISSION_RATE"


class TestMinorUnits:
    def test_to_minor_units(self):
        assert to_minor_units("3000.00") == 300000
        assert to_minor_units(Decimal("12.5")) == 1250
        assert to_minor_units(40) == 4000

    def test_sub_cent_precision_rejected(self):
        with pytest.raises(ValidationError):
            to_minor_units("10.005")

    def test_garbage_rejected(self):
        with pytest.raises(ValidationError):
            to_minor_units("ten shillings")

    def test_from_minor_units(self):
        assert from_minor_units(210000) == Decimal("2100.00")
        assert from_minor_units(5) == Decimal("0.05")
