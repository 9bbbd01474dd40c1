"""
Commission calculation for completed bookings.

Splits a booking's gross amount into the platform commission and the
provider payout. All arithmetic is done on integer minor units with
Decimal; the commission is rounded half-up so the provider's share is the
rounded-down remainder and the two always add back to the gross.

Usage:
    from payments.commission import CommissionCalculator

    breakdown = CommissionCalculator().calculate(300000)  # 3000.00 KES
    breakdown.commission_amount_cents  # 90000
    breakdown.payout_amount_cents      # 210000
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings

from core.exceptions import ValidationError

MINOR_UNITS_PER_MAJOR = 100


@dataclass(frozen=True)
class CommissionBreakdown:
    """
    Result of a commission calculation.

    Attributes:
        gross_amount_cents: Amount the split was computed from
        commission_rate: Rate applied
        commission_amount_cents: Platform share
        payout_amount_cents: Provider share
    """

    gross_amount_cents: int
    commission_rate: Decimal
    commission_amount_cents: int
    payout_amount_cents: int


def to_minor_units(amount) -> int:
    """
    Convert a major-unit amount (e.g. "3000.00" KES) to minor units.

    Raises:
        ValidationError: Not a number, or finer than one minor unit
    """
    try:
        value = Decimal(str(amount)) * MINOR_UNITS_PER_MAJOR
    except InvalidOperation:
        raise ValidationError(
            f"Invalid amount: {amount!r}",
            details={"amount": str(amount)},
        )
    if value != value.to_integral_value():
        raise ValidationError(
            "Amount has more precision than the currency allows",
            details={"amount": str(amount)},
        )
    return int(value)


def from_minor_units(amount_cents: int) -> Decimal:
    return (Decimal(amount_cents) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))


class CommissionCalculator:
    """
    Pure commission calculator bound to one rate.

    Args:
        rate: Commission fraction in [0, 1); defaults to
            settings.PAYOUT_COMMISSION_RATE
    """

    def __init__(self, rate=None) -> None:
        if rate is None:
            rate = settings.PAYOUT_COMMISSION_RATE
        try:
            self.rate = Decimal(str(rate))
        except InvalidOperation:
            raise ValidationError(
                f"Invalid commission rate: {rate!r}",
                error_code="INVALID_COMMISSION_RATE",
            )
        if not (Decimal("0") <= self.rate < Decimal("1")):
            raise ValidationError(
                "Commission rate must be in [0, 1)",
                error_code="INVALID_COMMISSION_RATE",
                details={"rate": str(self.rate)},
            )

    def calculate(self, gross_amount_cents: int) -> CommissionBreakdown:
        """
        Split a gross amount into commission and payout.

        Args:
            gross_amount_cents: Gross amount in minor units (non-negative int)

        Raises:
            ValidationError: Negative or non-integer amount
        """
        if isinstance(gross_amount_cents, bool) or not isinstance(gross_amount_cents, int):
            raise ValidationError(
                "Amount must be an integer number of minor units",
                details={"gross_amount_cents": repr(gross_amount_cents)},
            )
        if gross_amount_cents < 0:
            raise ValidationError(
                "Amount cannot be negative",
                details={"gross_amount_cents": gross_amount_cents},
            )

        commission = int(
            (Decimal(gross_amount_cents) * self.rate).quantize(
                Decimal("1"), rounding=ROUND_HALF_UP
            )
        )
        return CommissionBreakdown(
            gross_amount_cents=gross_amount_cents,
            commission_rate=self.rate,
            commission_amount_cents=commission,
            payout_amount_cents=gross_amount_cents - commission,
        )
