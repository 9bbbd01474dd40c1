"""
State machine enums for booking models.
"""

from bookings.state_machines.states import (
    ACTIVE_STATUSES,
    BookingStatus,
    DisputeOutcome,
    PaymentMethod,
    PaymentStatus,
    PaymentTiming,
    Urgency,
)

__all__ = [
    "ACTIVE_STATUSES",
    "BookingStatus",
    "DisputeOutcome",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentTiming",
    "Urgency",
]
