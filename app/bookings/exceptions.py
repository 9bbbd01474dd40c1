"""
Booking-specific exceptions.

Exception Hierarchy:
    BookingNotFoundError - Booking lookup failures (NotFoundError)
    PaymentRequiredError - Completion attempted without held funds (InvalidStateError)
    ImmutableTimelineError - Attempt to change a recorded timeline entry (ConflictError)
"""

from core.exceptions import ConflictError, InvalidStateError, NotFoundError


class BookingNotFoundError(NotFoundError):
    default_error_code: str = "BOOKING_NOT_FOUND"


class PaymentRequiredError(InvalidStateError):
    """
    Raised when a pay-now booking is completed before the client has paid.

    The client must pay (funds held in escrow) before the job can be marked
    complete and the provider paid.
    """

    default_error_code: str = "PAYMENT_REQUIRED"


class ImmutableTimelineError(ConflictError):
    default_error_code: str = "TIMELINE_IMMUTABLE"


__all__ = [
    "BookingNotFoundError",
    "ImmutableTimelineError",
    "PaymentRequiredError",
]
