"""
Bookings app: the engagement between a client and a provider.

This app handles:
- Booking creation, with direct or matcher-picked provider assignment
- The booking status machine (confirm, start, complete, cancel, dispute)
- An append-only status timeline per booking
- Hand-off to the escrow ledger and payout engine on completion,
  cancellation, payment and dispute resolution

Usage:
    from bookings.services import BookingService

    booking = BookingService.create_booking(client, data)
    BookingService.confirm(booking.id, actor=provider)
"""
