"""
Payments app: escrow ledger and provider payouts.

This app handles:
- Holding client funds against a booking until release or refund
- Dispute intake, evidence and admin resolution on escrows
- Commission calculation and payout creation for completed bookings
- The scheduled payout sweep and operator retry/cancel actions

Related apps:
    - bookings: Booking lifecycle that drives escrow and payout changes
    - providers: Payout destinations and earnings counters
    - notifications: Payout success/failure notices

Usage:
    from payments.services import EscrowLedger, PayoutService

    EscrowLedger.release(escrow.id, released_by=admin)
    payout = PayoutService.create_payout(booking.id)
"""
