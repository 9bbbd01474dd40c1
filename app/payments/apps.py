"""
Payments app configuration.

This app owns the money side of a booking:
- EscrowPayment ledger (held, disputed, released, refunded funds)
- Payout scheduling and execution through the transfer gateway
- Celery workers for the periodic payout sweep
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
