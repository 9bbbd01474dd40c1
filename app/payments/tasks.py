"""
Celery tasks for payment processing.

Re-exports the worker tasks so Celery's autodiscovery (which imports
<app>.tasks) registers them.

Usage:
    from payments.tasks import process_ready_payouts

    process_ready_payouts.delay()
"""

from payments.workers.payout_scheduler import (
    execute_single_payout,
    process_ready_payouts,
)

__all__ = [
    "execute_single_payout",
    "process_ready_payouts",
]
