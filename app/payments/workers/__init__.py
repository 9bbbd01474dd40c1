"""
Workers for async payment processing.

This module contains the payout scheduler and its Celery tasks:
- process_ready_payouts: Periodic sweep of due payouts (celery-beat)
- execute_single_payout: One transfer attempt for one payout

Usage:
    from payments.workers import process_ready_payouts, execute_single_payout

    process_ready_payouts.delay()
    execute_single_payout.delay(str(payout_id))
"""

from payments.workers.payout_scheduler import (
    PayoutScheduler,
    SchedulerRun,
    execute_single_payout,
    process_ready_payouts,
)

__all__ = [
    "PayoutScheduler",
    "SchedulerRun",
    "execute_single_payout",
    "process_ready_payouts",
]
