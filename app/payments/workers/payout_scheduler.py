"""
Payout scheduler: the periodic sweep that sends ready payouts.

The beat process owns the timer: django-celery-beat runs the
process_ready_payouts task every PAYOUT_SWEEP_INTERVAL_MINUTES (the
PeriodicTask row is created by a data migration). Each run constructs a
PayoutScheduler and performs one sweep under a single-flight Redis lock,
so overlapping ticks (or an operator trigger during a tick) are skipped
instead of running twice. The lock TTL is renewed before each payout, so a
long sweep keeps its guard for as long as it runs.

Tasks:
- process_ready_payouts: Periodic sweep of PENDING payouts that are due
- execute_single_payout: One transfer attempt for one payout

Usage:
    from payments.workers import PayoutScheduler

    scheduler = PayoutScheduler()
    run = scheduler.process_now()
    if run.skipped:
        ...  # another sweep is in progress

    PayoutScheduler.get_stats()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from celery import shared_task
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from payments.exceptions import LockAcquisitionError
from payments.locks import SWEEP_LOCK_KEY, DistributedLock
from payments.policies import PayoutPolicy
from payments.services import PayoutService

if TYPE_CHECKING:
    from typing import Any

    from payments.services import SweepSummary

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

LAST_RUN_CACHE_KEY = "payouts:sweep:last_run"

# Keep last-run metadata for a day; the sweep refreshes it every few minutes
LAST_RUN_CACHE_TTL = 60 * 60 * 24


@dataclass
class SchedulerRun:
    """
    Outcome of one scheduler tick.

    Attributes:
        skipped: Another sweep held the single-flight lock
        trigger: "beat" or "manual"
        summary: Sweep counters when the sweep ran
    """

    skipped: bool
    trigger: str
    summary: SweepSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"skipped": self.skipped, "trigger": self.trigger}
        if self.summary is not None:
            data.update(self.summary.to_dict())
        return data


# =============================================================================
# Scheduler
# =============================================================================


class PayoutScheduler:
    """
    One sweep over ready payouts, guarded against overlap.

    Args:
        policy: Payout configuration; defaults to PayoutPolicy.from_settings()
    """

    def __init__(self, policy: PayoutPolicy | None = None) -> None:
        self.policy = policy or PayoutPolicy.from_settings()

    def run_sweep(self, trigger: str = "beat") -> SchedulerRun:
        """
        Run one sweep unless another one is in progress.

        Returns:
            SchedulerRun; skipped=True when the single-flight lock is held
        """
        lock = DistributedLock(
            SWEEP_LOCK_KEY,
            ttl=self.policy.sweep_lock_ttl_seconds,
            blocking=False,
        )
        try:
            lock.acquire()
        except LockAcquisitionError:
            logger.info(
                "Payout sweep already running, skipping tick",
                extra={"trigger": trigger},
            )
            return SchedulerRun(skipped=True, trigger=trigger)

        try:
            summary = PayoutService.process_ready_payouts(
                policy=self.policy, keep_alive=lock.extend
            )
        finally:
            lock.release()

        run = SchedulerRun(skipped=False, trigger=trigger, summary=summary)
        self._store_last_run(run)
        return run

    def process_now(self) -> SchedulerRun:
        """Operator trigger: sweep immediately, same guard as the timer."""
        logger.info("Manual payout sweep requested")
        return self.run_sweep(trigger="manual")

    def _store_last_run(self, run: SchedulerRun) -> None:
        summary = run.summary
        cache.set(
            LAST_RUN_CACHE_KEY,
            {
                "trigger": run.trigger,
                "started_at": summary.started_at.isoformat() if summary.started_at else None,
                "finished_at": summary.finished_at.isoformat() if summary.finished_at else None,
                "processed": summary.processed,
                "completed": summary.completed,
                "failed": summary.failed,
                "skipped": summary.skipped,
            },
            LAST_RUN_CACHE_TTL,
        )

    @classmethod
    def get_stats(cls) -> dict[str, Any]:
        """Last sweep metadata plus the configured cadence."""
        return {
            "interval_minutes": settings.PAYOUT_SWEEP_INTERVAL_MINUTES,
            "payout_delay_minutes": settings.PAYOUT_DELAY_MINUTES,
            "last_run": cache.get(LAST_RUN_CACHE_KEY),
            "checked_at": timezone.now().isoformat(),
        }


# =============================================================================
# Periodic Task: Sweep Ready Payouts
# =============================================================================


@shared_task(bind=True)
def process_ready_payouts(self) -> dict:
    """
    Sweep PENDING payouts whose scheduled time has passed.

    Runs every PAYOUT_SWEEP_INTERVAL_MINUTES via celery-beat.

    Returns:
        Dict with skipped flag and processed/completed/failed/skipped counters

    Note:
        Idempotent. A tick that overlaps a running sweep is skipped, and
        every payout is re-checked under its own lock before sending.
    """
    logger.info(
        "Payout sweep task started",
        extra={"task_id": self.request.id},
    )
    run = PayoutScheduler().run_sweep(trigger="beat")
    result = run.to_dict()
    result.pop("results", None)
    return result


# =============================================================================
# Individual Execution Task
# =============================================================================


@shared_task(bind=True, acks_late=True)
def execute_single_payout(self, payout_id: str) -> dict:
    """
    Run one transfer attempt for a payout.

    Used by the bulk operator action when work is queued instead of run
    inline. Failures are recorded on the payout; the task never retries.

    Args:
        payout_id: UUID of the Payout to execute

    Returns:
        Dict with status ("completed", "failed", "skipped") and details
    """
    logger.info(
        "Processing payout execution",
        extra={"payout_id": str(payout_id), "task_id": self.request.id},
    )
    result = PayoutService.process_single(payout_id)
    return {
        "status": result.status,
        "payout_id": result.payout_id,
        "transfer_reference": result.transfer_reference,
        "error": result.error,
        "error_code": result.error_code,
    }
