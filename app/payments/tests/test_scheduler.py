"""
Tests for the payout scheduler and its Celery tasks.

Tasks are called directly (synchronously).
"""

from datetime import timedelta

import pytest
from django.core.cache import cache
from django.utils import timezone
from freezegun import freeze_time

from payments.locks import DistributedLock
from payments.models import Payout
from payments.state_machines import PayoutState
from payments.tests.factories import PayoutFactory
from payments.workers import PayoutScheduler, execute_single_payout, process_ready_payouts
from payments.workers.payout_scheduler import LAST_RUN_CACHE_KEY


@pytest.fixture(autouse=True)
def clear_last_run():
    cache.delete(LAST_RUN_CACHE_KEY)
    yield
    cache.delete(LAST_RUN_CACHE_KEY)


@pytest.mark.django_db
class TestPayoutScheduler:
    def test_sweep_sends_payout_once_delay_has_passed(self, client_user, provider):
        with freeze_time("2026-03-02 09:00:00"):
            payout = PayoutFactory(
                booking__client=client_user,
                booking__provider=provider,
                scheduled_at=timezone.now() + timedelta(minutes=60),
            )

        with freeze_time("2026-03-02 09:30:00"):
            early = PayoutScheduler().run_sweep()

        assert early.summary.processed == 0
        assert Payout.objects.get(pk=payout.pk).state == PayoutState.PENDING

        with freeze_time("2026-03-02 10:00:01"):
            run = PayoutScheduler().run_sweep()

        assert run.skipped is False
        assert run.summary.completed == 1
        assert Payout.objects.get(pk=payout.pk).state == PayoutState.COMPLETED

    def test_sweep_skipped_while_another_runs(self, pending_payout, mock_redis, fake_gateway):
        mock_redis.set.return_value = False

        run = PayoutScheduler().run_sweep()

        assert run.skipped is True
        assert run.to_dict() == {"skipped": True, "trigger": "beat"}
        assert fake_gateway.transfers == []

    def test_sweep_releases_lock(self, mock_redis):
        PayoutScheduler().run_sweep()

        assert mock_redis.set.call_args[0][0] == "lock:payouts:sweep"
        mock_redis.eval.assert_called_once()

    def test_sweep_lock_renewed_before_each_payout(self, client_user, provider, mock_redis):
        PayoutFactory.create_batch(2, booking__client=client_user, booking__provider=provider)

        run = PayoutScheduler().run_sweep()

        assert run.summary.completed == 2
        renewals = [
            call
            for call in mock_redis.eval.call_args_list
            if call.args[0] == DistributedLock.EXTEND_SCRIPT
        ]
        assert len(renewals) == 2
        assert all(call.args[2] == "lock:payouts:sweep" for call in renewals)

    def test_sweep_stops_when_guard_is_lost(self, pending_payout, mock_redis, fake_gateway):
        mock_redis.eval.return_value = 0

        run = PayoutScheduler().run_sweep()

        assert run.summary.processed == 0
        assert fake_gateway.transfers == []
        assert Payout.objects.get(pk=pending_payout.pk).state == PayoutState.PENDING

    def test_process_now_is_manual_trigger(self, pending_payout):
        data = PayoutScheduler().process_now().to_dict()

        assert data["trigger"] == "manual"
        assert data["completed"] == 1
        assert data["results"][0]["payout_id"] == str(pending_payout.id)

    def test_stats_report_last_run(self, pending_payout, settings):
        settings.PAYOUT_SWEEP_INTERVAL_MINUTES = 5
        PayoutScheduler().run_sweep()

        stats = PayoutScheduler.get_stats()

        assert stats["interval_minutes"] == 5
        assert stats["last_run"]["completed"] == 1
        assert stats["last_run"]["trigger"] == "beat"

    def test_stats_before_first_run(self):
        assert PayoutScheduler.get_stats()["last_run"] is None


@pytest.mark.django_db
class TestTasks:
    def test_process_ready_payouts_task(self, pending_payout):
        result = process_ready_payouts()

        assert result["skipped"] is False
        assert result["completed"] == 1
        assert "results" not in result

    def test_execute_single_payout_task(self, pending_payout):
        result = execute_single_payout(str(pending_payout.id))

        assert result["status"] == "completed"
        assert result["payout_id"] == str(pending_payout.id)
        assert Payout.objects.get(pk=pending_payout.pk).state == PayoutState.COMPLETED
