"""
Payout service for executing money transfers to providers.

This module provides the PayoutService class which owns the Payout state
machine: creating one payout per completed booking, holding it until the
client has paid and the payout delay has passed, and sending it through
the transfer gateway.

Sending a payout follows a three-phase pattern:
1. Phase 1: Claim the payout (PENDING -> PROCESSING), store the transfer
   reference, commit
2. Phase 2: Call the gateway outside any transaction
3. Phase 3: Record COMPLETED or FAILED in a new transaction

Because PROCESSING is committed before the gateway call, a second worker
that reaches the same payout sees a non-pending state and backs off. A
failed payout is never retried automatically; an operator re-queues it.

Usage:
    from payments.services import PayoutService

    payout = PayoutService.create_payout(booking.id)

    summary = PayoutService.process_ready_payouts()
    summary.completed, summary.failed

    PayoutService.requeue(payout.id, actor=admin)
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Count, Sum
from django.utils import timezone

from core.exceptions import (
    BaseApplicationError,
    ConfigurationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from core.services import BaseService, ServiceResult

from bookings.models import Booking
from bookings.state_machines import BookingStatus
from notifications.services import NotificationService
from providers.models import PayoutDestinationType, ProviderProfile
from providers.services import ProviderDirectory

from payments.adapters import (
    PaystackAdapter,
    RecipientType,
    TransferRecipient,
    TransferResult,
)
from payments.commission import CommissionCalculator
from payments.exceptions import LockAcquisitionError, PayoutNotFoundError
from payments.locks import DistributedLock, payout_lock_key
from payments.models import EscrowPayment, Payout, PayoutMethod
from payments.policies import PayoutPolicy
from payments.state_machines import EscrowState, PayoutState

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime
    from typing import Any

    from django.db.models import QuerySet

    from payments.adapters import TransferGateway


# =============================================================================
# Constants
# =============================================================================

# Booking statuses a payout can be created for; a disputed booking is only
# paid out once the dispute is resolved in the provider's favour
PAYABLE_BOOKING_STATUSES = [BookingStatus.COMPLETED, BookingStatus.DISPUTED]


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class PayoutProcessResult:
    """
    Outcome of one processing attempt.

    Attributes:
        payout_id: Payout processed
        status: "completed", "failed" or "skipped"
        transfer_reference: Reference sent to the gateway
        error: Failure reason or skip reason
        error_code: Machine-readable code for failures
    """

    payout_id: str
    status: str
    transfer_reference: str | None = None
    error: str | None = None
    error_code: str | None = None


@dataclass
class SweepSummary:
    """Counters for one run of process_ready_payouts."""

    processed: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None
    results: list[PayoutProcessResult] = field(default_factory=list)

    def record(self, result: PayoutProcessResult) -> None:
        self.results.append(result)
        if result.status == "skipped":
            self.skipped += 1
            return
        self.processed += 1
        if result.status == "completed":
            self.completed += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "completed": self.completed,
            "failed": self.failed,
            "skipped": self.skipped,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "results": [asdict(result) for result in self.results],
        }


@dataclass
class BulkItemResult:
    payout_id: str
    success: bool
    error: str | None = None
    error_code: str | None = None


def generate_transfer_reference(payout: Payout) -> str:
    """
    Unique per attempt: payout id plus the attempt timestamp in milliseconds.

    Example: "payout_9f1c2b..._1718000000000"
    """
    attempted_at = payout.last_attempt_at or timezone.now()
    return f"payout_{payout.id.hex}_{int(attempted_at.timestamp() * 1000)}"


# =============================================================================
# Payout Service
# =============================================================================


class PayoutService(BaseService):
    """
    Service for creating and executing provider payouts.

    Safety Guarantees:
        - One payout per booking (unique booking field, get-then-insert with
          IntegrityError re-fetch)
        - Per-payout distributed lock plus a PENDING and open-dispute
          re-check under the booking and payout row locks
        - Gateway called outside any transaction
        - Unique transfer reference per attempt, reused across the adapter's
          internal retries

    The gateway can be injected for testing:
        PayoutService.set_gateway(FakeGateway())
        ...
        PayoutService.set_gateway(None)
    """

    _gateway: TransferGateway | None = None

    @classmethod
    def get_gateway(cls) -> TransferGateway:
        if cls._gateway is None:
            cls._gateway = PaystackAdapter()
        return cls._gateway

    @classmethod
    def set_gateway(cls, gateway: TransferGateway | None) -> None:
        """Replace the gateway (tests); None restores the Paystack adapter."""
        cls._gateway = gateway

    # =========================================================================
    # Lookups
    # =========================================================================

    @classmethod
    def get(cls, payout_id) -> Payout:
        try:
            return Payout.objects.select_related("booking").get(pk=payout_id)
        except Payout.DoesNotExist:
            raise PayoutNotFoundError(
                f"Payout {payout_id} not found",
                details={"payout_id": str(payout_id)},
            )

    @classmethod
    def _get_locked_booking(cls, payout_id) -> Booking:
        booking_id = (
            Payout.objects.filter(pk=payout_id).values_list("booking_id", flat=True).first()
        )
        if booking_id is None:
            raise PayoutNotFoundError(
                f"Payout {payout_id} not found",
                details={"payout_id": str(payout_id)},
            )
        return Booking.objects.select_for_update().get(pk=booking_id)

    @classmethod
    def _get_locked(cls, payout_id) -> Payout:
        try:
            return Payout.objects.select_for_update().get(pk=payout_id)
        except Payout.DoesNotExist:
            raise PayoutNotFoundError(
                f"Payout {payout_id} not found",
                details={"payout_id": str(payout_id)},
            )

    # =========================================================================
    # Creation
    # =========================================================================

    @classmethod
    def create_payout(cls, booking_id, policy: PayoutPolicy | None = None) -> Payout:
        """
        Create the payout for a completed booking, or return the existing one.

        A cancelled booking is payable once its escrow released a retained
        share; the payout is computed on that share instead of the total.

        The payout is scheduled policy.payout_delay after now. It starts in
        PENDING when the client has paid and in AWAITING_PAYMENT otherwise.

        Raises:
            NotFoundError: Booking doesn't exist
            InvalidStateError: Booking not completed
            ValidationError: Booking has no provider
        """
        policy = policy or PayoutPolicy.from_settings()

        existing = Payout.objects.filter(booking_id=booking_id).first()
        if existing is not None:
            cls.get_logger().info(
                "Payout already exists for booking",
                extra={"booking_id": str(booking_id), "payout_id": str(existing.id)},
            )
            return existing

        try:
            booking = Booking.objects.get(pk=booking_id)
        except Booking.DoesNotExist:
            raise NotFoundError(
                f"Booking {booking_id} not found",
                error_code="BOOKING_NOT_FOUND",
                details={"booking_id": str(booking_id)},
            )

        escrow = EscrowPayment.objects.for_booking(booking.pk).first()
        funds_released = escrow is not None and escrow.state == EscrowState.RELEASED
        if booking.status not in PAYABLE_BOOKING_STATUSES and not (
            booking.status == BookingStatus.CANCELLED and funds_released
        ):
            raise InvalidStateError(
                f"Cannot create a payout for a booking in '{booking.status}' status",
                details={"booking_id": str(booking.pk), "current_status": booking.status},
            )
        if booking.provider_id is None:
            raise ValidationError(
                "Booking has no provider to pay",
                details={"booking_id": str(booking.pk)},
            )

        gross_cents = (
            escrow.retained_amount_cents if funds_released else booking.total_amount_cents
        )
        breakdown = CommissionCalculator(policy.commission_rate).calculate(gross_cents)
        now = timezone.now()

        payout = Payout(
            booking=booking,
            provider_id=booking.provider_id,
            client_id=booking.client_id,
            escrow=escrow,
            gross_amount_cents=breakdown.gross_amount_cents,
            commission_rate=breakdown.commission_rate,
            commission_amount_cents=breakdown.commission_amount_cents,
            payout_amount_cents=breakdown.payout_amount_cents,
            currency=booking.currency or policy.currency,
            state=(
                PayoutState.PENDING
                if booking.is_paid or funds_released
                else PayoutState.AWAITING_PAYMENT
            ),
            service_completed_at=booking.completed_at or booking.cancelled_at or now,
            scheduled_at=now + policy.payout_delay,
            metadata={"booking_number": booking.booking_number},
        )
        try:
            with transaction.atomic():
                payout.save()
        except IntegrityError:
            winner = Payout.objects.filter(booking_id=booking.pk).first()
            if winner is None:
                raise
            cls.get_logger().info(
                "Concurrent payout creation resolved to existing payout",
                extra={"booking_id": str(booking.pk), "payout_id": str(winner.id)},
            )
            return winner

        cls.get_logger().info(
            "Payout created",
            extra={
                "payout_id": str(payout.id),
                "booking_id": str(booking.pk),
                "state": payout.state,
                "payout_amount_cents": payout.payout_amount_cents,
                "scheduled_at": payout.scheduled_at.isoformat(),
            },
        )
        return payout

    @classmethod
    def on_payment_completed(cls, booking_id) -> Payout | None:
        """
        Promote an AWAITING_PAYMENT payout once the client has paid.

        No-op (returns the payout unchanged, or None) for any other state.
        """
        with cls.atomic():
            payout = Payout.objects.select_for_update().filter(booking_id=booking_id).first()
            if payout is None or payout.state != PayoutState.AWAITING_PAYMENT:
                return payout

            cls.apply_transition(payout, "mark_payment_received")
            if payout.escrow_id is None:
                payout.escrow = EscrowPayment.objects.for_booking(booking_id).first()
            payout.save()
        return payout

    @classmethod
    def cancel_for_booking(cls, booking_id, reason: str) -> Payout | None:
        """Cancel the booking's payout if it has not been sent yet."""
        with cls.atomic():
            payout = Payout.objects.select_for_update().filter(booking_id=booking_id).first()
            if payout is None or not payout.can_cancel:
                return payout
            cls.apply_transition(payout, "cancel", reason=reason)
            payout.save()
        return payout

    # =========================================================================
    # Sweep
    # =========================================================================

    @classmethod
    def ready_payout_ids(cls, policy: PayoutPolicy, now: datetime) -> list:
        """
        Snapshot of up to batch_size ready payout ids, oldest first.

        Nothing is locked here; each id is re-checked by process_single under
        the per-payout lock and the row locks before anything is sent.
        """
        return list(
            Payout.objects.ready_for_sweep(now)
            .values_list("id", flat=True)[: policy.batch_size]
        )

    @classmethod
    def process_ready_payouts(
        cls,
        policy: PayoutPolicy | None = None,
        now: datetime | None = None,
        keep_alive: Callable[[], bool] | None = None,
    ) -> SweepSummary:
        """
        Send every PENDING payout whose scheduled time has passed.

        One payout's failure never aborts the sweep. keep_alive is called
        before each payout (the scheduler extends its single-flight lock);
        when it returns False the sweep stops and the rest wait for the next
        tick.

        Returns:
            SweepSummary with processed/completed/failed/skipped counters
        """
        policy = policy or PayoutPolicy.from_settings()
        summary = SweepSummary(started_at=timezone.now())
        now = now or summary.started_at
        logger = cls.get_logger()

        payout_ids = cls.ready_payout_ids(policy, now)
        logger.info(
            "Payout sweep started",
            extra={"ready_count": len(payout_ids), "batch_size": policy.batch_size},
        )

        for payout_id in payout_ids:
            if keep_alive is not None and not keep_alive():
                logger.warning(
                    "Sweep guard lost, stopping sweep early",
                    extra={"remaining": len(payout_ids) - summary.processed - summary.skipped},
                )
                break
            try:
                result = cls.process_single(payout_id, policy=policy)
            except Exception as e:
                logger.exception(
                    "Unexpected error processing payout",
                    extra={"payout_id": str(payout_id)},
                )
                result = PayoutProcessResult(
                    payout_id=str(payout_id),
                    status="failed",
                    error=str(e),
                    error_code=e.__class__.__name__.upper(),
                )
            summary.record(result)

        summary.finished_at = timezone.now()
        logger.info(
            "Payout sweep finished",
            extra={
                "processed": summary.processed,
                "completed": summary.completed,
                "failed": summary.failed,
                "skipped": summary.skipped,
            },
        )
        return summary

    # =========================================================================
    # Single Payout Execution
    # =========================================================================

    @classmethod
    def process_single(cls, payout_id, policy: PayoutPolicy | None = None) -> PayoutProcessResult:
        """
        Run one transfer attempt for a PENDING payout.

        Returns:
            PayoutProcessResult; "skipped" if the payout is locked by another
            worker, is no longer PENDING, or its booking is under an open
            dispute (re-checked under the booking row lock)
        """
        policy = policy or PayoutPolicy.from_settings()
        lock = DistributedLock(
            payout_lock_key(payout_id),
            ttl=policy.payout_lock_ttl_seconds,
            blocking=False,
        )
        try:
            lock.acquire()
        except LockAcquisitionError:
            cls.get_logger().info(
                "Payout locked by another worker, skipping",
                extra={"payout_id": str(payout_id)},
            )
            return PayoutProcessResult(
                payout_id=str(payout_id),
                status="skipped",
                error="Payout is being processed by another worker",
            )

        try:
            return cls._process_with_lock(payout_id)
        finally:
            lock.release()

    @classmethod
    def _process_with_lock(cls, payout_id) -> PayoutProcessResult:
        logger = cls.get_logger()

        # Phase 1: claim. Booking row first, same order as BookingService.dispute
        with cls.atomic():
            booking = cls._get_locked_booking(payout_id)
            payout = cls._get_locked(payout_id)
            if payout.state != PayoutState.PENDING:
                logger.info(
                    "Payout no longer pending, skipping",
                    extra={"payout_id": str(payout_id), "current_state": payout.state},
                )
                return PayoutProcessResult(
                    payout_id=str(payout_id),
                    status="skipped",
                    error=f"Payout is '{payout.state}'",
                )
            if booking.is_dispute_open:
                logger.info(
                    "Booking under dispute, holding payout",
                    extra={"payout_id": str(payout_id), "booking_id": str(booking.pk)},
                )
                return PayoutProcessResult(
                    payout_id=str(payout_id),
                    status="skipped",
                    error="Booking is under dispute",
                    error_code="DISPUTE_OPEN",
                )

            cls.apply_transition(payout, "start_processing")
            profile = ProviderProfile.objects.filter(user_id=payout.provider_id).first()
            if profile is not None:
                payout.payout_method = (
                    PayoutMethod.BANK
                    if profile.payout_method == PayoutDestinationType.BANK
                    else PayoutMethod.MOBILE_MONEY
                )
            payout.transfer_reference = generate_transfer_reference(payout)
            payout.save()

        reference = payout.transfer_reference
        logger.info(
            "Phase 1 complete: payout claimed",
            extra={
                "payout_id": str(payout_id),
                "attempt": payout.attempt_count,
                "reference": reference,
            },
        )

        # Phase 2: gateway call, outside any transaction
        try:
            result = cls._send_transfer(payout, profile)
        except ConfigurationError as e:
            result = ServiceResult.from_exception(e)
        except Exception as e:
            logger.exception(
                "Unexpected error calling transfer gateway",
                extra={"payout_id": str(payout_id)},
            )
            result = ServiceResult.from_exception(e)

        recipient_code = payout.recipient_code

        # Phase 3: record the outcome
        with cls.atomic():
            payout = cls._get_locked(payout_id)
            payout.recipient_code = recipient_code
            if result.success:
                transfer = result.data
                cls.apply_transition(
                    payout,
                    "complete",
                    transfer_reference=reference,
                    transfer_id=transfer.transfer_code or transfer.transfer_id,
                )
                payout.save()
                ProviderDirectory.record_earnings(
                    payout.provider_id, payout.payout_amount_cents
                )
            else:
                cls.apply_transition(payout, "fail", reason=result.error)
                payout.save()

        if result.success:
            logger.info(
                "Payout completed",
                extra={
                    "payout_id": str(payout_id),
                    "reference": reference,
                    "payout_amount_cents": payout.payout_amount_cents,
                },
            )
            NotificationService.notify_payout_completed(payout)
            return PayoutProcessResult(
                payout_id=str(payout_id),
                status="completed",
                transfer_reference=reference,
            )

        logger.warning(
            "Payout failed",
            extra={
                "payout_id": str(payout_id),
                "reference": reference,
                "error_code": result.error_code,
                "reason": result.error,
            },
        )
        NotificationService.notify_payout_failed(payout)
        return PayoutProcessResult(
            payout_id=str(payout_id),
            status="failed",
            transfer_reference=reference,
            error=result.error,
            error_code=result.error_code,
        )

    @classmethod
    def _send_transfer(
        cls,
        payout: Payout,
        profile: ProviderProfile | None,
    ) -> ServiceResult[TransferResult]:
        """
        Resolve the recipient and initiate the transfer.

        Raises:
            ConfigurationError: Provider has no usable payout destination
        """
        if profile is None or not profile.has_payout_destination:
            raise ConfigurationError(
                "Provider has no payout destination configured",
                error_code="PAYOUT_DESTINATION_MISSING",
                details={"provider_id": payout.provider_id},
            )

        gateway = cls.get_gateway()
        recipient_code = profile.paystack_recipient_code
        if not recipient_code:
            recipient_result = gateway.create_recipient(cls._build_recipient(profile, payout))
            if not recipient_result.success:
                return recipient_result
            recipient_code = recipient_result.data.recipient_code
            ProviderDirectory.save_recipient_code(profile.user_id, recipient_code)

        payout.recipient_code = recipient_code
        start_time = time.time()
        result = gateway.initiate_transfer(
            amount_cents=payout.payout_amount_cents,
            currency=payout.currency,
            recipient_code=recipient_code,
            reference=payout.transfer_reference,
            reason=f"Payout for booking {payout.metadata.get('booking_number', payout.booking_id)}",
        )
        cls.get_logger().info(
            "Phase 2 complete: gateway responded",
            extra={
                "payout_id": str(payout.id),
                "success": result.success,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return result

    @classmethod
    def _build_recipient(cls, profile: ProviderProfile, payout: Payout) -> TransferRecipient:
        if profile.payout_method == PayoutDestinationType.BANK:
            return TransferRecipient(
                recipient_type=RecipientType.BANK,
                name=profile.bank_account_name or profile.display_name,
                account_number=profile.bank_account_number,
                bank_code=profile.bank_code,
                currency=payout.currency,
            )
        return TransferRecipient(
            recipient_type=RecipientType.MOBILE_MONEY,
            name=profile.display_name,
            account_number=profile.mobile_money_number,
            bank_code=settings.PAYSTACK_MOBILE_MONEY_BANK_CODE,
            currency=payout.currency,
        )

    # =========================================================================
    # Operator Actions
    # =========================================================================

    @classmethod
    def requeue(cls, payout_id, actor=None) -> Payout:
        """
        Put a FAILED payout back in the queue for the next sweep.

        Raises:
            InvalidStateError: Payout is not FAILED
        """
        with cls.atomic():
            payout = cls._get_locked(payout_id)
            cls.apply_transition(payout, "requeue")
            payout.save()

        cls.get_logger().info(
            "Payout re-queued",
            extra={
                "payout_id": str(payout_id),
                "actor_id": getattr(actor, "pk", None),
                "attempt_count": payout.attempt_count,
            },
        )
        return payout

    @classmethod
    def cancel(cls, payout_id, actor=None, reason: str = "") -> Payout:
        """
        Cancel a payout that has not been sent.

        Raises:
            InvalidStateError: Payout already processing, completed, failed or cancelled
        """
        with cls.atomic():
            payout = cls._get_locked(payout_id)
            cls.apply_transition(payout, "cancel", reason=reason or "Cancelled by operator")
            payout.save()

        cls.get_logger().info(
            "Payout cancelled",
            extra={"payout_id": str(payout_id), "actor_id": getattr(actor, "pk", None)},
        )
        return payout

    @classmethod
    def _bulk(cls, payout_ids: Iterable, operation) -> list[BulkItemResult]:
        results = []
        for payout_id in payout_ids:
            try:
                operation(payout_id)
            except BaseApplicationError as e:
                results.append(
                    BulkItemResult(
                        payout_id=str(payout_id),
                        success=False,
                        error=e.message,
                        error_code=e.error_code,
                    )
                )
                continue
            results.append(BulkItemResult(payout_id=str(payout_id), success=True))
        return results

    @classmethod
    def bulk_requeue(cls, payout_ids: Iterable, actor=None) -> list[BulkItemResult]:
        return cls._bulk(payout_ids, lambda pk: cls.requeue(pk, actor=actor))

    @classmethod
    def bulk_cancel(cls, payout_ids: Iterable, actor=None, reason: str = "") -> list[BulkItemResult]:
        return cls._bulk(payout_ids, lambda pk: cls.cancel(pk, actor=actor, reason=reason))

    @classmethod
    def bulk_process(cls, payout_ids: Iterable) -> list[BulkItemResult]:
        """Process the given payouts now; FAILED ones are re-queued first."""

        def process(pk):
            payout = cls.get(pk)
            if payout.state == PayoutState.FAILED:
                cls.requeue(pk)
            result = cls.process_single(pk)
            if result.status != "completed":
                raise InvalidStateError(
                    result.error or f"Payout {result.status}",
                    error_code=result.error_code or "PAYOUT_NOT_PROCESSED",
                )

        return cls._bulk(payout_ids, process)

    # =========================================================================
    # History & Statistics
    # =========================================================================

    @classmethod
    def get_payout_history(cls, provider_id=None, status: str | None = None) -> QuerySet[Payout]:
        queryset = Payout.objects.select_related("booking")
        if provider_id is not None:
            queryset = queryset.for_provider(provider_id)
        if status:
            if status not in PayoutState.values:
                raise ValidationError(
                    f"Unknown payout status '{status}'",
                    details={"status": status, "allowed": list(PayoutState.values)},
                )
            queryset = queryset.filter(state=status)
        return queryset.order_by("-created_at")

    @classmethod
    def get_payout_stats(cls, provider_id=None) -> dict[str, Any]:
        """Count and total payout amount per status, plus headline totals."""
        queryset = Payout.objects.all()
        if provider_id is not None:
            queryset = queryset.for_provider(provider_id)

        by_status = {
            state: {"count": 0, "amount_cents": 0} for state in PayoutState.values
        }
        rows = queryset.values("state").annotate(
            count=Count("id"), amount_cents=Sum("payout_amount_cents")
        )
        for row in rows:
            by_status[row["state"]] = {
                "count": row["count"],
                "amount_cents": row["amount_cents"] or 0,
            }

        return {
            "by_status": by_status,
            "total_count": sum(row["count"] for row in by_status.values()),
            "total_paid_cents": by_status[PayoutState.COMPLETED]["amount_cents"],
            "total_pending_cents": (
                by_status[PayoutState.AWAITING_PAYMENT]["amount_cents"]
                + by_status[PayoutState.PENDING]["amount_cents"]
                + by_status[PayoutState.PROCESSING]["amount_cents"]
            ),
        }
