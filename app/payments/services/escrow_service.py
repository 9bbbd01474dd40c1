"""
Escrow ledger service for client funds held against bookings.

EscrowLedger owns every EscrowPayment state change. Each mutation locks the
escrow row, validates the current state, applies the django-fsm transition,
appends an audit event and saves in one transaction.

Release and refund are idempotent towards their own terminal state: calling
release on a released escrow is a successful no-op flagged already_done,
while release on a refunded escrow (or the reverse) is an InvalidStateError.
Once funds are released, disputes are no longer possible.

Usage:
    from payments.services import EscrowLedger

    escrow, created = EscrowLedger.open_escrow(booking, payment_reference="QK7...")

    result = EscrowLedger.release(escrow.id, released_by=client)
    if result.already_done:
        ...

    EscrowLedger.start_dispute(
        escrow.id,
        reason="Work incomplete",
        initiator=DisputeInitiator.CLIENT,
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import Count, Sum
from django.utils import timezone

from core.exceptions import InvalidStateError, ValidationError
from core.services import BaseService

from payments.commission import CommissionCalculator
from payments.exceptions import EscrowNotFoundError
from payments.models import EscrowPayment
from payments.state_machines import (
    DisputeDecision,
    DisputeInitiator,
    EscrowState,
    EvidenceType,
)

if TYPE_CHECKING:
    from decimal import Decimal
    from typing import Any

    from bookings.models import Booking
    from django.db.models import QuerySet


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class EscrowOperationResult:
    """
    Result of a release or refund.

    Attributes:
        escrow: The escrow after the operation
        already_done: The escrow was already in the requested terminal state
    """

    escrow: EscrowPayment
    already_done: bool = False


# =============================================================================
# Escrow Ledger
# =============================================================================


class EscrowLedger(BaseService):
    """
    Service for holding, releasing, refunding and disputing booking funds.

    Concurrency:
        Every mutation re-reads the escrow under select_for_update, so two
        concurrent releases serialize and the second one sees RELEASED.
    """

    # =========================================================================
    # Lookups
    # =========================================================================

    @classmethod
    def get(cls, escrow_id) -> EscrowPayment:
        try:
            return EscrowPayment.objects.select_related("booking").get(pk=escrow_id)
        except EscrowPayment.DoesNotExist:
            raise EscrowNotFoundError(
                f"Escrow payment {escrow_id} not found",
                details={"escrow_id": str(escrow_id)},
            )

    @classmethod
    def _get_locked(cls, escrow_id) -> EscrowPayment:
        try:
            return EscrowPayment.objects.select_for_update().get(pk=escrow_id)
        except EscrowPayment.DoesNotExist:
            raise EscrowNotFoundError(
                f"Escrow payment {escrow_id} not found",
                details={"escrow_id": str(escrow_id)},
            )

    @classmethod
    def get_for_booking(cls, booking_id) -> EscrowPayment | None:
        return EscrowPayment.objects.for_booking(booking_id).first()

    @classmethod
    def list_for_client(cls, client_id) -> QuerySet[EscrowPayment]:
        return EscrowPayment.objects.for_client(client_id).select_related("booking")

    @classmethod
    def list_for_provider(cls, provider_id) -> QuerySet[EscrowPayment]:
        return EscrowPayment.objects.for_provider(provider_id).select_related("booking")

    @classmethod
    def list_by_status(cls, state: str) -> QuerySet[EscrowPayment]:
        if state not in EscrowState.values:
            raise ValidationError(
                f"Unknown escrow status '{state}'",
                details={"status": state, "allowed": list(EscrowState.values)},
            )
        return EscrowPayment.objects.filter(state=state).select_related("booking")

    # =========================================================================
    # Opening
    # =========================================================================

    @classmethod
    def open_escrow(
        cls,
        booking: Booking,
        payment_reference: str = "",
    ) -> tuple[EscrowPayment, bool]:
        """
        Find or create the single active escrow for a booking.

        Args:
            booking: Booking the client paid for
            payment_reference: Gateway receipt for the client payment

        Returns:
            Tuple of (escrow, created)
        """
        existing = EscrowPayment.objects.for_booking(booking.pk).first()
        if existing is not None:
            return existing, False

        escrow = EscrowPayment(
            booking=booking,
            client_id=booking.client_id,
            provider_id=booking.provider_id,
            amount_cents=booking.total_amount_cents,
            currency=booking.currency,
            payment_reference=payment_reference or "",
        )
        escrow.record_event("opened", payment_reference=payment_reference or "")
        try:
            with transaction.atomic():
                escrow.save()
        except IntegrityError:
            # Lost a concurrent insert for the same booking
            winner = EscrowPayment.objects.for_booking(booking.pk).first()
            if winner is None:
                raise
            return winner, False

        cls.get_logger().info(
            "Escrow opened",
            extra={
                "escrow_id": str(escrow.id),
                "booking_id": str(booking.pk),
                "amount_cents": escrow.amount_cents,
            },
        )
        return escrow, True

    # =========================================================================
    # Release & Refund
    # =========================================================================

    @classmethod
    def release(
        cls,
        escrow_id,
        released_by=None,
        commission_rate: Decimal | None = None,
        allow_disputed: bool = False,
    ) -> EscrowOperationResult:
        """
        Release held funds to the provider.

        Args:
            escrow_id: Escrow to release
            released_by: Acting user (client or admin)
            commission_rate: Override of the configured platform rate
            allow_disputed: Only dispute resolution releases a disputed escrow

        Returns:
            EscrowOperationResult; already_done=True if it was released before

        Raises:
            InvalidStateError: Escrow refunded, or disputed without resolution
        """
        with cls.atomic():
            escrow = cls._get_locked(escrow_id)
            return cls._release_locked(
                escrow, released_by, commission_rate, allow_disputed
            )

    @classmethod
    def _release_locked(
        cls,
        escrow: EscrowPayment,
        released_by,
        commission_rate,
        allow_disputed: bool,
        refund_amount_cents: int = 0,
        refund_reason: str = "",
    ) -> EscrowOperationResult:
        if escrow.state == EscrowState.RELEASED:
            cls.get_logger().info(
                "Escrow already released",
                extra={"escrow_id": str(escrow.id)},
            )
            return EscrowOperationResult(escrow=escrow, already_done=True)
        if escrow.state == EscrowState.DISPUTED and not allow_disputed:
            raise InvalidStateError(
                "Escrow is under dispute; resolve the dispute to release funds",
                details={"escrow_id": str(escrow.id), "current_state": escrow.state},
            )

        breakdown = CommissionCalculator(commission_rate).calculate(
            escrow.amount_cents - refund_amount_cents
        )
        cls.apply_transition(
            escrow,
            "release",
            released_by=released_by,
            platform_fee_cents=breakdown.commission_amount_cents,
            provider_amount_cents=breakdown.payout_amount_cents,
        )
        if escrow.provider_id is None:
            escrow.provider_id = escrow.booking.provider_id
        if refund_amount_cents:
            escrow.refunded_amount_cents = refund_amount_cents
            escrow.refund_reason = refund_reason or ""
            escrow.refunded_by = released_by
            escrow.refunded_at = escrow.released_at
        escrow.record_event(
            "split" if refund_amount_cents else "released",
            actor=released_by,
            platform_fee_cents=breakdown.commission_amount_cents,
            provider_amount_cents=breakdown.payout_amount_cents,
            refunded_amount_cents=refund_amount_cents,
        )
        escrow.save()

        cls.get_logger().info(
            "Escrow released",
            extra={
                "escrow_id": str(escrow.id),
                "booking_id": str(escrow.booking_id),
                "provider_amount_cents": escrow.provider_amount_cents,
                "refunded_amount_cents": refund_amount_cents,
            },
        )
        return EscrowOperationResult(escrow=escrow)

    @classmethod
    def split(
        cls,
        escrow_id,
        refund_amount_cents: int,
        settled_by=None,
        reason: str = "",
        commission_rate: Decimal | None = None,
    ) -> EscrowOperationResult:
        """
        Return part of the held funds to the client and release the rest.

        The retained share goes through the commission split like a normal
        release; the escrow ends RELEASED with refunded_amount_cents set.

        Raises:
            ValidationError: Refund share not strictly between 0 and the held amount
            InvalidStateError: Escrow is not held
        """
        with cls.atomic():
            escrow = cls._get_locked(escrow_id)
            if escrow.state != EscrowState.PENDING:
                raise InvalidStateError(
                    f"Cannot split an escrow in '{escrow.state}' state",
                    details={"escrow_id": str(escrow.id), "current_state": escrow.state},
                )
            if not 0 < refund_amount_cents < escrow.amount_cents:
                raise ValidationError(
                    "Refund share must be between zero and the held amount",
                    details={
                        "refund_amount_cents": refund_amount_cents,
                        "amount_cents": escrow.amount_cents,
                    },
                )
            return cls._release_locked(
                escrow,
                settled_by,
                commission_rate,
                allow_disputed=False,
                refund_amount_cents=refund_amount_cents,
                refund_reason=reason,
            )

    @classmethod
    def refund(
        cls,
        escrow_id,
        reason: str = "",
        refunded_by=None,
        allow_disputed: bool = False,
    ) -> EscrowOperationResult:
        """
        Refund held funds to the client.

        Returns:
            EscrowOperationResult; already_done=True if it was refunded before

        Raises:
            InvalidStateError: Escrow released, or disputed without resolution
        """
        with cls.atomic():
            escrow = cls._get_locked(escrow_id)
            return cls._refund_locked(escrow, reason, refunded_by, allow_disputed)

    @classmethod
    def _refund_locked(
        cls,
        escrow: EscrowPayment,
        reason: str,
        refunded_by,
        allow_disputed: bool,
    ) -> EscrowOperationResult:
        if escrow.state == EscrowState.REFUNDED:
            return EscrowOperationResult(escrow=escrow, already_done=True)
        if escrow.state == EscrowState.DISPUTED and not allow_disputed:
            raise InvalidStateError(
                "Escrow is under dispute; resolve the dispute to refund funds",
                details={"escrow_id": str(escrow.id), "current_state": escrow.state},
            )

        cls.apply_transition(escrow, "refund", reason=reason, refunded_by=refunded_by)
        escrow.record_event("refunded", actor=refunded_by, reason=reason)
        escrow.save()

        cls.get_logger().info(
            "Escrow refunded",
            extra={
                "escrow_id": str(escrow.id),
                "booking_id": str(escrow.booking_id),
                "amount_cents": escrow.amount_cents,
            },
        )
        return EscrowOperationResult(escrow=escrow)

    # =========================================================================
    # Disputes
    # =========================================================================

    @classmethod
    def start_dispute(
        cls,
        escrow_id,
        reason: str,
        initiator: str,
        description: str = "",
        evidence: list[dict[str, Any]] | None = None,
        raised_by=None,
    ) -> EscrowPayment:
        """
        Freeze held funds until an admin decides.

        Raises:
            ValidationError: Missing reason or unknown initiator
            InvalidStateError: Funds already released or refunded, or already disputed
        """
        if not reason or not reason.strip():
            raise ValidationError("A dispute reason is required")
        if initiator not in DisputeInitiator.values:
            raise ValidationError(
                f"Unknown dispute initiator '{initiator}'",
                details={"allowed": list(DisputeInitiator.values)},
            )

        with cls.atomic():
            escrow = cls._get_locked(escrow_id)
            if escrow.state == EscrowState.RELEASED:
                raise InvalidStateError(
                    "Cannot dispute an escrow that has been released",
                    details={
                        "escrow_id": str(escrow.id),
                        "current_state": escrow.state,
                        "action": "start_dispute",
                    },
                )
            cls.apply_transition(
                escrow,
                "start_dispute",
                reason=reason,
                initiator=initiator,
                description=description,
            )
            for item in evidence or []:
                escrow.evidence = [*escrow.evidence, cls._build_evidence(item, raised_by)]
            escrow.record_event(
                "dispute_started", actor=raised_by, reason=reason, initiator=initiator
            )
            escrow.save()

        cls.get_logger().info(
            "Escrow dispute started",
            extra={
                "escrow_id": str(escrow.id),
                "booking_id": str(escrow.booking_id),
                "initiator": initiator,
            },
        )
        return escrow

    @classmethod
    def resolve_dispute(
        cls,
        escrow_id,
        decision: str,
        resolved_by,
        notes: str = "",
        commission_rate: Decimal | None = None,
    ) -> EscrowOperationResult:
        """
        Close a dispute by releasing or refunding the funds.

        Args:
            decision: DisputeDecision.RELEASE or DisputeDecision.REFUND

        Raises:
            ValidationError: Unknown decision
            InvalidStateError: Escrow is not disputed
        """
        if decision not in DisputeDecision.values:
            raise ValidationError(
                f"Unknown dispute decision '{decision}'",
                details={"allowed": list(DisputeDecision.values)},
            )

        with cls.atomic():
            escrow = cls._get_locked(escrow_id)
            if escrow.state != EscrowState.DISPUTED:
                raise InvalidStateError(
                    f"Cannot resolve a dispute on an escrow in '{escrow.state}' state",
                    details={
                        "escrow_id": str(escrow.id),
                        "current_state": escrow.state,
                        "action": "resolve_dispute",
                    },
                )

            escrow.resolution_decision = decision
            escrow.resolved_by = resolved_by
            escrow.resolution_notes = notes or ""
            escrow.resolved_at = timezone.now()
            escrow.record_event(
                "dispute_resolved", actor=resolved_by, decision=decision, notes=notes
            )

            if decision == DisputeDecision.RELEASE:
                result = cls._release_locked(
                    escrow, resolved_by, commission_rate, allow_disputed=True
                )
            else:
                result = cls._refund_locked(
                    escrow,
                    notes or "Dispute resolved in favour of the client",
                    resolved_by,
                    allow_disputed=True,
                )

        cls.get_logger().info(
            "Escrow dispute resolved",
            extra={"escrow_id": str(escrow_id), "decision": decision},
        )
        return result

    # =========================================================================
    # Evidence & Removal
    # =========================================================================

    @classmethod
    def _build_evidence(cls, item: dict[str, Any], submitted_by) -> dict[str, Any]:
        evidence_type = item.get("type") or EvidenceType.OTHER
        if evidence_type not in EvidenceType.values:
            raise ValidationError(
                f"Unknown evidence type '{evidence_type}'",
                details={"allowed": list(EvidenceType.values)},
            )
        description = (item.get("description") or "").strip()
        if not description and not item.get("url"):
            raise ValidationError("Evidence needs a description or a url")
        return {
            "type": evidence_type,
            "description": description,
            "url": item.get("url") or "",
            "submitted_by": getattr(submitted_by, "pk", submitted_by),
            "submitted_at": timezone.now().isoformat(),
        }

    @classmethod
    def add_evidence(cls, escrow_id, evidence: dict[str, Any], submitted_by) -> EscrowPayment:
        """
        Attach an evidence item while funds are still held or disputed.

        Raises:
            ValidationError: Malformed evidence
            InvalidStateError: Escrow already released or refunded
        """
        entry = cls._build_evidence(evidence, submitted_by)
        with cls.atomic():
            escrow = cls._get_locked(escrow_id)
            if escrow.is_settled:
                raise InvalidStateError(
                    f"Cannot add evidence to an escrow in '{escrow.state}' state",
                    details={"escrow_id": str(escrow.id), "current_state": escrow.state},
                )
            escrow.evidence = [*escrow.evidence, entry]
            escrow.record_event("evidence_added", actor=submitted_by, type=entry["type"])
            escrow.save(update_fields=["evidence", "events", "updated_at"])
        return escrow

    @classmethod
    def soft_delete(cls, escrow_id, deleted_by=None) -> None:
        """
        Hide an escrow that never moved funds.

        Raises:
            InvalidStateError: Escrow is not in the held state
        """
        with cls.atomic():
            escrow = cls._get_locked(escrow_id)
            if escrow.state != EscrowState.PENDING:
                raise InvalidStateError(
                    f"Only held escrows can be deleted (current: '{escrow.state}')",
                    details={"escrow_id": str(escrow.id), "current_state": escrow.state},
                )
            escrow.record_event("deleted", actor=deleted_by)
            escrow.save(update_fields=["events", "updated_at"])
            escrow.soft_delete()

        cls.get_logger().info(
            "Escrow soft deleted",
            extra={"escrow_id": str(escrow_id)},
        )

    # =========================================================================
    # Statistics
    # =========================================================================

    @classmethod
    def _counts_by_state(cls, queryset) -> dict[str, dict[str, int]]:
        rows = queryset.values("state").annotate(
            count=Count("id"),
            amount_cents=Sum("amount_cents"),
            provider_amount_cents=Sum("provider_amount_cents"),
            refunded_amount_cents=Sum("refunded_amount_cents"),
        )
        by_state = {
            state: {
                "count": 0,
                "amount_cents": 0,
                "provider_amount_cents": 0,
                "refunded_amount_cents": 0,
            }
            for state in EscrowState.values
        }
        for row in rows:
            by_state[row["state"]] = {
                "count": row["count"],
                "amount_cents": row["amount_cents"] or 0,
                "provider_amount_cents": row["provider_amount_cents"] or 0,
                "refunded_amount_cents": row["refunded_amount_cents"] or 0,
            }
        return by_state

    @classmethod
    def provider_stats(cls, provider_id) -> dict[str, Any]:
        """Counts per state plus total, released and still-held amounts."""
        by_state = cls._counts_by_state(EscrowPayment.objects.for_provider(provider_id))
        return {
            "total": sum(row["count"] for row in by_state.values()),
            **{state: row["count"] for state, row in by_state.items()},
            "total_amount_cents": sum(row["amount_cents"] for row in by_state.values()),
            "released_amount_cents": by_state[EscrowState.RELEASED]["provider_amount_cents"],
            "pending_amount_cents": by_state[EscrowState.PENDING]["amount_cents"],
        }

    @classmethod
    def client_stats(cls, client_id) -> dict[str, Any]:
        """Counts per state plus total spent and total refunded."""
        by_state = cls._counts_by_state(EscrowPayment.objects.for_client(client_id))
        released = by_state[EscrowState.RELEASED]
        return {
            "total": sum(row["count"] for row in by_state.values()),
            **{state: row["count"] for state, row in by_state.items()},
            "total_spent_cents": (
                released["amount_cents"] - released["refunded_amount_cents"]
            ),
            "total_refunded_cents": (
                by_state[EscrowState.REFUNDED]["amount_cents"] + released["refunded_amount_cents"]
            ),
        }
