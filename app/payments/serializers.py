"""
Serializers for the payments API.

Serializers:
    PayoutSerializer: Payout history entry
    EscrowPaymentSerializer: Escrow detail with evidence and audit events
    EvidenceSerializer: Input for one dispute evidence item
    ResolveDisputeSerializer: Input for an admin dispute decision
    PayoutCancelSerializer: Input for cancelling a payout
    BulkPayoutActionSerializer: Input for bulk operator actions
    BulkItemResultSerializer: One result of a bulk action
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import EscrowPayment, Payout
from payments.state_machines import DisputeDecision, EvidenceType


class PayoutSerializer(serializers.ModelSerializer):
    """
    Payout as shown in provider history and operator views.

    failure_reason is the human-readable reason of the last failed attempt.
    """

    booking_number = serializers.CharField(source="booking.booking_number", read_only=True)

    class Meta:
        model = Payout
        fields = [
            "id",
            "booking",
            "booking_number",
            "provider",
            "state",
            "gross_amount_cents",
            "commission_rate",
            "commission_amount_cents",
            "payout_amount_cents",
            "currency",
            "payout_method",
            "service_completed_at",
            "scheduled_at",
            "processed_at",
            "completed_at",
            "failed_at",
            "cancelled_at",
            "transfer_reference",
            "failure_reason",
            "attempt_count",
            "created_at",
        ]
        read_only_fields = fields


class EscrowPaymentSerializer(serializers.ModelSerializer):
    booking_number = serializers.CharField(source="booking.booking_number", read_only=True)

    class Meta:
        model = EscrowPayment
        fields = [
            "id",
            "booking",
            "booking_number",
            "client",
            "provider",
            "state",
            "amount_cents",
            "currency",
            "payment_reference",
            "platform_fee_cents",
            "provider_amount_cents",
            "released_at",
            "refunded_amount_cents",
            "refunded_at",
            "refund_reason",
            "dispute_reason",
            "dispute_initiator",
            "dispute_description",
            "dispute_raised_at",
            "resolution_decision",
            "resolution_notes",
            "resolved_at",
            "evidence",
            "events",
            "version",
            "created_at",
        ]
        read_only_fields = fields


class EvidenceSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=EvidenceType.choices, default=EvidenceType.OTHER)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    url = serializers.URLField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if not attrs["description"].strip() and not attrs["url"]:
            raise serializers.ValidationError("Provide a description or a url")
        return attrs


class ResolveDisputeSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=DisputeDecision.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class SettleHeldPaymentSerializer(ResolveDisputeSerializer):
    """Release or refund funds still held for a cancelled booking."""


class PayoutCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class BulkPayoutActionSerializer(serializers.Serializer):
    """
    Input for POST /api/v1/payments/payouts/bulk/.

    Example:
        {"action": "requeue", "payout_ids": ["...", "..."]}
    """

    ACTIONS = ("requeue", "cancel", "process")

    action = serializers.ChoiceField(choices=ACTIONS)
    payout_ids = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=False,
        max_length=100,
    )
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class BulkItemResultSerializer(serializers.Serializer):
    payout_id = serializers.CharField()
    success = serializers.BooleanField()
    error = serializers.CharField(allow_null=True)
    error_code = serializers.CharField(allow_null=True)
