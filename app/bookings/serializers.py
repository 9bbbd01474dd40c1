"""
Serializers for the bookings API.

Serializers:
    BookingTimelineEntrySerializer: One status history entry
    BookingListSerializer: Compact booking for list views
    BookingDetailSerializer: Full booking with timeline
    BookingCreateSerializer: Input for creating a booking
    AssignProviderSerializer: Input for assigning a provider
    CancelBookingSerializer: Input for cancelling
    DisputeBookingSerializer: Input for raising a dispute
    RecordPaymentSerializer: Input for recording the client's payment
    CompleteBookingSerializer: Input for completing
"""

from __future__ import annotations

from rest_framework import serializers

from bookings.models import Booking, BookingTimelineEntry
from bookings.state_machines import PaymentMethod, PaymentTiming, Urgency


def _user_summary(user) -> dict | None:
    if user is None:
        return None
    return {"id": user.pk, "name": user.full_name or user.email}


class BookingTimelineEntrySerializer(serializers.ModelSerializer):
    actor_name = serializers.SerializerMethodField()

    class Meta:
        model = BookingTimelineEntry
        fields = ["id", "status", "actor_name", "note", "created_at"]
        read_only_fields = fields

    def get_actor_name(self, obj: BookingTimelineEntry) -> str | None:
        if obj.actor is None:
            return None
        return obj.actor.full_name or obj.actor.email


class BookingListSerializer(serializers.ModelSerializer):
    client = serializers.SerializerMethodField()
    provider = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_number",
            "status",
            "category",
            "client",
            "provider",
            "scheduled_date",
            "start_time",
            "end_time",
            "location_area",
            "total_amount_cents",
            "currency",
            "payment_status",
            "urgency",
            "created_at",
        ]
        read_only_fields = fields

    def get_client(self, obj: Booking) -> dict | None:
        return _user_summary(obj.client)

    def get_provider(self, obj: Booking) -> dict | None:
        return _user_summary(obj.provider)


class BookingDetailSerializer(BookingListSerializer):
    """Full booking including cancellation, dispute and timeline."""

    timeline = BookingTimelineEntrySerializer(many=True, read_only=True)

    class Meta(BookingListSerializer.Meta):
        fields = [
            *BookingListSerializer.Meta.fields,
            "description",
            "service",
            "location_address",
            "location_city",
            "location_latitude",
            "location_longitude",
            "location_instructions",
            "base_amount_cents",
            "payment_method",
            "payment_timing",
            "payment_reference",
            "paid_at",
            "confirmed_at",
            "started_at",
            "completed_at",
            "cancelled_at",
            "cancellation_reason",
            "refund_eligible",
            "refund_percentage",
            "refund_amount_cents",
            "disputed_at",
            "dispute_reason",
            "dispute_outcome",
            "dispute_resolved_at",
            "version",
            "timeline",
        ]
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    """
    Input for POST /api/v1/bookings/.

    provider_id and service_id are optional; without them the best matching
    provider is assigned. budget_min/budget_max (hourly, major units) only
    steer that matching.
    """

    provider_id = serializers.IntegerField(required=False, allow_null=True)
    service_id = serializers.UUIDField(required=False, allow_null=True)
    category = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    description = serializers.CharField(required=False, allow_blank=True, default="")
    scheduled_date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField()
    location_area = serializers.CharField(
        max_length=100, required=False, allow_blank=True, default=""
    )
    location_address = serializers.CharField(
        max_length=255, required=False, allow_blank=True, default=""
    )
    location_city = serializers.CharField(
        max_length=100, required=False, allow_blank=True, default=""
    )
    location_latitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, required=False, allow_null=True
    )
    location_longitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, required=False, allow_null=True
    )
    location_instructions = serializers.CharField(required=False, allow_blank=True, default="")
    base_amount_cents = serializers.IntegerField(min_value=1, required=False)
    total_amount_cents = serializers.IntegerField(min_value=1)
    currency = serializers.CharField(max_length=3, default="kes")
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices, default=PaymentMethod.MPESA
    )
    payment_timing = serializers.ChoiceField(
        choices=PaymentTiming.choices, default=PaymentTiming.PAY_NOW
    )
    urgency = serializers.ChoiceField(choices=Urgency.choices, default=Urgency.NORMAL)
    budget_min = serializers.IntegerField(min_value=0, required=False)
    budget_max = serializers.IntegerField(min_value=1, required=False)

    def validate_currency(self, value: str) -> str:
        return value.lower()

    def validate(self, attrs):
        if attrs["start_time"] >= attrs["end_time"]:
            raise serializers.ValidationError({"end_time": "Must be after start_time"})
        if not attrs.get("category") and not attrs.get("service_id"):
            raise serializers.ValidationError(
                {"category": "Provide a category or a service_id"}
            )
        if ("budget_min" in attrs) != ("budget_max" in attrs):
            raise serializers.ValidationError(
                "budget_min and budget_max must be provided together"
            )
        if "budget_min" in attrs and attrs["budget_min"] > attrs["budget_max"]:
            raise serializers.ValidationError({"budget_min": "Must not exceed budget_max"})
        if attrs.get("base_amount_cents", 0) > attrs["total_amount_cents"]:
            raise serializers.ValidationError(
                {"base_amount_cents": "Must not exceed total_amount_cents"}
            )
        return attrs


class AssignProviderSerializer(serializers.Serializer):
    provider_id = serializers.IntegerField()


class CompleteBookingSerializer(serializers.Serializer):
    release_payment = serializers.BooleanField(default=True)


class CancelBookingSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class DisputeBookingSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")


class RecordPaymentSerializer(serializers.Serializer):
    payment_reference = serializers.CharField(max_length=255)
