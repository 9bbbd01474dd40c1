"""
Serializers for the matching API.

Serializers:
    MatchRequestSerializer: Validates a match request and builds a MatchRequest
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from rest_framework import serializers

from bookings.state_machines import Urgency
from matching.scoring import Budget
from matching.services import MatchRequest


class MatchRequestSerializer(serializers.Serializer):
    """
    Input for POST /api/v1/matching/providers/.

    budget_min and budget_max are hourly rates in major currency units and
    must be given together.
    """

    category = serializers.CharField(max_length=50)
    location_area = serializers.CharField(
        max_length=100, required=False, allow_blank=True, default=""
    )
    scheduled_date = serializers.DateField()
    start_time = serializers.TimeField()
    urgency = serializers.ChoiceField(choices=Urgency.choices, default=Urgency.NORMAL)
    budget_min = serializers.IntegerField(min_value=0, required=False)
    budget_max = serializers.IntegerField(min_value=1, required=False)
    duration_hours = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0.5"),
        default=Decimal("2"),
    )
    limit = serializers.IntegerField(min_value=1, max_value=20, required=False)

    def validate(self, attrs):
        has_min = "budget_min" in attrs
        has_max = "budget_max" in attrs
        if has_min != has_max:
            raise serializers.ValidationError(
                "budget_min and budget_max must be provided together"
            )
        if has_min and attrs["budget_min"] > attrs["budget_max"]:
            raise serializers.ValidationError(
                {"budget_min": "Must not exceed budget_max"}
            )
        return attrs

    def to_match_request(self, exclude_provider_ids=()) -> MatchRequest:
        data = self.validated_data
        budget = None
        if "budget_min" in data:
            budget = Budget(min=data["budget_min"], max=data["budget_max"])
        return MatchRequest(
            category=data["category"],
            area=data["location_area"] or None,
            scheduled_date=data["scheduled_date"],
            start_time=data["start_time"],
            urgency=data["urgency"],
            budget=budget,
            duration_hours=data["duration_hours"],
            exclude_provider_ids=set(exclude_provider_ids),
        )

    @property
    def limit(self) -> int:
        return self.validated_data.get("limit") or settings.MATCHING_DEFAULT_LIMIT
