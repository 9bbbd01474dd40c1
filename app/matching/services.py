"""
Provider matching service.

ProviderMatcher turns a service request into a ranked, de-duplicated list
of eligible providers. Candidates come from the provider directory; each
is scored by matching.scoring, filtered by the minimum availability the
request's urgency demands, then cut to the requested number.

Usage:
    from matching.services import MatchRequest, ProviderMatcher

    request = MatchRequest(
        category="plumbing",
        area="Westlands",
        scheduled_date=date(2024, 10, 21),
        start_time=time(10, 0),
        urgency="emergency",
    )
    matches = ProviderMatcher.find_matches(request, limit=3)
    best = matches[0].provider_id if matches else None
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db.models import Count
from django.utils import timezone

from core.exceptions import ValidationError
from core.services import BaseService

from bookings.models import Booking
from bookings.state_machines import BookingStatus, Urgency
from matching.scoring import (
    MIN_AVAILABILITY,
    Budget,
    ScoreComponent,
    adjacent_areas,
    category_keywords,
    estimate_cost,
    score_availability,
    score_experience,
    score_location,
    score_pricing,
    score_recent_performance,
    score_reputation,
    score_service_match,
)
from providers.services import ProviderDirectory

if TYPE_CHECKING:
    from providers.models import ProviderProfile
    from providers.services import ProviderCandidate


RECENT_LOAD_WINDOW = timedelta(days=7)
PERFORMANCE_WINDOW = timedelta(days=30)
PERFORMANCE_SAMPLE_SIZE = 10


@dataclass
class MatchRequest:
    """
    A service request to match providers against.

    Attributes:
        category: Service category slug
        area: Requested area; None means anywhere
        scheduled_date / start_time: When the work should start
        urgency: normal, urgent or emergency
        budget: Acceptable hourly rate range, or None
        duration_hours: Expected job length, for the cost estimate
        exclude_provider_ids: Providers never to return (e.g. the client)
    """

    category: str
    scheduled_date: date
    start_time: time
    area: str | None = None
    urgency: str = Urgency.NORMAL
    budget: Budget | None = None
    duration_hours: Decimal = Decimal("2")
    exclude_provider_ids: set[int] = field(default_factory=set)


@dataclass
class ProviderMatch:
    """
    One ranked provider with the evidence behind its score.

    Attributes:
        profile: Provider profile (user preloaded)
        total: Rounded total score out of 100
        breakdown: Component name to ScoreComponent
        estimated_cost: Hourly rate x duration x urgency multiplier
        estimated_response_time: Response band for the request's urgency
    """

    profile: ProviderProfile
    total: int
    breakdown: dict[str, ScoreComponent]
    estimated_cost: dict[str, Any]
    estimated_response_time: str

    @property
    def provider_id(self) -> int:
        return self.profile.user_id

    @property
    def availability(self) -> int:
        return int(self.breakdown["availability"].score)

    @property
    def reputation(self) -> float:
        return self.breakdown["reputation"].score

    def to_dict(self) -> dict[str, Any]:
        profile = self.profile
        return {
            "provider_id": self.provider_id,
            "name": profile.display_name,
            "business_name": profile.business_name,
            "rating": float(profile.rating) if profile.rating is not None else None,
            "review_count": profile.review_count,
            "completed_jobs": profile.completed_jobs,
            "service_areas": profile.service_areas,
            "hourly_rate": profile.hourly_rate,
            "match_score": self.total,
            "score_breakdown": {
                name: component.to_dict() for name, component in self.breakdown.items()
            },
            "estimated_cost": self.estimated_cost,
            "estimated_response_time": self.estimated_response_time,
        }


class ProviderMatcher(BaseService):
    """
    Ranks approved providers for a service request.

    Methods:
        rank: Score every candidate, best first (no availability filter)
        find_matches: Ranked providers that meet the availability threshold
    """

    @classmethod
    def _validate(cls, request: MatchRequest) -> None:
        if not request.category:
            raise ValidationError("Category is required", details={"field": "category"})
        if request.urgency not in Urgency.values:
            raise ValidationError(
                f"Unknown urgency: {request.urgency}",
                details={"urgency": request.urgency},
            )
        if request.budget is not None and request.budget.min > request.budget.max:
            raise ValidationError(
                "Budget minimum cannot exceed maximum",
                details={"min": request.budget.min, "max": request.budget.max},
            )

    @classmethod
    def _recent_load(cls, provider_ids: list[int], now) -> dict[int, int]:
        rows = (
            Booking.objects.filter(
                provider_id__in=provider_ids,
                created_at__gte=now - RECENT_LOAD_WINDOW,
            )
            .values("provider_id")
            .annotate(count=Count("id"))
        )
        return {row["provider_id"]: row["count"] for row in rows}

    @classmethod
    def _recent_outcomes(cls, provider_ids: list[int], now) -> dict[int, list[bool]]:
        """Completion flags of each provider's last finished bookings, newest first."""
        rows = (
            Booking.objects.filter(
                provider_id__in=provider_ids,
                status__in=[BookingStatus.COMPLETED, BookingStatus.CANCELLED],
                created_at__gte=now - PERFORMANCE_WINDOW,
            )
            .order_by("-created_at")
            .values_list("provider_id", "status")
        )
        outcomes: dict[int, list[bool]] = defaultdict(list)
        for provider_id, status in rows:
            if len(outcomes[provider_id]) < PERFORMANCE_SAMPLE_SIZE:
                outcomes[provider_id].append(status == BookingStatus.COMPLETED)
        return outcomes

    @classmethod
    def _score(
        cls,
        candidate: ProviderCandidate,
        request: MatchRequest,
        recent_load: int,
        outcomes: list[bool],
    ) -> ProviderMatch:
        profile = candidate.profile
        breakdown = {
            "service_match": score_service_match(candidate),
            "reputation": score_reputation(profile),
            "experience": score_experience(profile),
            "location": score_location(
                profile, request.area, settings.MATCHING_CITY_WIDE_AREAS
            ),
            "availability": score_availability(
                profile,
                recent_load,
                request.urgency,
                request.scheduled_date,
                request.start_time,
            ),
            "pricing": score_pricing(profile, request.budget),
            "recent_performance": score_recent_performance(outcomes),
        }
        total = min(round(sum(component.score for component in breakdown.values())), 100)
        return ProviderMatch(
            profile=profile,
            total=total,
            breakdown=breakdown,
            estimated_cost=estimate_cost(profile, request.duration_hours, request.urgency),
            estimated_response_time=breakdown["availability"].details[
                "estimated_response_time"
            ],
        )

    @classmethod
    def rank(cls, request: MatchRequest) -> list[ProviderMatch]:
        """
        Score every eligible candidate.

        Returns:
            Matches sorted by total desc, then reputation desc, then
            provider id; one entry per provider.
        """
        cls._validate(request)

        candidates = ProviderDirectory.find_candidates(
            category=request.category,
            keywords=category_keywords(request.category),
            area=request.area,
            nearby_areas=adjacent_areas(request.area),
        )

        unique: dict[int, ProviderCandidate] = {}
        for candidate in candidates:
            if candidate.provider_id in request.exclude_provider_ids:
                continue
            unique.setdefault(candidate.provider_id, candidate)
        if not unique:
            return []

        now = timezone.now()
        provider_ids = list(unique)
        load = cls._recent_load(provider_ids, now)
        outcomes = cls._recent_outcomes(provider_ids, now)

        matches = [
            cls._score(
                candidate,
                request,
                load.get(provider_id, 0),
                outcomes.get(provider_id, []),
            )
            for provider_id, candidate in unique.items()
        ]
        matches.sort(key=lambda match: (-match.total, -match.reputation, match.provider_id))
        return matches

    @classmethod
    def find_matches(cls, request: MatchRequest, limit: int | None = None) -> list[ProviderMatch]:
        """
        Top providers for the request.

        Providers below the minimum availability for the request's urgency
        are dropped before the list is cut to ``limit``.
        """
        limit = limit or settings.MATCHING_DEFAULT_LIMIT
        threshold = MIN_AVAILABILITY.get(request.urgency, MIN_AVAILABILITY[Urgency.NORMAL])

        ranked = cls.rank(request)
        matches = [match for match in ranked if match.availability >= threshold][:limit]

        cls.get_logger().info(
            "Provider matching finished",
            extra={
                "category": request.category,
                "area": request.area,
                "urgency": request.urgency,
                "candidates": len(ranked),
                "matches": len(matches),
            },
        )
        return matches
