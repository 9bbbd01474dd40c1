"""
Weighted scoring of a provider against a service request.

Each component returns a ScoreComponent with its points and a
human-readable reason; the matcher adds them up into a 0-100 total.

Components and their ranges:
    service_match       0-25
    reputation          0-20
    experience          0-15
    location            0-15
    availability        1-10
    pricing             2-10
    recent_performance  1-5
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from bookings.state_machines import Urgency

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from providers.models import ProviderProfile
    from providers.services import ProviderCandidate


CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "plumbing": ["plumber", "plumbing", "pipes", "water", "drainage"],
    "electrical": ["electrician", "electrical", "wiring", "power", "lighting"],
    "cleaning": ["cleaner", "cleaning", "housekeeping", "sanitation"],
    "carpentry": ["carpenter", "carpentry", "woodwork", "furniture"],
    "painting": ["painter", "painting", "decoration", "wall"],
    "gardening": ["gardener", "gardening", "landscaping", "plants"],
    "moving": ["mover", "moving", "relocation", "transport"],
    "fumigation": ["fumigation", "pest control", "exterminator"],
    "appliance-repair": ["appliance", "repair", "technician", "maintenance"],
}

ADJACENT_AREAS: dict[str, list[str]] = {
    "Lavington": ["Kileleshwa", "Westlands"],
    "Kileleshwa": ["Lavington", "Kilimani", "Westlands"],
    "Westlands": ["Kileleshwa", "Parklands"],
    "Kilimani": ["Kileleshwa", "Nyayo"],
    "Parklands": ["Westlands", "Nyayo"],
    "Nyayo": ["Kilimani", "Parklands"],
}

DEFAULT_RATING = Decimal("4.0")
DEFAULT_HOURLY_RATE = 1500

HIGH_LOAD_BOOKINGS = 5
STANDARD_HOURS = (8, 18)

# Minimum availability score a provider needs for the request's urgency
MIN_AVAILABILITY = {
    Urgency.EMERGENCY: 7,
    Urgency.URGENT: 5,
    Urgency.NORMAL: 3,
}

URGENCY_MULTIPLIERS = {
    Urgency.NORMAL: Decimal("1.0"),
    Urgency.URGENT: Decimal("1.3"),
    Urgency.EMERGENCY: Decimal("1.8"),
}


def category_keywords(category: str) -> list[str]:
    return CATEGORY_KEYWORDS.get(category, [category])


def adjacent_areas(area: str | None) -> list[str]:
    return ADJACENT_AREAS.get(area or "", [])


@dataclass(frozen=True)
class Budget:
    """Acceptable hourly rate range in major currency units."""

    min: int
    max: int


@dataclass
class ScoreComponent:
    score: float
    reason: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"score": round(self.score), "reason": self.reason, **self.details}


def score_service_match(candidate: ProviderCandidate) -> ScoreComponent:
    if candidate.has_direct_service:
        return ScoreComponent(25, "Direct service available")
    if candidate.has_matching_skills:
        return ScoreComponent(15, "Matching skills found")
    return ScoreComponent(5, "General category match")


def score_reputation(profile: ProviderProfile) -> ScoreComponent:
    """Rating out of 5 worth 15 points plus up to 5 points for 20+ reviews."""
    rating = profile.rating if profile.rating is not None else DEFAULT_RATING
    reviews = profile.review_count or 0
    score = float(rating) / 5.0 * 15 + min(reviews / 20, 1) * 5
    return ScoreComponent(
        score,
        f"{rating}/5 stars with {reviews} reviews",
        {"rating": float(rating), "review_count": reviews},
    )


def score_experience(profile: ProviderProfile) -> ScoreComponent:
    jobs = profile.completed_jobs or 0
    years = profile.experience_years
    score = min(jobs / 10, 1) * 10 + min(years / 5, 1) * 5
    return ScoreComponent(
        score,
        f"{jobs} jobs, {years} years experience",
        {"completed_jobs": jobs, "experience_years": years},
    )


def score_location(
    profile: ProviderProfile,
    area: str | None,
    city_wide_areas: Iterable[str],
) -> ScoreComponent:
    areas = list(profile.service_areas or [])
    if area and area in areas:
        return ScoreComponent(15, f"Serves {area} directly")
    if set(areas) & set(city_wide_areas):
        return ScoreComponent(12, "Covers all areas in the city")
    if set(areas) & set(adjacent_areas(area)):
        return ScoreComponent(8, "Covers nearby areas")
    if not areas:
        return ScoreComponent(5, "No area restrictions")
    return ScoreComponent(2, "Outside primary service area")


def estimated_response_time(urgency: str, availability: int) -> str:
    if urgency == Urgency.EMERGENCY:
        return "30-60 minutes" if availability >= 8 else "1-2 hours"
    if urgency == Urgency.URGENT:
        return "1-3 hours" if availability >= 7 else "3-6 hours"
    return "2-6 hours" if availability >= 6 else "6-24 hours"


def score_availability(
    profile: ProviderProfile,
    recent_bookings: int,
    urgency: str,
    scheduled_date: date,
    start_time: time,
) -> ScoreComponent:
    """
    Coarse availability: starts at 10 and loses points for load, missing
    emergency capability, off-hours and weekends. Never below 1.
    """
    score = 10
    reasons = []

    if recent_bookings > HIGH_LOAD_BOOKINGS:
        score -= 3
        reasons.append("High recent booking load")

    if urgency == Urgency.EMERGENCY and not profile.emergency_service:
        score -= 5
        reasons.append("Limited emergency availability")

    if start_time.hour < STANDARD_HOURS[0] or start_time.hour > STANDARD_HOURS[1]:
        score -= 2
        reasons.append("Outside standard hours")

    if scheduled_date.weekday() >= 5:
        score -= 1
        reasons.append("Weekend service")

    return ScoreComponent(
        max(score, 1),
        "; ".join(reasons) or "Fully available",
        {
            "reasons": reasons,
            "estimated_response_time": estimated_response_time(urgency, score),
        },
    )


def score_pricing(profile: ProviderProfile, budget: Budget | None) -> ScoreComponent:
    if budget is None:
        return ScoreComponent(8, "No budget specified")

    rate = profile.hourly_rate or DEFAULT_HOURLY_RATE
    if budget.min <= rate <= budget.max:
        return ScoreComponent(10, "Within budget range", {"rate": rate})
    if rate < budget.min:
        return ScoreComponent(7, "Below budget (potential quality concern)", {"rate": rate})

    over_percent = (rate - budget.max) / budget.max * 100 if budget.max else 100
    if over_percent <= 20:
        return ScoreComponent(5, "Slightly over budget", {"rate": rate})
    return ScoreComponent(2, "Significantly over budget", {"rate": rate})


def score_recent_performance(outcomes: Sequence[bool]) -> ScoreComponent:
    """
    Args:
        outcomes: One flag per recent completed (True) or cancelled (False)
            booking, newest first
    """
    if not outcomes:
        return ScoreComponent(3, "No recent booking history")

    rate = sum(outcomes) / len(outcomes)
    details = {"completion_rate": round(rate, 2)}
    if rate >= 0.9:
        return ScoreComponent(5, "Excellent recent performance", details)
    if rate >= 0.7:
        return ScoreComponent(4, "Good recent performance", details)
    if rate >= 0.5:
        return ScoreComponent(2, "Average recent performance", details)
    return ScoreComponent(1, "Poor recent performance", details)


def estimate_cost(
    profile: ProviderProfile,
    duration_hours: Decimal,
    urgency: str,
) -> dict[str, Any]:
    base_rate = profile.hourly_rate or DEFAULT_HOURLY_RATE
    multiplier = URGENCY_MULTIPLIERS.get(urgency, Decimal("1.0"))
    total = Decimal(base_rate) * Decimal(duration_hours) * multiplier
    return {
        "base_rate": base_rate,
        "duration_hours": float(duration_hours),
        "urgency_multiplier": float(multiplier),
        "estimated_total": int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
        "currency": "KES",
    }
