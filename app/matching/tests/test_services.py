"""
Tests for ProviderMatcher.

Tests cover:
- Ranking of a strong direct-service provider over a weak skill-only one
- Availability threshold by urgency
- Tie-breaking, de-duplication, exclusion and limits
- Booking history feeding load and recent performance
"""

from datetime import date, time
from decimal import Decimal

import pytest

from bookings.state_machines import Urgency
from bookings.tests.factories import (
    BookingFactory,
    CancelledBookingFactory,
    CompletedBookingFactory,
)
from core.exceptions import ValidationError
from matching.scoring import Budget
from matching.services import MatchRequest, ProviderMatcher
from providers.models import ProviderStatus
from providers.tests.factories import ProviderProfileFactory, ProviderServiceFactory

MONDAY = date(2024, 10, 21)


def plumbing_request(**kwargs):
    defaults = {
        "category": "plumbing",
        "area": "Westlands",
        "scheduled_date": MONDAY,
        "start_time": time(10, 0),
        "urgency": Urgency.NORMAL,
    }
    defaults.update(kwargs)
    return MatchRequest(**defaults)


@pytest.fixture
def strong_provider(db):
    """Direct plumbing service, 4.8 stars, 50 jobs, serves Westlands."""
    profile = ProviderProfileFactory(
        rating=Decimal("4.80"),
        review_count=40,
        completed_jobs=50,
        experience="8 years",
        service_areas=["Westlands"],
        emergency_service=True,
    )
    ProviderServiceFactory(provider=profile.user, category="plumbing")
    return profile


@pytest.fixture
def weak_provider(db):
    """Skill-only, 4.0 stars, 5 jobs, all areas, no emergency call-outs."""
    return ProviderProfileFactory(
        rating=Decimal("4.00"),
        review_count=5,
        completed_jobs=5,
        experience="",
        service_areas=["All Areas"],
        skills=["Plumbing repairs"],
        emergency_service=False,
    )


class TestRanking:
    """Tests for ProviderMatcher.rank()."""

    def test_strong_provider_ranks_strictly_above_weak(self, strong_provider, weak_provider):
        """Emergency plumbing in Westlands prefers the direct-service expert."""
        ranked = ProviderMatcher.rank(plumbing_request(urgency=Urgency.EMERGENCY))

        assert [match.provider_id for match in ranked] == [
            strong_provider.user_id,
            weak_provider.user_id,
        ]
        assert ranked[0].total > ranked[1].total
        assert ranked[0].total == 95
        assert ranked[1].total == 62

    def test_breakdown_carries_reasons(self, strong_provider):
        match = ProviderMatcher.rank(plumbing_request())[0]

        assert match.breakdown["service_match"].reason == "Direct service available"
        assert match.breakdown["location"].score == 15
        payload = match.to_dict()
        assert payload["match_score"] == match.total
        assert set(payload["score_breakdown"]) == {
            "service_match",
            "reputation",
            "experience",
            "location",
            "availability",
            "pricing",
            "recent_performance",
        }

    def test_equal_totals_break_ties_by_reputation(self, db):
        """Same total, higher reputation first."""
        low = ProviderProfileFactory(
            rating=Decimal("4.00"), review_count=0, skills=["plumber"], hourly_rate=1500
        )
        high = ProviderProfileFactory(
            rating=Decimal("5.00"), review_count=0, skills=["plumber"], hourly_rate=800
        )

        ranked = ProviderMatcher.rank(plumbing_request(budget=Budget(min=1000, max=2000)))

        # high: reputation 15 + pricing 7; low: reputation 12 + pricing 10
        assert ranked[0].total == ranked[1].total == 80
        assert ranked[0].provider_id == high.user_id
        assert ranked[1].provider_id == low.user_id

    def test_unapproved_and_unrelated_providers_excluded(self, strong_provider):
        ProviderProfileFactory(status=ProviderStatus.SUSPENDED, skills=["plumber"])
        ProviderProfileFactory(skills=["Tiling"])

        ranked = ProviderMatcher.rank(plumbing_request())

        assert [match.provider_id for match in ranked] == [strong_provider.user_id]

    def test_excluded_provider_ids_are_skipped(self, strong_provider, weak_provider):
        ranked = ProviderMatcher.rank(
            plumbing_request(exclude_provider_ids={strong_provider.user_id})
        )
        assert [match.provider_id for match in ranked] == [weak_provider.user_id]

    def test_no_candidates(self, db):
        assert ProviderMatcher.rank(plumbing_request()) == []

    def test_invalid_budget_rejected(self, db):
        with pytest.raises(ValidationError):
            ProviderMatcher.rank(plumbing_request(budget=Budget(min=3000, max=1000)))

    def test_unknown_urgency_rejected(self, db):
        with pytest.raises(ValidationError):
            ProviderMatcher.rank(plumbing_request(urgency="whenever"))


class TestFindMatches:
    """Tests for ProviderMatcher.find_matches()."""

    def test_emergency_filters_out_providers_without_call_outs(
        self, strong_provider, weak_provider
    ):
        matches = ProviderMatcher.find_matches(plumbing_request(urgency=Urgency.EMERGENCY))

        assert [match.provider_id for match in matches] == [strong_provider.user_id]

    def test_normal_urgency_keeps_both(self, strong_provider, weak_provider):
        matches = ProviderMatcher.find_matches(plumbing_request())
        assert len(matches) == 2

    def test_limit(self, strong_provider, weak_provider):
        matches = ProviderMatcher.find_matches(plumbing_request(), limit=1)
        assert [match.provider_id for match in matches] == [strong_provider.user_id]

    def test_cost_estimate_included(self, strong_provider):
        match = ProviderMatcher.find_matches(
            plumbing_request(urgency=Urgency.URGENT, duration_hours=Decimal("3"))
        )[0]
        assert match.estimated_cost["estimated_total"] == 5850


class TestBookingHistory:
    """Recent bookings feed the load and performance components."""

    def test_high_recent_load_lowers_availability(self, strong_provider):
        BookingFactory.create_batch(6, provider=strong_provider.user)

        match = ProviderMatcher.rank(plumbing_request())[0]

        assert match.availability == 7

    def test_recent_completion_rate(self, strong_provider):
        CompletedBookingFactory.create_batch(9, provider=strong_provider.user)
        CancelledBookingFactory(provider=strong_provider.user)

        match = ProviderMatcher.rank(plumbing_request())[0]

        assert match.breakdown["recent_performance"].score == 5
        assert match.breakdown["recent_performance"].details["completion_rate"] == 0.9
