"""
Tests for the provider directory.

Tests cover:
- Candidate lookup by listed service and by skill keywords
- Area coverage (exact, city-wide, adjacent, unrestricted)
- Approval and account status filtering
- Earnings and job counters
"""

import pytest

from core.exceptions import NotFoundError
from providers.models import ProviderProfile, ProviderStatus
from providers.services import ProviderDirectory, skills_match
from providers.tests.factories import (
    BankProviderProfileFactory,
    ProviderProfileFactory,
    ProviderServiceFactory,
)


PLUMBING_KEYWORDS = ["plumber", "plumbing", "pipes", "water", "drainage"]


def candidate_ids(candidates):
    return {candidate.provider_id for candidate in candidates}


class TestSkillsMatch:
    """Tests for the keyword/skill matcher."""

    def test_substring_match_is_case_insensitive(self):
        assert skills_match(["Pipe fitting", "Water heaters"], ["water"])

    def test_no_overlap(self):
        assert not skills_match(["Tiling"], PLUMBING_KEYWORDS)

    def test_empty_skills(self):
        assert not skills_match([], PLUMBING_KEYWORDS)
        assert not skills_match(None, PLUMBING_KEYWORDS)


@pytest.mark.django_db
class TestFindCandidates:
    """Tests for ProviderDirectory.find_candidates."""

    def test_direct_service_provider_is_candidate(self):
        profile = ProviderProfileFactory(service_areas=["Westlands"])
        ProviderServiceFactory(provider=profile.user, category="plumbing")

        candidates = ProviderDirectory.find_candidates(
            category="plumbing", keywords=PLUMBING_KEYWORDS, area="Westlands"
        )

        assert len(candidates) == 1
        assert candidates[0].has_direct_service is True
        assert candidates[0].has_matching_skills is False

    def test_skill_match_is_candidate(self):
        profile = ProviderProfileFactory(skills=["Drainage unblocking"])

        candidates = ProviderDirectory.find_candidates(
            category="plumbing", keywords=PLUMBING_KEYWORDS, area="Westlands"
        )

        assert candidate_ids(candidates) == {profile.user_id}
        assert candidates[0].has_matching_skills is True

    def test_inactive_service_is_ignored(self):
        profile = ProviderProfileFactory()
        ProviderServiceFactory(provider=profile.user, category="plumbing", is_active=False)

        assert ProviderDirectory.find_candidates("plumbing", PLUMBING_KEYWORDS) == []

    def test_other_category_is_excluded(self):
        profile = ProviderProfileFactory(skills=["Wiring"])
        ProviderServiceFactory(provider=profile.user, category="electrical")

        assert ProviderDirectory.find_candidates("plumbing", PLUMBING_KEYWORDS) == []

    def test_unapproved_providers_are_excluded(self):
        pending = ProviderProfileFactory(status=ProviderStatus.PENDING)
        suspended = ProviderProfileFactory(status=ProviderStatus.SUSPENDED)
        inactive = ProviderProfileFactory()
        inactive.user.is_active = False
        inactive.user.save()
        for profile in (pending, suspended, inactive):
            ProviderServiceFactory(provider=profile.user, category="plumbing")

        assert ProviderDirectory.find_candidates("plumbing", PLUMBING_KEYWORDS) == []

    def test_area_coverage(self):
        """Exact, city-wide, adjacent and unrestricted providers cover the area."""
        exact = ProviderProfileFactory(service_areas=["Westlands"])
        city_wide = ProviderProfileFactory(service_areas=["All Areas"])
        adjacent = ProviderProfileFactory(service_areas=["Parklands"])
        unrestricted = ProviderProfileFactory(service_areas=[])
        far_away = ProviderProfileFactory(service_areas=["Karen"])
        for profile in (exact, city_wide, adjacent, unrestricted, far_away):
            ProviderServiceFactory(provider=profile.user, category="plumbing")

        candidates = ProviderDirectory.find_candidates(
            category="plumbing",
            keywords=PLUMBING_KEYWORDS,
            area="Westlands",
            nearby_areas=["Kileleshwa", "Parklands"],
        )

        assert candidate_ids(candidates) == {
            exact.user_id,
            city_wide.user_id,
            adjacent.user_id,
            unrestricted.user_id,
        }

    def test_no_area_requested_matches_everywhere(self):
        profile = ProviderProfileFactory(service_areas=["Karen"])
        ProviderServiceFactory(provider=profile.user, category="plumbing")

        candidates = ProviderDirectory.find_candidates("plumbing", PLUMBING_KEYWORDS)

        assert candidate_ids(candidates) == {profile.user_id}


@pytest.mark.django_db
class TestCounters:
    """Tests for the counters other flows update."""

    def test_record_earnings_accumulates(self):
        profile = ProviderProfileFactory()

        ProviderDirectory.record_earnings(profile.user_id, 210000)
        ProviderDirectory.record_earnings(profile.user_id, 1000)

        profile.refresh_from_db()
        assert profile.total_earnings_cents == 211000

    def test_record_completed_job(self):
        profile = ProviderProfileFactory(completed_jobs=3)

        ProviderDirectory.record_completed_job(profile.user_id)

        profile.refresh_from_db()
        assert profile.completed_jobs == 4

    def test_save_recipient_code(self):
        profile = ProviderProfileFactory()

        ProviderDirectory.save_recipient_code(profile.user_id, "RCP_abc123")

        profile.refresh_from_db()
        assert profile.paystack_recipient_code == "RCP_abc123"

    def test_get_profile_missing_raises(self):
        with pytest.raises(NotFoundError) as exc_info:
            ProviderDirectory.get_profile(999999)

        assert exc_info.value.error_code == "PROVIDER_NOT_FOUND"


@pytest.mark.django_db
class TestProviderProfile:
    """Tests for ProviderProfile helpers."""

    @pytest.mark.parametrize(
        "experience,expected",
        [("8 years fixing pipes", 8), ("1 year", 1), ("Since 2015", 1), ("", 1)],
    )
    def test_experience_years(self, experience, expected):
        profile = ProviderProfile(experience=experience)

        assert profile.experience_years == expected

    def test_mobile_money_destination(self):
        assert ProviderProfileFactory().has_payout_destination is True
        assert ProviderProfileFactory(mobile_money_number="").has_payout_destination is False

    def test_bank_destination(self):
        assert BankProviderProfileFactory().has_payout_destination is True
        assert BankProviderProfileFactory(bank_code="").has_payout_destination is False

    def test_recipient_code_is_enough(self):
        profile = BankProviderProfileFactory(
            bank_account_number="", paystack_recipient_code="RCP_x"
        )

        assert profile.has_payout_destination is True
