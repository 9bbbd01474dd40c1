"""
Provider directory service.

Answers "who could do this job" for the matcher and keeps the provider
counters that other flows update (completed jobs, paid-out earnings,
cached gateway recipient).

Usage:
    from providers.services import ProviderDirectory

    candidates = ProviderDirectory.find_candidates(
        category="plumbing",
        keywords=["plumber", "pipes"],
        area="Westlands",
        nearby_areas=["Kileleshwa", "Parklands"],
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings
from django.db.models import F

from core.exceptions import NotFoundError
from core.services import BaseService

from providers.models import ProviderProfile, ProviderService

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass
class ProviderCandidate:
    """
    A provider eligible for a request, with the category evidence found.

    Attributes:
        profile: The provider's profile (user preloaded)
        has_direct_service: Lists an active service in the category
        has_matching_skills: A declared skill contains a category keyword
    """

    profile: ProviderProfile
    has_direct_service: bool
    has_matching_skills: bool

    @property
    def provider_id(self) -> int:
        return self.profile.user_id


def skills_match(skills: Iterable[str], keywords: Iterable[str]) -> bool:
    """Case-insensitive substring match of any keyword in any skill."""
    lowered = [keyword.lower() for keyword in keywords]
    return any(
        keyword in str(skill).lower() for skill in skills or [] for keyword in lowered
    )


class ProviderDirectory(BaseService):
    """Queries and counters over approved providers."""

    @classmethod
    def get_profile(cls, provider_id: int) -> ProviderProfile:
        try:
            return ProviderProfile.objects.select_related("user").get(user_id=provider_id)
        except ProviderProfile.DoesNotExist:
            raise NotFoundError(
                f"Provider {provider_id} not found",
                error_code="PROVIDER_NOT_FOUND",
                details={"provider_id": provider_id},
            )

    @classmethod
    def find_candidates(
        cls,
        category: str,
        keywords: Iterable[str],
        area: str | None = None,
        nearby_areas: Iterable[str] = (),
    ) -> list[ProviderCandidate]:
        """
        Approved providers who cover the category and the requested area.

        Category coverage is an active listed service in the category or a
        skill matching one of its keywords. Area coverage is the exact area,
        a city-wide entry, an adjacent area, or no area restriction at all.

        Returns:
            Candidates in no particular order; ranking is the matcher's job.
        """
        keywords = list(keywords)
        nearby = set(nearby_areas)
        city_wide = set(settings.MATCHING_CITY_WIDE_AREAS)

        direct_service_ids = set(
            ProviderService.objects.filter(category=category, is_active=True)
            .values_list("provider_id", flat=True)
            .distinct()
        )

        candidates: list[ProviderCandidate] = []
        for profile in ProviderProfile.objects.approved().select_related("user"):
            areas = set(profile.service_areas or [])
            covers_area = (
                not area
                or not areas
                or area in areas
                or bool(areas & city_wide)
                or bool(areas & nearby)
            )
            if not covers_area:
                continue

            has_direct_service = profile.user_id in direct_service_ids
            has_matching_skills = skills_match(profile.skills, keywords)
            if has_direct_service or has_matching_skills:
                candidates.append(
                    ProviderCandidate(
                        profile=profile,
                        has_direct_service=has_direct_service,
                        has_matching_skills=has_matching_skills,
                    )
                )

        cls.get_logger().debug(
            "Provider candidates found",
            extra={"category": category, "area": area, "count": len(candidates)},
        )
        return candidates

    @classmethod
    def record_earnings(cls, provider_id: int, amount_cents: int) -> None:
        """Atomically add a completed payout to the provider's earnings."""
        ProviderProfile.objects.filter(user_id=provider_id).update(
            total_earnings_cents=F("total_earnings_cents") + amount_cents
        )

    @classmethod
    def record_completed_job(cls, provider_id: int) -> None:
        ProviderProfile.objects.filter(user_id=provider_id).update(
            completed_jobs=F("completed_jobs") + 1
        )

    @classmethod
    def save_recipient_code(cls, provider_id: int, recipient_code: str) -> None:
        """Cache the gateway recipient so later payouts skip recipient creation."""
        ProviderProfile.objects.filter(user_id=provider_id).update(
            paystack_recipient_code=recipient_code
        )
