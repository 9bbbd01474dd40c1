"""
Provider directory models.

ProviderProfile holds everything the matcher scores on (rating, jobs,
coverage, skills, rate, emergency capability) and everything the payout
engine needs to pay the provider (bank account or mobile money number).

ProviderService is a service a provider explicitly lists under a category;
a listed service is the strongest signal in matching.

Usage:
    from providers.models import ProviderProfile, ProviderStatus

    profile = ProviderProfile.objects.approved().get(user=provider)
    if not profile.has_payout_destination:
        ...
"""

from __future__ import annotations

import re

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class ProviderStatus(models.TextChoices):
    """Approval status of a provider in the directory."""

    PENDING = "pending", "Pending Approval"
    APPROVED = "approved", "Approved"
    SUSPENDED = "suspended", "Suspended"


class PayoutDestinationType(models.TextChoices):
    """Where a provider's payouts are sent."""

    BANK = "bank", "Bank Account"
    MOBILE_MONEY = "mobile_money", "Mobile Money (M-Pesa)"


EXPERIENCE_YEARS_PATTERN = re.compile(r"(\d+)\s*years?", re.IGNORECASE)


class ProviderProfileQuerySet(models.QuerySet):
    def approved(self):
        return self.filter(status=ProviderStatus.APPROVED, user__is_active=True)


class ProviderProfile(UUIDPrimaryKeyMixin, BaseModel):
    """
    Public and financial profile of a service provider.

    Fields:
        user: Provider account (user_type=provider)
        business_name: Trading name shown to clients
        status: Directory approval status; only approved providers are matched
        rating: Average review rating out of 5 (null until first review)
        review_count: Number of reviews received
        completed_jobs: Number of bookings completed on the platform
        experience: Free-text experience summary ("8 years fixing pipes")
        service_areas: Areas served; empty means no restriction
        skills: Declared skills used for keyword matching
        hourly_rate: Rate in major currency units (KES)
        emergency_service: Whether the provider takes emergency call-outs
        payout_method: Bank transfer or mobile money
        bank_account_number / bank_code / bank_account_name: Bank destination
        mobile_money_number: M-Pesa destination
        paystack_recipient_code: Cached transfer recipient at the gateway
        total_earnings_cents: Cumulative paid-out earnings
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="provider_profile",
    )
    business_name = models.CharField(max_length=200, blank=True, default="")
    bio = models.TextField(blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=ProviderStatus.choices,
        default=ProviderStatus.PENDING,
        db_index=True,
    )

    # ==========================================================================
    # Reputation & Experience
    # ==========================================================================

    rating = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Average rating out of 5",
    )
    review_count = models.PositiveIntegerField(default=0)
    completed_jobs = models.PositiveIntegerField(default=0)
    experience = models.CharField(max_length=255, blank=True, default="")

    # ==========================================================================
    # Coverage & Pricing
    # ==========================================================================

    service_areas = models.JSONField(
        default=list,
        blank=True,
        help_text="Area names served, e.g. ['Westlands', 'Parklands'] or ['All Areas']",
    )
    skills = models.JSONField(default=list, blank=True)
    hourly_rate = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Hourly rate in major currency units",
    )
    emergency_service = models.BooleanField(
        default=True,
        help_text="Accepts emergency call-outs",
    )

    # ==========================================================================
    # Payout Destination
    # ==========================================================================

    payout_method = models.CharField(
        max_length=20,
        choices=PayoutDestinationType.choices,
        default=PayoutDestinationType.MOBILE_MONEY,
    )
    bank_account_number = models.CharField(max_length=34, blank=True, default="")
    bank_code = models.CharField(max_length=20, blank=True, default="")
    bank_account_name = models.CharField(max_length=200, blank=True, default="")
    mobile_money_number = models.CharField(max_length=20, blank=True, default="")
    paystack_recipient_code = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Transfer recipient code (RCP_xxx) created at the gateway",
    )

    total_earnings_cents = models.PositiveBigIntegerField(
        default=0,
        help_text="Cumulative paid-out earnings in minor units",
    )

    objects = ProviderProfileQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Provider Profile"
        verbose_name_plural = "Provider Profiles"

    def __str__(self) -> str:
        return f"ProviderProfile({self.display_name}, {self.status})"

    @property
    def display_name(self) -> str:
        return self.business_name or self.user.get_full_name()

    @property
    def experience_years(self) -> int:
        """Years of experience parsed from the free text; 1 when not stated."""
        match = EXPERIENCE_YEARS_PATTERN.search(self.experience or "")
        return int(match.group(1)) if match else 1

    @property
    def has_payout_destination(self) -> bool:
        """Whether a transfer can be addressed for the configured method."""
        if self.payout_method == PayoutDestinationType.BANK:
            return bool(
                self.paystack_recipient_code
                or (self.bank_account_number and self.bank_code)
            )
        return bool(self.paystack_recipient_code or self.mobile_money_number)


class ProviderService(UUIDPrimaryKeyMixin, BaseModel):
    """
    A service explicitly listed by a provider under a category.

    Fields:
        provider: Provider user offering the service
        category: Category slug (plumbing, electrical, cleaning, ...)
        title: Listing title
        base_price: Indicative price in major currency units
        is_active: Inactive listings are ignored by matching
    """

    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="provider_services",
    )
    category = models.CharField(max_length=50, db_index=True)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    base_price = models.PositiveIntegerField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["category", "is_active"], name="provider_service_cat_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.title} ({self.category})"
