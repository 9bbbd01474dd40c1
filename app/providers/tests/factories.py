"""
Factory Boy factories for the provider directory.

Usage:
    from providers.tests.factories import ProviderProfileFactory, ProviderServiceFactory

    profile = ProviderProfileFactory(service_areas=["Westlands"])
    ProviderServiceFactory(provider=profile.user, category="plumbing")
"""

from decimal import Decimal

import factory

from authentication.tests.factories import ProviderUserFactory
from providers.models import (
    PayoutDestinationType,
    ProviderProfile,
    ProviderService,
    ProviderStatus,
)


class ProviderProfileFactory(factory.django.DjangoModelFactory):
    """
    Approved provider with an M-Pesa payout destination.

    Examples:
        ProviderProfileFactory(status=ProviderStatus.PENDING)
        ProviderProfileFactory(mobile_money_number="")  # no payout destination
    """

    class Meta:
        model = ProviderProfile
        skip_postgeneration_save = True

    user = factory.SubFactory(ProviderUserFactory)
    business_name = factory.Faker("company")
    status = ProviderStatus.APPROVED
    rating = Decimal("4.50")
    review_count = 10
    completed_jobs = 10
    experience = "5 years"
    service_areas = factory.LazyFunction(lambda: ["Westlands"])
    skills = factory.LazyFunction(list)
    hourly_rate = 1500
    emergency_service = True
    payout_method = PayoutDestinationType.MOBILE_MONEY
    mobile_money_number = factory.Sequence(lambda n: f"2547{n:08d}")


class BankProviderProfileFactory(ProviderProfileFactory):
    """Provider paid by bank transfer."""

    payout_method = PayoutDestinationType.BANK
    mobile_money_number = ""
    bank_account_number = "0123456789"
    bank_code = "01"
    bank_account_name = factory.Faker("name")


class ProviderServiceFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ProviderService

    provider = factory.SubFactory(ProviderUserFactory)
    category = "plumbing"
    title = factory.Faker("sentence", nb_words=3)
    base_price = 2000
    is_active = True
