"""
Providers application.

The provider directory: service provider profiles (reputation, coverage,
rates, payout destination) and the services each provider lists.

Usage:
    from providers.models import ProviderProfile, ProviderService
    from providers.services import ProviderDirectory
"""
