"""
Django admin configuration for the provider directory.
"""

from django.contrib import admin

from providers.models import ProviderProfile, ProviderService


class ProviderServiceInline(admin.TabularInline):
    model = ProviderService
    fk_name = "provider"
    extra = 0


@admin.register(ProviderProfile)
class ProviderProfileAdmin(admin.ModelAdmin):
    """Approve providers and inspect their payout destination."""

    list_display = (
        "user",
        "business_name",
        "status",
        "rating",
        "completed_jobs",
        "payout_method",
        "total_earnings_cents",
    )
    list_filter = ("status", "payout_method", "emergency_service")
    search_fields = ("user__email", "business_name")
    readonly_fields = ("total_earnings_cents", "paystack_recipient_code", "created_at")
    actions = ["approve_providers"]

    @admin.action(description="Approve selected providers")
    def approve_providers(self, request, queryset):
        updated = queryset.update(status="approved")
        self.message_user(request, f"{updated} provider(s) approved.")


@admin.register(ProviderService)
class ProviderServiceAdmin(admin.ModelAdmin):
    list_display = ("title", "category", "provider", "is_active")
    list_filter = ("category", "is_active")
    search_fields = ("title", "provider__email")
