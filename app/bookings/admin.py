"""
Django admin configuration for bookings.

Status is a protected FSM field and the timeline is append-only, so both are
read-only here; state changes go through BookingService.
"""

from django.contrib import admin

from bookings.models import Booking, BookingTimelineEntry


class BookingTimelineEntryInline(admin.TabularInline):
    model = BookingTimelineEntry
    extra = 0
    can_delete = False
    fields = ["status", "actor", "note", "created_at"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = [
        "booking_number",
        "status",
        "category",
        "client",
        "provider",
        "scheduled_date",
        "total_amount_cents",
        "payment_status",
        "created_at",
    ]
    list_filter = ["status", "payment_status", "payment_timing", "urgency", "category"]
    search_fields = ["booking_number", "client__email", "provider__email", "payment_reference"]
    raw_id_fields = ["client", "provider", "service", "cancelled_by", "disputed_by"]
    readonly_fields = [
        "id",
        "booking_number",
        "status",
        "version",
        "dispute_outcome",
        "dispute_resolved_at",
        "created_at",
        "updated_at",
    ]
    inlines = [BookingTimelineEntryInline]
    ordering = ["-created_at"]
    date_hierarchy = "created_at"

    fieldsets = (
        (None, {"fields": ("id", "booking_number", "status", "client", "provider", "service")}),
        (
            "Schedule & Location",
            {
                "fields": (
                    "category",
                    "description",
                    "scheduled_date",
                    "start_time",
                    "end_time",
                    "location_area",
                    "location_address",
                    "location_city",
                ),
            },
        ),
        (
            "Payment",
            {
                "fields": (
                    "base_amount_cents",
                    "total_amount_cents",
                    "currency",
                    "payment_method",
                    "payment_timing",
                    "payment_status",
                    "payment_reference",
                    "paid_at",
                ),
            },
        ),
        (
            "Cancellation & Dispute",
            {
                "fields": (
                    "cancelled_by",
                    "cancellation_reason",
                    "refund_percentage",
                    "refund_amount_cents",
                    "disputed_by",
                    "dispute_reason",
                    "dispute_outcome",
                    "dispute_resolved_at",
                ),
                "classes": ("collapse",),
            },
        ),
        ("Metadata", {"fields": ("version", "created_at", "updated_at"), "classes": ("collapse",)}),
    )
