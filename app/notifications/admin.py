"""
Django admin configuration for notification models.
"""

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = [
        "title",
        "recipient",
        "notification_type",
        "is_read",
        "email_sent_at",
        "created_at",
    ]
    list_filter = ["notification_type", "is_read", "created_at"]
    search_fields = ["title", "body", "recipient__email"]
    raw_id_fields = ["recipient", "actor"]
    readonly_fields = ["id", "created_at", "updated_at", "read_at", "email_sent_at"]
    ordering = ["-created_at"]
    date_hierarchy = "created_at"
