from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    """In-app and email notices for booking and payout events."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "notifications"
    verbose_name = "Notifications"
