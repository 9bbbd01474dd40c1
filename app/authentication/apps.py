from django.apps import AppConfig


class AuthenticationConfig(AppConfig):
    """Accounts and JWT token endpoints."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "authentication"
    verbose_name = "Accounts"
