"""
Authentication models.

Defines the custom User model. A user is exactly one of:
- client: books services and pays for them
- provider: delivers services and receives payouts (see providers.ProviderProfile)
- admin: platform operator; may act on any booking, resolve disputes, run payouts

Related files:
    - managers.py: Custom user manager for email-based creation
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class UserType(models.TextChoices):
    """Marketplace role of a user."""

    CLIENT = "client", "Client"
    PROVIDER = "provider", "Provider"
    ADMIN = "admin", "Admin"


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        full_name: Display name used in notifications
        phone_number: Contact number (also the default M-Pesa number for providers)
        user_type: Marketplace role (client, provider, admin)
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    full_name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Display name",
    )
    phone_number = models.CharField(
        max_length=20,
        blank=True,
        default="",
        help_text="Contact phone number in international format",
    )
    user_type = models.CharField(
        max_length=20,
        choices=UserType.choices,
        default=UserType.CLIENT,
        db_index=True,
        help_text="Marketplace role",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.full_name or self.email

    def get_short_name(self):
        return self.full_name.split(" ")[0] if self.full_name else self.email.split("@")[0]

    @property
    def is_client(self) -> bool:
        return self.user_type == UserType.CLIENT

    @property
    def is_provider(self) -> bool:
        return self.user_type == UserType.PROVIDER

    @property
    def is_platform_admin(self) -> bool:
        """Admins by role, plus Django staff accounts used by operators."""
        return self.user_type == UserType.ADMIN or self.is_staff
