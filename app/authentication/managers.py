"""
User manager keyed on email, with marketplace role helpers.
"""

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    """
    Usage:
        client = User.objects.create_user(email="jane@example.com", password="...")
        fundi = User.objects.create_provider(email="fundi@example.com", password="...")
        ops = User.objects.create_superuser(email="ops@example.com", password="...")
    """

    def _create(self, email, password, **extra_fields):
        if not email:
            raise ValueError("Users must have an email address")

        user = self.model(email=self.normalize_email(email), **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create(email, password, **extra_fields)

    def create_provider(self, email, password=None, **extra_fields):
        extra_fields["user_type"] = "provider"
        return self.create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        """Platform admin: staff, superuser and the admin role."""
        extra_fields.setdefault("user_type", "admin")
        for flag in ("is_staff", "is_superuser"):
            if extra_fields.setdefault(flag, True) is not True:
                raise ValueError(f"Superuser must have {flag}=True.")
        return self._create(email, password, **extra_fields)
