"""
Tests for the User model and manager.
"""

import pytest

from authentication.models import User, UserType
from authentication.tests.factories import (
    AdminUserFactory,
    ProviderUserFactory,
    UserFactory,
)


class TestUserManager:
    """Tests for UserManager."""

    def test_create_user_normalizes_email(self, db):
        """Should lowercase the domain part of the email."""
        user = User.objects.create_user(email="Jane@EXAMPLE.com", password="pw123456!")

        assert user.email == "Jane@example.com"
        assert user.check_password("pw123456!")
        assert user.user_type == UserType.CLIENT

    def test_create_user_requires_email(self, db):
        """Should reject an empty email."""
        with pytest.raises(ValueError):
            User.objects.create_user(email="", password="pw")

    def test_create_user_without_password_is_unusable(self, db):
        """Should set an unusable password when none is given."""
        user = User.objects.create_user(email="nopw@example.com")

        assert not user.has_usable_password()

    def test_create_provider_sets_role(self, db):
        user = User.objects.create_provider(email="fundi@example.com", password="pw")

        assert user.is_provider
        assert not user.is_staff

    def test_create_superuser_is_admin(self, db):
        """Should create a staff superuser with the admin role."""
        admin = User.objects.create_superuser(email="ops@example.com", password="pw")

        assert admin.is_staff
        assert admin.is_superuser
        assert admin.user_type == UserType.ADMIN
        assert admin.is_platform_admin


class TestUserRoles:
    """Tests for role helpers used by the booking permission checks."""

    def test_client_role(self, db):
        user = UserFactory()

        assert user.is_client
        assert not user.is_provider
        assert not user.is_platform_admin

    def test_provider_role(self, db):
        user = ProviderUserFactory()

        assert user.is_provider
        assert not user.is_client

    def test_staff_user_counts_as_admin(self, db):
        """Django staff accounts can act as platform admins."""
        user = UserFactory(is_staff=True)

        assert user.is_platform_admin

    def test_admin_factory(self, db):
        assert AdminUserFactory().is_platform_admin

    def test_short_name_falls_back_to_email(self, db):
        user = UserFactory(full_name="", email="amina@example.com")

        assert user.get_short_name() == "amina"
        assert user.get_full_name() == "amina@example.com"
