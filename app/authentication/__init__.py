"""
Authentication application.

Owns the custom email-based User model and the role every actor plays in the
marketplace (client, provider or platform admin). Login itself is handled by
djangorestframework-simplejwt token endpoints.

Usage:
    from authentication.models import User, UserType
"""
