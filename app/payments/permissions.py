"""
Permission classes for payments API.

- IsPlatformAdmin: Operator-only endpoints (sweep trigger, bulk actions, dispute decisions)
- IsProviderOrAdmin: Payout history and statistics
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class IsPlatformAdmin(permissions.BasePermission):
    message = "Only platform admins can perform this action."

    def has_permission(self, request: Request, view: APIView) -> bool:
        return bool(request.user and getattr(request.user, "is_platform_admin", False))


class IsProviderOrAdmin(permissions.BasePermission):
    message = "Only providers and platform admins can view payouts."

    def has_permission(self, request: Request, view: APIView) -> bool:
        user = request.user
        return bool(user and (user.is_provider or user.is_platform_admin))

