"""
URL configuration for authentication.

Token endpoints from djangorestframework-simplejwt; account management is
handled outside this service.

Endpoints:
    POST /api/v1/auth/token/          - Obtain access/refresh pair
    POST /api/v1/auth/token/refresh/  - Refresh access token
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

app_name = "authentication"

urlpatterns = [
    path("token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
]
