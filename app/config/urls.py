"""
URL configuration for the Django application.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - JWT token endpoints
        token/                     - Obtain access/refresh pair
        token/refresh/             - Refresh access token
    /api/v1/bookings/              - Booking lifecycle
        {id}/assign|confirm|start|complete|cancel|dispute|payment/
    /api/v1/matching/              - Provider matching
        providers/                 - Ranked matches for a service request
    /api/v1/payments/              - Escrow and payouts
        payouts/                   - Payout history
        payouts/stats/             - Payout counts and totals per state
        payouts/process/           - Run the payout sweep now (admin)
        payouts/{id}/requeue|cancel/
        payouts/bulk/              - Bulk operator actions (admin)
        escrows/stats/             - Escrow counts and totals per state
        escrows/{id}/              - Escrow detail
        escrows/{id}/evidence/     - Add dispute evidence
        escrows/{id}/resolve/      - Resolve a dispute (admin)
    /api/v1/notifications/         - In-app notifications

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("bookings/", include("bookings.urls")),
    path("matching/", include("matching.urls")),
    path("payments/", include("payments.urls")),
    path("notifications/", include("notifications.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Marketplace Admin"
admin.site.site_title = "Marketplace Admin Portal"
admin.site.index_title = "Bookings, escrow and payouts"
