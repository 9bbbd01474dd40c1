"""
URL configuration for the payments app.

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments.views import (
    BulkPayoutActionView,
    EscrowDetailView,
    EscrowEvidenceView,
    EscrowResolveView,
    EscrowSettleView,
    EscrowStatsView,
    PayoutCancelView,
    PayoutListView,
    PayoutRequeueView,
    PayoutStatsView,
    ProcessPayoutsView,
)

app_name = "payments"

urlpatterns = [
    # Payouts
    path("payouts/", PayoutListView.as_view(), name="payout-list"),
    path("payouts/stats/", PayoutStatsView.as_view(), name="payout-stats"),
    path("payouts/process/", ProcessPayoutsView.as_view(), name="payout-process"),
    path("payouts/bulk/", BulkPayoutActionView.as_view(), name="payout-bulk"),
    path("payouts/<uuid:pk>/requeue/", PayoutRequeueView.as_view(), name="payout-requeue"),
    path("payouts/<uuid:pk>/cancel/", PayoutCancelView.as_view(), name="payout-cancel"),
    # Escrows
    path("escrows/stats/", EscrowStatsView.as_view(), name="escrow-stats"),
    path("escrows/<uuid:pk>/", EscrowDetailView.as_view(), name="escrow-detail"),
    path("escrows/<uuid:pk>/evidence/", EscrowEvidenceView.as_view(), name="escrow-evidence"),
    path("escrows/<uuid:pk>/resolve/", EscrowResolveView.as_view(), name="escrow-resolve"),
    path("escrows/<uuid:pk>/settle/", EscrowSettleView.as_view(), name="escrow-settle"),
]
