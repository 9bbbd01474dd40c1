"""
URL configuration for bookings API.

Routes:
    /                     - List (GET) and create (POST) bookings
    /{id}/                - Booking detail (GET)
    /{id}/assign/         - Assign provider (POST)
    /{id}/confirm/        - Confirm (POST)
    /{id}/start/          - Start (POST)
    /{id}/complete/       - Complete (POST)
    /{id}/release/        - Release held payment (POST)
    /{id}/cancel/         - Cancel (POST)
    /{id}/dispute/        - Dispute (POST)
    /{id}/payment/        - Record payment (POST)
"""

from rest_framework.routers import DefaultRouter

from bookings.views import BookingViewSet

router = DefaultRouter()
router.register(r"", BookingViewSet, basename="booking")

app_name = "bookings"
urlpatterns = router.urls
