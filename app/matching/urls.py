"""
URL configuration for the matching API.

Routes:
    /providers/   - Ranked provider matches (POST)
"""

from django.urls import path

from matching.views import MatchProvidersView

app_name = "matching"

urlpatterns = [
    path("providers/", MatchProvidersView.as_view(), name="match-providers"),
]
