"""
API tests for the JWT token endpoints.
"""

import pytest
from django.urls import reverse
from rest_framework import status

from authentication.tests.factories import UserFactory


@pytest.mark.django_db
class TestTokenEndpoints:
    def test_obtain_pair_with_valid_credentials(self, api_client):
        UserFactory(email="wanjiku@example.com", password="Secret123!")

        response = api_client.post(
            reverse("authentication:token_obtain_pair"),
            {"email": "wanjiku@example.com", "password": "Secret123!"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert set(response.data) == {"access", "refresh"}

    def test_wrong_password_rejected(self, api_client):
        UserFactory(email="wanjiku@example.com", password="Secret123!")

        response = api_client.post(
            reverse("authentication:token_obtain_pair"),
            {"email": "wanjiku@example.com", "password": "wrong"},
            format="json",
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_refresh(self, api_client):
        UserFactory(email="otieno@example.com", password="Secret123!")
        pair = api_client.post(
            reverse("authentication:token_obtain_pair"),
            {"email": "otieno@example.com", "password": "Secret123!"},
            format="json",
        ).data

        response = api_client.post(
            reverse("authentication:token_refresh"), {"refresh": pair["refresh"]}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert "access" in response.data

    def test_token_authenticates_api_requests(self, authenticated_client_factory):
        user = UserFactory()

        response = authenticated_client_factory(user).get(reverse("bookings:booking-list"))

        assert response.status_code == status.HTTP_200_OK
