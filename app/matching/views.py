"""
DRF views for provider matching.

Endpoints:
    POST /api/v1/matching/providers/ - Ranked providers for a service request
"""

from __future__ import annotations

from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import extend_schema, OpenApiResponse

from core.exceptions import BaseApplicationError
from core.responses import error_response
from matching.serializers import MatchRequestSerializer
from matching.services import ProviderMatcher


class MatchProvidersView(APIView):
    """
    Rank providers for a service request.

    POST /api/v1/matching/providers/

    Request body:
        {
            "category": "plumbing",
            "location_area": "Westlands",
            "scheduled_date": "2024-10-21",
            "start_time": "10:00",
            "urgency": "emergency",
            "budget_min": 1000,
            "budget_max": 2000
        }

    Returns:
        {"count": <int>, "results": [<match with score_breakdown>, ...]}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="match_providers",
        summary="Match providers",
        request=MatchRequestSerializer,
        responses={
            200: OpenApiResponse(description="Ranked provider matches"),
            400: OpenApiResponse(description="Invalid match request"),
        },
        tags=["Matching"],
    )
    def post(self, request):
        serializer = MatchRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            matches = ProviderMatcher.find_matches(
                serializer.to_match_request(exclude_provider_ids={request.user.pk}),
                limit=serializer.limit,
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(
            {
                "count": len(matches),
                "results": [match.to_dict() for match in matches],
            }
        )
