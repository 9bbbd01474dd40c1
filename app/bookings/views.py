"""
Views for the bookings API.

Endpoints:
    GET  /api/v1/bookings/                 - List the user's bookings (?status=)
    POST /api/v1/bookings/                 - Create a booking (clients)
    GET  /api/v1/bookings/{id}/            - Booking detail with timeline
    POST /api/v1/bookings/{id}/assign/     - Assign a provider
    POST /api/v1/bookings/{id}/confirm/    - Provider accepts
    POST /api/v1/bookings/{id}/start/      - Provider starts work
    POST /api/v1/bookings/{id}/complete/   - Client confirms completion
    POST /api/v1/bookings/{id}/release/    - Release held funds after completion
    POST /api/v1/bookings/{id}/cancel/     - Cancel with refund policy
    POST /api/v1/bookings/{id}/dispute/    - Raise a dispute
    POST /api/v1/bookings/{id}/payment/    - Record the client's payment

All state changes go through BookingService; application errors are
returned with the status code their exception class declares.
"""

from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiParameter,
    OpenApiResponse,
)

from core.exceptions import BaseApplicationError
from core.responses import error_response
from bookings.serializers import (
    AssignProviderSerializer,
    BookingCreateSerializer,
    BookingDetailSerializer,
    BookingListSerializer,
    CancelBookingSerializer,
    CompleteBookingSerializer,
    DisputeBookingSerializer,
    RecordPaymentSerializer,
)
from bookings.services import BookingService

TRANSITION_RESPONSES = {
    200: BookingDetailSerializer,
    400: OpenApiResponse(description="Invalid input"),
    403: OpenApiResponse(description="Not allowed for this user"),
    404: OpenApiResponse(description="Booking not found"),
    409: OpenApiResponse(description="Not allowed in the current state, or a concurrent update"),
}


@extend_schema_view(
    list=extend_schema(
        operation_id="list_bookings",
        summary="List bookings",
        description="Bookings where the user is the client or the provider; admins see all.",
        parameters=[
            OpenApiParameter(
                name="status",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Filter by status, e.g. in_progress",
                required=False,
            ),
        ],
        tags=["Bookings"],
    ),
    retrieve=extend_schema(
        operation_id="get_booking",
        summary="Get booking",
        responses={200: BookingDetailSerializer},
        tags=["Bookings"],
    ),
)
class BookingViewSet(viewsets.GenericViewSet):
    """
    Booking lifecycle endpoints.

    Detail lookups of a booking the user does not take part in are a 404;
    actions on it are a 403 from the service role check.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = "[0-9a-f-]{36}"
    serializer_class = BookingDetailSerializer

    def get_serializer_class(self):
        if self.action == "list":
            return BookingListSerializer
        return BookingDetailSerializer

    def _respond(self, booking, status_code=status.HTTP_200_OK):
        booking = BookingService.get(booking.pk)
        return Response(BookingDetailSerializer(booking).data, status=status_code)

    def _validated(self, serializer_class):
        serializer = serializer_class(data=self.request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    def list(self, request):
        try:
            queryset = BookingService.list_for_user(
                request.user, status=request.query_params.get("status")
            )
        except BaseApplicationError as e:
            return error_response(e)

        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(BookingListSerializer(page, many=True).data)
        return Response(BookingListSerializer(queryset, many=True).data)

    def retrieve(self, request, pk=None):
        try:
            booking = BookingService.get_for_user(pk, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(BookingDetailSerializer(booking).data)

    @extend_schema(
        operation_id="create_booking",
        summary="Create booking",
        description=(
            "Without provider_id or service_id the best matching provider is "
            "assigned; if none qualifies the booking stays pending unassigned."
        ),
        request=BookingCreateSerializer,
        responses={
            201: BookingDetailSerializer,
            400: OpenApiResponse(description="Invalid booking request"),
            403: OpenApiResponse(description="Only clients can book"),
        },
        tags=["Bookings"],
    )
    def create(self, request):
        data = self._validated(BookingCreateSerializer)
        try:
            booking = BookingService.create_booking(request.user, data)
        except BaseApplicationError as e:
            return error_response(e)
        return self._respond(booking, status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="assign_booking_provider",
        summary="Assign provider",
        request=AssignProviderSerializer,
        responses=TRANSITION_RESPONSES,
        tags=["Bookings"],
    )
    @action(detail=True, methods=["post"])
    def assign(self, request, pk=None):
        data = self._validated(AssignProviderSerializer)
        try:
            booking = BookingService.assign_provider(pk, data["provider_id"], actor=request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return self._respond(booking)

    @extend_schema(
        operation_id="confirm_booking",
        summary="Confirm booking",
        request=None,
        responses=TRANSITION_RESPONSES,
        tags=["Bookings"],
    )
    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        try:
            booking = BookingService.confirm(pk, actor=request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return self._respond(booking)

    @extend_schema(
        operation_id="start_booking",
        summary="Start work",
        request=None,
        responses=TRANSITION_RESPONSES,
        tags=["Bookings"],
    )
    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        try:
            booking = BookingService.start(pk, actor=request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return self._respond(booking)

    @extend_schema(
        operation_id="complete_booking",
        summary="Complete booking",
        description="Pay-now bookings need held funds; 409 PAYMENT_REQUIRED otherwise.",
        request=CompleteBookingSerializer,
        responses=TRANSITION_RESPONSES,
        tags=["Bookings"],
    )
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        data = self._validated(CompleteBookingSerializer)
        try:
            booking = BookingService.complete(
                pk, actor=request.user, release_payment=data["release_payment"]
            )
        except BaseApplicationError as e:
            return error_response(e)
        return self._respond(booking)

    @extend_schema(
        operation_id="release_booking_payment",
        summary="Release payment",
        request=None,
        responses=TRANSITION_RESPONSES,
        tags=["Bookings"],
    )
    @action(detail=True, methods=["post"])
    def release(self, request, pk=None):
        try:
            booking = BookingService.release_payment(pk, actor=request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return self._respond(booking)

    @extend_schema(
        operation_id="cancel_booking",
        summary="Cancel booking",
        request=CancelBookingSerializer,
        responses=TRANSITION_RESPONSES,
        tags=["Bookings"],
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        data = self._validated(CancelBookingSerializer)
        try:
            booking = BookingService.cancel(pk, actor=request.user, reason=data["reason"])
        except BaseApplicationError as e:
            return error_response(e)
        return self._respond(booking)

    @extend_schema(
        operation_id="dispute_booking",
        summary="Raise dispute",
        request=DisputeBookingSerializer,
        responses=TRANSITION_RESPONSES,
        tags=["Bookings"],
    )
    @action(detail=True, methods=["post"])
    def dispute(self, request, pk=None):
        data = self._validated(DisputeBookingSerializer)
        try:
            booking = BookingService.dispute(
                pk,
                actor=request.user,
                reason=data["reason"],
                description=data["description"],
            )
        except BaseApplicationError as e:
            return error_response(e)
        return self._respond(booking)

    @extend_schema(
        operation_id="record_booking_payment",
        summary="Record payment",
        description="Idempotent once the booking is paid.",
        request=RecordPaymentSerializer,
        responses=TRANSITION_RESPONSES,
        tags=["Bookings"],
    )
    @action(detail=True, methods=["post"])
    def payment(self, request, pk=None):
        data = self._validated(RecordPaymentSerializer)
        try:
            booking = BookingService.record_payment(
                pk, reference=data["payment_reference"], actor=request.user
            )
        except BaseApplicationError as e:
            return error_response(e)
        return self._respond(booking)
