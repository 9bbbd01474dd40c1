"""
DRF views for payments app.

This module provides API views for:
- Payout history, statistics and operator actions
- Escrow detail, dispute evidence and dispute decisions

Related files:
    - services/: EscrowLedger, PayoutService
    - workers/payout_scheduler.py: PayoutScheduler (operator sweep trigger)
    - serializers.py: Request/response serializers
    - urls.py: URL routing

Endpoints:
    GET  /api/v1/payments/payouts/                - Payout history
    GET  /api/v1/payments/payouts/stats/          - Payout counts and totals per state
    POST /api/v1/payments/payouts/process/        - Run a payout sweep now (admin)
    POST /api/v1/payments/payouts/bulk/           - Bulk requeue/cancel/process (admin)
    POST /api/v1/payments/payouts/{id}/requeue/   - Re-queue a failed payout (admin)
    POST /api/v1/payments/payouts/{id}/cancel/    - Cancel an unsent payout (admin)
    GET  /api/v1/payments/escrows/stats/          - Escrow counts and totals
    GET  /api/v1/payments/escrows/{id}/           - Escrow detail
    POST /api/v1/payments/escrows/{id}/evidence/  - Add dispute evidence
    POST /api/v1/payments/escrows/{id}/resolve/   - Resolve a dispute (admin)
    POST /api/v1/payments/escrows/{id}/settle/    - Settle held funds of a cancelled booking (admin)

Security:
    - All endpoints require authentication
    - Providers only ever see their own payouts; admins may filter by ?provider=
    - Escrows are visible to their client, their provider and admins
"""

from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema

from bookings.services import BookingService
from core.exceptions import BaseApplicationError, ValidationError
from core.responses import error_response
from payments.exceptions import EscrowNotFoundError
from payments.permissions import IsPlatformAdmin, IsProviderOrAdmin
from payments.serializers import (
    BulkItemResultSerializer,
    BulkPayoutActionSerializer,
    EscrowPaymentSerializer,
    EvidenceSerializer,
    PayoutCancelSerializer,
    PayoutSerializer,
    ResolveDisputeSerializer,
    SettleHeldPaymentSerializer,
)
from payments.services import EscrowLedger, PayoutService
from payments.workers import PayoutScheduler

logger = logging.getLogger(__name__)


def _int_param(request, name: str) -> int | None:
    value = request.query_params.get(name)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(
            f"'{name}' must be an integer",
            details={name: value},
        )


def _provider_scope(request) -> int | None:
    """Providers are pinned to themselves; admins choose with ?provider=."""
    if request.user.is_platform_admin:
        return _int_param(request, "provider")
    return request.user.pk


# =============================================================================
# Payouts
# =============================================================================


class PayoutListView(APIView):
    """
    Payout history, newest first.

    GET /api/v1/payments/payouts/?status=failed&provider=42
    """

    permission_classes = [IsAuthenticated, IsProviderOrAdmin]

    @extend_schema(
        operation_id="list_payouts",
        summary="Payout history",
        parameters=[
            OpenApiParameter("status", str, OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                "provider",
                int,
                OpenApiParameter.QUERY,
                required=False,
                description="Provider user id (admins only)",
            ),
        ],
        responses={200: PayoutSerializer(many=True)},
        tags=["Payments - Payouts"],
    )
    def get(self, request):
        try:
            queryset = PayoutService.get_payout_history(
                provider_id=_provider_scope(request),
                status=request.query_params.get("status"),
            )
        except BaseApplicationError as e:
            return error_response(e)

        paginator = PageNumberPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response(PayoutSerializer(page, many=True).data)


class PayoutStatsView(APIView):
    permission_classes = [IsAuthenticated, IsProviderOrAdmin]

    @extend_schema(
        operation_id="get_payout_stats",
        summary="Payout statistics",
        responses={200: OpenApiResponse(description="Counts and amounts per payout state")},
        tags=["Payments - Payouts"],
    )
    def get(self, request):
        try:
            stats = PayoutService.get_payout_stats(provider_id=_provider_scope(request))
        except BaseApplicationError as e:
            return error_response(e)
        return Response(stats)


class ProcessPayoutsView(APIView):
    """
    Operator trigger for the payout sweep.

    Uses the same single-flight guard as the periodic task; if a sweep is
    already running the response says skipped.
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="process_payouts_now",
        summary="Run payout sweep now",
        request=None,
        responses={200: OpenApiResponse(description="Sweep summary or skipped flag")},
        tags=["Payments - Payouts"],
    )
    def post(self, request):
        logger.info("Payout sweep triggered via API", extra={"user_id": request.user.pk})
        run = PayoutScheduler().process_now()
        return Response(run.to_dict())


class PayoutRequeueView(APIView):
    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="requeue_payout",
        summary="Re-queue failed payout",
        request=None,
        responses={
            200: PayoutSerializer,
            404: OpenApiResponse(description="Payout not found"),
            409: OpenApiResponse(description="Payout is not failed"),
        },
        tags=["Payments - Payouts"],
    )
    def post(self, request, pk):
        try:
            payout = PayoutService.requeue(pk, actor=request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(PayoutSerializer(PayoutService.get(payout.pk)).data)


class PayoutCancelView(APIView):
    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="cancel_payout",
        summary="Cancel unsent payout",
        request=PayoutCancelSerializer,
        responses={
            200: PayoutSerializer,
            404: OpenApiResponse(description="Payout not found"),
            409: OpenApiResponse(description="Payout already sent"),
        },
        tags=["Payments - Payouts"],
    )
    def post(self, request, pk):
        serializer = PayoutCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            payout = PayoutService.cancel(
                pk, actor=request.user, reason=serializer.validated_data["reason"]
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(PayoutSerializer(PayoutService.get(payout.pk)).data)


class BulkPayoutActionView(APIView):
    """
    Apply one operator action to many payouts.

    Each payout succeeds or fails on its own; the response lists both.
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="bulk_payout_action",
        summary="Bulk payout action",
        request=BulkPayoutActionSerializer,
        responses={200: OpenApiResponse(description="Per-payout results")},
        tags=["Payments - Payouts"],
    )
    def post(self, request):
        serializer = BulkPayoutActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data["action"] == "requeue":
            results = PayoutService.bulk_requeue(data["payout_ids"], actor=request.user)
        elif data["action"] == "cancel":
            results = PayoutService.bulk_cancel(
                data["payout_ids"], actor=request.user, reason=data["reason"]
            )
        else:
            results = PayoutService.bulk_process(data["payout_ids"])

        succeeded = sum(1 for result in results if result.success)
        logger.info(
            "Bulk payout action",
            extra={
                "action": data["action"],
                "requested": len(results),
                "succeeded": succeeded,
                "user_id": request.user.pk,
            },
        )
        return Response(
            {
                "action": data["action"],
                "succeeded": succeeded,
                "failed": len(results) - succeeded,
                "results": BulkItemResultSerializer(results, many=True).data,
            }
        )


# =============================================================================
# Escrows
# =============================================================================


def _get_visible_escrow(pk, user):
    """Escrow the user may see; anybody else's escrow is reported as missing."""
    escrow = EscrowLedger.get(pk)
    if not user.is_platform_admin and user.pk not in (escrow.client_id, escrow.provider_id):
        raise EscrowNotFoundError(
            f"Escrow {pk} not found",
            details={"escrow_id": str(pk)},
        )
    return escrow


class EscrowStatsView(APIView):
    """
    Escrow statistics for the current user.

    Providers get their earnings view, clients their spending view. Admins
    pass ?provider= or ?client=.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_escrow_stats",
        summary="Escrow statistics",
        parameters=[
            OpenApiParameter("provider", int, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("client", int, OpenApiParameter.QUERY, required=False),
        ],
        responses={200: OpenApiResponse(description="Counts and amounts per escrow state")},
        tags=["Payments - Escrow"],
    )
    def get(self, request):
        user = request.user
        try:
            if user.is_platform_admin:
                provider_id = _int_param(request, "provider")
                client_id = _int_param(request, "client")
                if provider_id is not None:
                    return Response(EscrowLedger.provider_stats(provider_id))
                if client_id is not None:
                    return Response(EscrowLedger.client_stats(client_id))
                raise ValidationError("Pass either 'provider' or 'client'")
        except BaseApplicationError as e:
            return error_response(e)

        if user.is_provider:
            return Response(EscrowLedger.provider_stats(user.pk))
        return Response(EscrowLedger.client_stats(user.pk))


class EscrowDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_escrow",
        summary="Get escrow",
        responses={
            200: EscrowPaymentSerializer,
            404: OpenApiResponse(description="Escrow not found"),
        },
        tags=["Payments - Escrow"],
    )
    def get(self, request, pk):
        try:
            escrow = _get_visible_escrow(pk, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(EscrowPaymentSerializer(escrow).data)


class EscrowEvidenceView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="add_escrow_evidence",
        summary="Add dispute evidence",
        request=EvidenceSerializer,
        responses={
            201: EscrowPaymentSerializer,
            404: OpenApiResponse(description="Escrow not found"),
            409: OpenApiResponse(description="Escrow already settled"),
        },
        tags=["Payments - Escrow"],
    )
    def post(self, request, pk):
        serializer = EvidenceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            escrow = _get_visible_escrow(pk, request.user)
            escrow = EscrowLedger.add_evidence(
                escrow.id, dict(serializer.validated_data), submitted_by=request.user
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(EscrowPaymentSerializer(escrow).data, status=status.HTTP_201_CREATED)


class EscrowResolveView(APIView):
    """
    Admin decision on a disputed escrow.

    Settles the whole booking dispute: the escrow is released or refunded,
    the booking records the outcome and the payout is created or cancelled.
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="resolve_escrow_dispute",
        summary="Resolve dispute",
        request=ResolveDisputeSerializer,
        responses={
            200: EscrowPaymentSerializer,
            404: OpenApiResponse(description="Escrow not found"),
            409: OpenApiResponse(description="No open dispute"),
        },
        tags=["Payments - Escrow"],
    )
    def post(self, request, pk):
        serializer = ResolveDisputeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            escrow = EscrowLedger.get(pk)
            BookingService.resolve_dispute(
                escrow.booking_id,
                data["decision"],
                resolved_by=request.user,
                notes=data["notes"],
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(EscrowPaymentSerializer(EscrowLedger.get(pk)).data)


class EscrowSettleView(APIView):
    """
    Admin settlement of funds still held for a cancelled booking.

    A cancellation without refund leaves the escrow held; release pays the
    provider through a payout, refund returns everything to the client.
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="settle_escrow",
        summary="Settle held payment of a cancelled booking",
        request=SettleHeldPaymentSerializer,
        responses={
            200: EscrowPaymentSerializer,
            404: OpenApiResponse(description="Escrow not found"),
            409: OpenApiResponse(description="Booking not cancelled or nothing held"),
        },
        tags=["Payments - Escrow"],
    )
    def post(self, request, pk):
        serializer = SettleHeldPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            escrow = EscrowLedger.get(pk)
            BookingService.settle_cancelled_payment(
                escrow.booking_id,
                data["decision"],
                actor=request.user,
                notes=data["notes"],
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(EscrowPaymentSerializer(EscrowLedger.get(pk)).data)
