"""
DRF views for settlements app.

This module provides API views for:
- Settlement creation, listing and detail
- Payout processing and cancellation
- Daily store summaries and provider balance
- Seller registration with the payout provider

Related files:
    - services/: SettlementService, SellerAccountService
    - serializers.py: Request/response serializers
    - filters.py: SettlementFilter
    - urls.py: URL routing

Endpoints:
    GET  /api/v1/settlements/ - List settlements (store_id, start_date, end_date)
    POST /api/v1/settlements/ - Create settlement
    GET  /api/v1/settlements/{id}/ - Settlement detail
    POST /api/v1/settlements/{id}/process/ - Send payout
    POST /api/v1/settlements/{id}/cancel/ - Cancel settlement
    GET  /api/v1/settlements/summary/ - Daily summary for a store
    GET  /api/v1/settlements/balance/ - Provider balance
    POST /api/v1/settlements/sellers/ - Register store with provider

Error responses:
    Domain failures are returned as the error's to_dict() with the HTTP
    status of its ErrorKind; lock and version conflicts answer 409.
"""

from __future__ import annotations

import logging

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError, ConflictError

from settlements.exceptions import SettlementError
from settlements.filters import SettlementFilter
from settlements.serializers import (
    BalanceSerializer,
    CancelSettlementSerializer,
    CreateSettlementSerializer,
    RegisterSellerSerializer,
    SellerAccountSerializer,
    SettlementSerializer,
    SettlementSummarySerializer,
    SummaryQuerySerializer,
)
from settlements.services import SellerAccountService, SettlementService
from settlements.tasks import schedule_settlement_retry

logger = logging.getLogger(__name__)


def error_response(error: BaseApplicationError) -> Response:
    """Translate a domain error into an API response."""
    if isinstance(error, SettlementError):
        http_status = error.http_status
    elif isinstance(error, ConflictError):
        http_status = status.HTTP_409_CONFLICT
    else:
        http_status = status.HTTP_400_BAD_REQUEST
    return Response(error.to_dict(), status=http_status)


# =============================================================================
# Settlement Views
# =============================================================================


class SettlementListCreateView(generics.ListAPIView):
    """
    API view for listing and creating settlements.

    GET: Paginated list, newest first, filtered by store_id, start_date,
        end_date (ISO 8601, inclusive) and status
    POST: Create a PENDING settlement for a captured payment

    URL: /api/v1/settlements/
    """

    permission_classes = [IsAuthenticated]
    serializer_class = SettlementSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = SettlementFilter

    def get_queryset(self):
        return SettlementService.list_settlements()

    @extend_schema(
        summary="List settlements",
        tags=["Settlements"],
        responses={200: SettlementSerializer(many=True)},
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @extend_schema(
        summary="Create settlement",
        description=(
            "Split a captured payment into platform fee and store share. "
            "One settlement per order."
        ),
        tags=["Settlements"],
        request=CreateSettlementSerializer,
        responses={
            201: SettlementSerializer,
            400: OpenApiResponse(description="Invalid amount or metadata"),
            404: OpenApiResponse(description="Unknown or inactive store"),
            409: OpenApiResponse(description="Order already settled"),
        },
    )
    def post(self, request):
        """
        Create a settlement.

        Request body:
            {
                "store_id": "uuid",
                "order_id": "order-123",
                "original_amount": "10000.00",
                "metadata": {}              // Optional
            }

        Returns:
            The PENDING settlement with its fee split
        """
        serializer = CreateSettlementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            settlement = SettlementService.create_settlement(**serializer.validated_data)
        except SettlementError as e:
            return error_response(e)

        return Response(SettlementSerializer(settlement).data, status=status.HTTP_201_CREATED)


class SettlementDetailView(APIView):
    """
    API view for a single settlement.

    URL: /api/v1/settlements/{id}/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get settlement",
        tags=["Settlements"],
        responses={200: SettlementSerializer, 404: OpenApiResponse(description="Not found")},
    )
    def get(self, request, settlement_id):
        try:
            settlement = SettlementService.get_settlement(settlement_id)
        except SettlementError as e:
            return error_response(e)
        return Response(SettlementSerializer(settlement).data)


class SettlementProcessView(APIView):
    """
    API view for sending a settlement's payout.

    POST: Process a PENDING settlement synchronously

    URL: /api/v1/settlements/{id}/process/

    A provider failure marks the settlement FAILED and answers with the
    error. Transient failures also queue retry_settlement with the retry
    policy countdown.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Process settlement payout",
        tags=["Settlements"],
        request=None,
        responses={
            200: SettlementSerializer,
            404: OpenApiResponse(description="Not found"),
            409: OpenApiResponse(description="Not PENDING or already being processed"),
            422: OpenApiResponse(description="Seller not eligible or insufficient balance"),
            502: OpenApiResponse(description="Provider rejected the payout"),
            503: OpenApiResponse(description="Provider temporarily unavailable"),
        },
    )
    def post(self, request, settlement_id):
        try:
            settlement = SettlementService.process_settlement(settlement_id)
        except SettlementError as e:
            if e.retryable:
                schedule_settlement_retry(str(settlement_id), e)
            return error_response(e)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(SettlementSerializer(settlement).data)


class SettlementCancelView(APIView):
    """
    API view for cancelling a settlement.

    POST: Cancel a settlement that has not completed

    URL: /api/v1/settlements/{id}/cancel/

    Request body:
        {"expected_version": 3}   // Optional optimistic-lock guard
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Cancel settlement",
        tags=["Settlements"],
        request=CancelSettlementSerializer,
        responses={
            200: SettlementSerializer,
            404: OpenApiResponse(description="Not found"),
            409: OpenApiResponse(description="Completed, in flight or modified"),
        },
    )
    def post(self, request, settlement_id):
        serializer = CancelSettlementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            settlement = SettlementService.cancel_settlement(
                settlement_id,
                expected_version=serializer.validated_data.get("expected_version"),
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(SettlementSerializer(settlement).data)


class SettlementSummaryView(APIView):
    """
    API view for a store's daily summary.

    URL: /api/v1/settlements/summary/?store_id=<uuid>&date=YYYY-MM-DD
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Daily settlement summary",
        tags=["Settlements"],
        parameters=[
            OpenApiParameter("store_id", str, OpenApiParameter.QUERY, required=True),
            OpenApiParameter("date", str, OpenApiParameter.QUERY, required=True),
        ],
        responses={200: SettlementSummarySerializer},
    )
    def get(self, request):
        query = SummaryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        try:
            summary = SettlementService.get_summary(
                query.validated_data["store_id"],
                query.validated_data["date"],
            )
        except SettlementError as e:
            return error_response(e)
        return Response(SettlementSummarySerializer(summary).data)


class BalanceView(APIView):
    """
    API view for the provider balance.

    URL: /api/v1/settlements/balance/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Provider balance",
        tags=["Settlements"],
        responses={
            200: BalanceSerializer,
            502: OpenApiResponse(description="Provider error"),
            503: OpenApiResponse(description="Provider temporarily unavailable"),
        },
    )
    def get(self, request):
        try:
            balance = SettlementService.get_balance()
        except SettlementError as e:
            return error_response(e)
        return Response(BalanceSerializer(balance).data)


# =============================================================================
# Seller Views
# =============================================================================


class SellerRegistrationView(APIView):
    """
    API view for registering a store with the payout provider.

    POST: Register (idempotent per store)

    URL: /api/v1/settlements/sellers/

    Request body:
        {
            "store_id": "uuid",
            "business_type": "INDIVIDUAL_BUSINESS"   // or "CORPORATE"
        }
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Register seller",
        tags=["Settlements - Sellers"],
        request=RegisterSellerSerializer,
        responses={
            200: SellerAccountSerializer,
            404: OpenApiResponse(description="Unknown or inactive store"),
            502: OpenApiResponse(description="Provider rejected the registration"),
        },
    )
    def post(self, request):
        serializer = RegisterSellerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            account = SellerAccountService.register_seller(**serializer.validated_data)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(SellerAccountSerializer(account).data)


class SellerAccountDetailView(APIView):
    """
    API view for a store's seller account.

    URL: /api/v1/settlements/sellers/{store_id}/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get seller account",
        tags=["Settlements - Sellers"],
        responses={200: SellerAccountSerializer, 404: OpenApiResponse(description="Not registered")},
    )
    def get(self, request, store_id):
        try:
            account = SellerAccountService.get_for_store(store_id)
        except SettlementError as e:
            return error_response(e)
        return Response(SellerAccountSerializer(account).data)
