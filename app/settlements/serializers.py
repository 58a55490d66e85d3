"""
DRF serializers for settlements app.

This module provides serializers for:
- Settlement creation requests and responses
- Seller registration requests and responses
- Daily summary and provider balance responses

Related files:
    - models/: Settlement, SellerAccount
    - views.py: Settlement API views

Usage:
    serializer = CreateSettlementSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    settlement = SettlementService.create_settlement(**serializer.validated_data)
    return Response(SettlementSerializer(settlement).data, status=201)
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from settlements.models import SellerAccount, Settlement
from settlements.state_machines import BusinessType


# =============================================================================
# Settlement Serializers
# =============================================================================


class SettlementSerializer(serializers.ModelSerializer):
    """
    Settlement serializer for API responses.

    Amounts are rendered as decimal strings with 2 places, so clients never
    see float rounding.
    """

    store_id = serializers.UUIDField(read_only=True)
    store_name = serializers.CharField(source="store.name", read_only=True)
    can_retry = serializers.BooleanField(read_only=True)

    class Meta:
        model = Settlement
        fields = [
            "id",
            "store_id",
            "store_name",
            "order_id",
            "original_amount",
            "platform_fee_rate",
            "platform_fee",
            "settlement_amount",
            "status",
            "external_payout_id",
            "external_seller_id",
            "requested_at",
            "completed_at",
            "error_message",
            "retry_count",
            "can_retry",
            "metadata",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CreateSettlementSerializer(serializers.Serializer):
    """
    Serializer for settlement creation.

    Fields:
        store_id: Store receiving the net share
        order_id: Order the captured payment belongs to
        original_amount: Captured amount (> 0, 2 decimal places)
        metadata: Optional JSON object
    """

    store_id = serializers.UUIDField(help_text="Store receiving the net share")
    order_id = serializers.CharField(
        max_length=100,
        help_text="Order the captured payment belongs to",
    )
    original_amount = serializers.DecimalField(
        max_digits=19,
        decimal_places=2,
        min_value=Decimal("0.01"),
        help_text="Captured (gross) payment amount",
    )
    metadata = serializers.DictField(
        required=False,
        default=dict,
        help_text="Arbitrary JSON metadata",
    )


class CancelSettlementSerializer(serializers.Serializer):
    """Optional optimistic-lock guard for cancellation."""

    expected_version = serializers.IntegerField(
        required=False,
        min_value=1,
        help_text="Version the client last saw; rejected with 409 if it moved on",
    )


class SettlementSummarySerializer(serializers.Serializer):
    """Daily aggregate for one store."""

    store_id = serializers.CharField()
    date = serializers.DateField()
    total_original_amount = serializers.DecimalField(max_digits=19, decimal_places=2)
    total_platform_fee = serializers.DecimalField(max_digits=19, decimal_places=2)
    total_settlement_amount = serializers.DecimalField(max_digits=19, decimal_places=2)
    total_count = serializers.IntegerField()
    completed_count = serializers.IntegerField()
    pending_count = serializers.IntegerField()
    failed_count = serializers.IntegerField()
    cancelled_count = serializers.IntegerField()


class SummaryQuerySerializer(serializers.Serializer):
    store_id = serializers.UUIDField()
    date = serializers.DateField()


class BalanceSerializer(serializers.Serializer):
    """Provider balance available for payouts."""

    available_amount = serializers.DecimalField(max_digits=19, decimal_places=2)
    pending_amount = serializers.DecimalField(max_digits=19, decimal_places=2)
    total_amount = serializers.DecimalField(max_digits=19, decimal_places=2)


# =============================================================================
# Seller Serializers
# =============================================================================


class SellerAccountSerializer(serializers.ModelSerializer):
    """Seller account serializer for API responses."""

    store_id = serializers.UUIDField(read_only=True)
    payout_eligible = serializers.BooleanField(read_only=True)

    class Meta:
        model = SellerAccount
        fields = [
            "id",
            "store_id",
            "ref_seller_id",
            "external_seller_id",
            "business_type",
            "status",
            "payout_eligible",
            "registered_at",
            "approved_at",
            "version",
        ]
        read_only_fields = fields


class RegisterSellerSerializer(serializers.Serializer):
    """
    Serializer for seller registration.

    Fields:
        store_id: Store to register with the provider
        business_type: INDIVIDUAL_BUSINESS (default) or CORPORATE
    """

    store_id = serializers.UUIDField(help_text="Store to register with the provider")
    business_type = serializers.ChoiceField(
        choices=BusinessType.choices,
        default=BusinessType.INDIVIDUAL_BUSINESS,
        help_text="Business category of the seller",
    )
