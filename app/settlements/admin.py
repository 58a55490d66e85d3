"""
Settlement admin configuration.

Registers settlement domain models with the Django admin. State fields are
read-only: transitions go through the service layer so locks, version
checks and logging always apply.
"""

from django.contrib import admin

from settlements.models import ProviderWebhookEvent, SellerAccount, Settlement


@admin.register(Settlement)
class SettlementAdmin(admin.ModelAdmin):
    """
    Admin configuration for Settlement.

    Provides visibility into fee splits and payout progress.
    """

    list_display = [
        "id",
        "store",
        "order_id",
        "original_amount",
        "platform_fee",
        "settlement_amount",
        "status",
        "retry_count",
        "created_at",
    ]
    list_filter = ["status", "created_at"]
    search_fields = ["id", "order_id", "external_payout_id", "store__name"]
    readonly_fields = [
        "id",
        "status",
        "original_amount",
        "platform_fee_rate",
        "platform_fee",
        "settlement_amount",
        "external_payout_id",
        "external_seller_id",
        "requested_at",
        "completed_at",
        "retry_count",
        "version",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "store", "order_id", "status"),
            },
        ),
        (
            "Amounts",
            {
                "fields": (
                    "original_amount",
                    "platform_fee_rate",
                    "platform_fee",
                    "settlement_amount",
                ),
            },
        ),
        (
            "Provider",
            {
                "fields": ("external_payout_id", "external_seller_id"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message", "retry_count"),
                "classes": ("collapse",),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata", "version"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("requested_at", "completed_at", "created_at", "updated_at"),
            },
        ),
    )


@admin.register(SellerAccount)
class SellerAccountAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "store",
        "external_seller_id",
        "business_type",
        "status",
        "approved_at",
        "created_at",
    ]
    list_filter = ["status", "business_type"]
    search_fields = ["id", "ref_seller_id", "external_seller_id", "store__name"]
    readonly_fields = [
        "id",
        "ref_seller_id",
        "external_seller_id",
        "status",
        "registered_at",
        "approved_at",
        "version",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]


@admin.register(ProviderWebhookEvent)
class ProviderWebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for ProviderWebhookEvent.

    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "event_id",
        "event_type",
        "status",
        "attempts",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "event_id"]
    readonly_fields = [
        "id",
        "event_id",
        "event_type",
        "payload",
        "status",
        "result_message",
        "attempts",
        "processed_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
