"""
Settlement services for coordinating settlement operations.

This module provides:
- SettlementService: Settlement creation, payout execution and reporting
- SellerAccountService: Store registration with the payout provider
- WebhookReconciler: Verification and application of provider webhooks

Usage:
    from settlements.services import SettlementService

    settlement = SettlementService.create_settlement(
        store_id=store.id,
        order_id="order-123",
        original_amount=Decimal("10000"),
    )
    settlement = SettlementService.process_settlement(settlement.id)

    # Register a store as a provider seller
    from settlements.services import SellerAccountService

    account = SellerAccountService.register_seller(store.id)

    # Apply a provider webhook
    from settlements.services import WebhookReconciler

    result = WebhookReconciler.from_settings().handle_payout_changed(body, signature)
"""

from settlements.services.seller_service import SellerAccountService
from settlements.services.settlement_service import (
    SettlementService,
    SettlementSummary,
)
from settlements.services.webhook_reconciler import (
    ProviderEvent,
    WebhookOutcome,
    WebhookReconciler,
    WebhookResult,
)

__all__ = [
    "ProviderEvent",
    "SellerAccountService",
    "SettlementService",
    "SettlementSummary",
    "WebhookOutcome",
    "WebhookReconciler",
    "WebhookResult",
]
