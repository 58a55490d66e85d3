"""
Settlement models.

Models:
    Settlement: Per-order fee split and payout record
    SellerAccount: Store registration with the payout provider
    ProviderWebhookEvent: Dedupe record for provider webhooks
"""

from .seller_account import SellerAccount
from .settlement import MAX_RETRY_COUNT, Settlement
from .webhook_event import ProviderWebhookEvent

__all__ = [
    "MAX_RETRY_COUNT",
    "ProviderWebhookEvent",
    "SellerAccount",
    "Settlement",
]
