"""
Webhook endpoints for provider payout and seller events.

Both endpoints hand the raw request body to the WebhookReconciler, which
verifies the HMAC signature over the exact bytes received before parsing.

Usage:
    # In urls.py
    from settlements.webhooks.views import payout_webhook, seller_webhook

    urlpatterns = [
        path("webhooks/payout/", payout_webhook, name="payout_webhook"),
        path("webhooks/seller/", seller_webhook, name="seller_webhook"),
    ]
"""

from settlements.webhooks.views import payout_webhook, seller_webhook

__all__ = [
    "payout_webhook",
    "seller_webhook",
]
