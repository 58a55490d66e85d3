"""
Webhook endpoint views for the payout provider.

The views:
1. Read the raw body and the X-Toss-Signature header
2. Hand both to the WebhookReconciler (verify, dedupe, apply)
3. Answer with the HTTP status of the outcome

Unlike a queue-first design, events are applied inside the request: the
provider retries on any non-2xx answer, so the status code must reflect
whether local state actually changed. Follow-up work (settlement retries,
seller sweeps) is still queued on Celery by the reconciler.

Status codes:
    200: Processed or ignored
    400: Invalid payload or stale timestamp
    401: Missing or wrong signature
    409: Already processed
    500: Unexpected error (the provider will redeliver)
"""

from __future__ import annotations

import logging
from typing import Callable

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from settlements.services import WebhookReconciler, WebhookResult

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Toss-Signature"


def _dispatch(
    request: HttpRequest,
    handler: Callable[[WebhookReconciler, bytes, str | None], WebhookResult],
    endpoint: str,
) -> HttpResponse:
    payload = request.body
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        result = handler(WebhookReconciler.from_settings(), payload, signature)
    except Exception as e:
        logger.error(
            f"Unexpected error handling {endpoint} webhook: {type(e).__name__}",
            extra={"endpoint": endpoint},
            exc_info=True,
        )
        return HttpResponse("Internal error", status=500)

    return HttpResponse(result.message, status=result.http_status)


@csrf_exempt
@require_POST
def payout_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive payout.changed events.

    Applies COMPLETED, FAILED and CANCELLED payout statuses to the
    settlement referenced by refPayoutId.
    """
    return _dispatch(request, WebhookReconciler.handle_payout_changed, "payout")


@csrf_exempt
@require_POST
def seller_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive seller.changed events.

    Applies the provider's approval status to the seller account
    referenced by refSellerId.
    """
    return _dispatch(request, WebhookReconciler.handle_seller_changed, "seller")
