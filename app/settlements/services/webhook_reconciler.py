"""
Webhook reconciliation for provider payout and seller events.

The provider owns the real payout and seller state and reports changes
through two webhooks. This module verifies those notifications and applies
them to local records exactly once per logical event.

Verification order (each step rejects before the next runs):
1. Body parses as a JSON object with eventId, eventType, createdAt, data
   and the data fields the event type requires
2. eventType matches the endpoint
3. timestamp is within the freshness window (stale events are rejected
   even when validly signed)
4. X-Toss-Signature equals "sha256=" + HMAC-SHA256(secret, raw_body + timestamp)

Application:
- Every accepted event is recorded in ProviderWebhookEvent; redelivery of
  a finished event answers "already processed" without touching state
- Settlement and SellerAccount rows are locked with select_for_update
- COMPLETED and CANCELLED settlements never move again
- Follow-up work (retries, seller sweeps) is queued on Celery after the
  transaction, never run inside the webhook request

Usage:
    from settlements.services import WebhookReconciler

    reconciler = WebhookReconciler.from_settings()
    result = reconciler.handle_payout_changed(request.body, signature)
    return HttpResponse(result.message, status=result.http_status)
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction

from settlements.conf import get_provider_config, get_settlement_config
from settlements.models import ProviderWebhookEvent, SellerAccount, Settlement
from settlements.state_machines import (
    PayoutEventStatus,
    SellerStatus,
    SettlementStatus,
    WebhookEventType,
)

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="

REQUIRED_DATA_FIELDS = {
    WebhookEventType.PAYOUT_CHANGED: ("payoutId", "refPayoutId", "status"),
    WebhookEventType.SELLER_CHANGED: ("sellerId", "refSellerId", "status"),
}
DEFAULT_FAILURE_REASON = "Payout failed at provider"


# =============================================================================
# Result Types
# =============================================================================


class WebhookOutcome(str, Enum):
    """Outcome of a webhook delivery, mapped to the HTTP answer."""

    PROCESSED = "processed"
    IGNORED = "ignored"
    ALREADY_PROCESSED = "already_processed"
    INVALID = "invalid"
    UNAUTHORIZED = "unauthorized"

    @property
    def http_status(self) -> int:
        return {
            WebhookOutcome.PROCESSED: 200,
            WebhookOutcome.IGNORED: 200,
            WebhookOutcome.ALREADY_PROCESSED: 409,
            WebhookOutcome.INVALID: 400,
            WebhookOutcome.UNAUTHORIZED: 401,
        }[self]


@dataclass(frozen=True)
class WebhookResult:
    outcome: WebhookOutcome
    message: str
    event_id: str | None = None

    @property
    def http_status(self) -> int:
        return self.outcome.http_status


@dataclass(frozen=True)
class ProviderEvent:
    """
    Webhook body as sent by the provider.

    Attributes:
        event_id: Unique event ID
        event_type: payout.changed or seller.changed
        created_at: When the provider created the event
        data: Event-specific fields
        timestamp: Transport timestamp (epoch seconds) covered by the signature
    """

    event_id: str
    event_type: str
    created_at: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: int | None = None

    @classmethod
    def from_dict(cls, body: dict[str, Any]) -> ProviderEvent:
        data = body.get("data")
        return cls(
            event_id=str(body.get("eventId") or ""),
            event_type=str(body.get("eventType") or ""),
            created_at=str(body.get("createdAt") or ""),
            data=data if isinstance(data, dict) else {},
            timestamp=_parse_timestamp(body.get("timestamp")),
        )

    @property
    def is_valid(self) -> bool:
        return bool(
            self.event_id.strip()
            and self.event_type.strip()
            and self.created_at.strip()
            and self.data
        )

    def get(self, key: str) -> str | None:
        """String value from data, None when missing or blank."""
        value = self.data.get(key)
        if value is None:
            return None
        value = str(value).strip()
        return value or None


class WebhookRejected(Exception):
    """Raised during verification; carries the HTTP-level outcome."""

    def __init__(self, outcome: WebhookOutcome, message: str, event_id: str | None = None):
        self.result = WebhookResult(outcome, message, event_id)
        super().__init__(message)


def _parse_timestamp(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


# =============================================================================
# Webhook Reconciler
# =============================================================================


class WebhookReconciler:
    """
    Verifies provider webhooks and applies them to local state.

    Args:
        webhook_secret: Shared HMAC secret
        tolerance_seconds: Freshness window for the transport timestamp
        clock: Returns the current epoch time (injected in tests)
    """

    def __init__(
        self,
        webhook_secret: str,
        tolerance_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = webhook_secret.encode("utf-8")
        self.tolerance_seconds = tolerance_seconds
        self.clock = clock

    @classmethod
    def from_settings(cls) -> WebhookReconciler:
        return cls(
            get_provider_config().webhook_secret,
            tolerance_seconds=get_settlement_config().webhook_tolerance_seconds,
        )

    # =========================================================================
    # Verification
    # =========================================================================

    def sign(self, raw_body: bytes, timestamp: int) -> str:
        """Signature header value for a body and timestamp."""
        message = raw_body + str(timestamp).encode("utf-8")
        return SIGNATURE_PREFIX + hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def is_fresh(self, timestamp: int | None) -> bool:
        if timestamp is None:
            return False
        return abs(self.clock() - timestamp) <= self.tolerance_seconds

    def verify(
        self,
        raw_body: bytes,
        signature: str | None,
        expected_type: str,
    ) -> ProviderEvent:
        """
        Parse and authenticate a webhook body.

        Args:
            raw_body: Request body exactly as received
            signature: X-Toss-Signature header value
            expected_type: Event type this endpoint accepts

        Returns:
            The verified ProviderEvent

        Raises:
            WebhookRejected: INVALID for malformed, mistyped or stale
                events; UNAUTHORIZED for a missing or wrong signature
        """
        try:
            body = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            raise WebhookRejected(WebhookOutcome.INVALID, "Invalid webhook body")
        if not isinstance(body, dict):
            raise WebhookRejected(WebhookOutcome.INVALID, "Invalid webhook body")

        event = ProviderEvent.from_dict(body)
        log_context = {"event_id": event.event_id, "event_type": event.event_type}

        if not event.is_valid:
            logger.warning("Invalid webhook event", extra=log_context)
            raise WebhookRejected(WebhookOutcome.INVALID, "Invalid webhook event data", event.event_id)

        if event.event_type != expected_type:
            logger.warning("Unexpected webhook event type", extra={**log_context, "expected_type": expected_type})
            raise WebhookRejected(WebhookOutcome.INVALID, f"Not a {expected_type} event", event.event_id)

        missing = [name for name in REQUIRED_DATA_FIELDS.get(expected_type, ()) if event.get(name) is None]
        if missing:
            logger.warning("Webhook event is missing required fields", extra={**log_context, "missing_fields": missing})
            raise WebhookRejected(
                WebhookOutcome.INVALID,
                f"Webhook event is missing {', '.join(missing)}",
                event.event_id,
            )

        if not self.is_fresh(event.timestamp):
            logger.warning(
                "Webhook timestamp outside freshness window",
                extra={**log_context, "timestamp": event.timestamp, "tolerance_seconds": self.tolerance_seconds},
            )
            raise WebhookRejected(WebhookOutcome.INVALID, "Webhook timestamp is too old", event.event_id)

        if not signature or not signature.startswith(SIGNATURE_PREFIX):
            logger.warning("Webhook signature missing or malformed", extra=log_context)
            raise WebhookRejected(WebhookOutcome.UNAUTHORIZED, "Webhook signature verification failed", event.event_id)

        expected = self.sign(raw_body, event.timestamp)
        if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
            logger.warning("Webhook signature mismatch", extra=log_context)
            raise WebhookRejected(WebhookOutcome.UNAUTHORIZED, "Webhook signature verification failed", event.event_id)

        return event

    # =========================================================================
    # Entry Points
    # =========================================================================

    def handle_payout_changed(self, raw_body: bytes, signature: str | None) -> WebhookResult:
        """Verify and apply a payout.changed webhook."""
        return self._handle(raw_body, signature, WebhookEventType.PAYOUT_CHANGED, self.apply_payout_changed)

    def handle_seller_changed(self, raw_body: bytes, signature: str | None) -> WebhookResult:
        """Verify and apply a seller.changed webhook."""
        return self._handle(raw_body, signature, WebhookEventType.SELLER_CHANGED, self.apply_seller_changed)

    def _handle(
        self,
        raw_body: bytes,
        signature: str | None,
        expected_type: str,
        apply: Callable[[ProviderEvent], WebhookResult],
    ) -> WebhookResult:
        try:
            event = self.verify(raw_body, signature, expected_type)
        except WebhookRejected as e:
            return e.result

        record = self._record_event(event)
        if record.is_processed:
            logger.info("Webhook already processed", extra={"event_id": event.event_id})
            return WebhookResult(WebhookOutcome.ALREADY_PROCESSED, "Event already processed", event.event_id)

        record.mark_attempt()
        try:
            result = apply(event)
        except Exception as e:
            record.mark_failed(f"{type(e).__name__}: {e}")
            record.save()
            logger.error(
                "Webhook handling failed",
                extra={"event_id": event.event_id, "event_type": event.event_type},
                exc_info=True,
            )
            raise

        if result.outcome == WebhookOutcome.IGNORED:
            record.mark_ignored(result.message)
        else:
            record.mark_processed(result.message)
        record.save()

        logger.info(
            "Webhook handled",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type,
                "outcome": result.outcome.value,
                "result_message": result.message,
            },
        )
        return result

    @staticmethod
    def _record_event(event: ProviderEvent) -> ProviderWebhookEvent:
        payload = {"eventId": event.event_id, "eventType": event.event_type, "createdAt": event.created_at, "data": event.data}
        try:
            record, _ = ProviderWebhookEvent.objects.get_or_create(
                event_id=event.event_id,
                defaults={"event_type": event.event_type, "payload": payload},
            )
        except IntegrityError:
            # Concurrent delivery of the same event
            record = ProviderWebhookEvent.objects.get(event_id=event.event_id)
        return record

    # =========================================================================
    # Payout Events
    # =========================================================================

    def apply_payout_changed(self, event: ProviderEvent) -> WebhookResult:
        """
        Apply a payout status change to its settlement.

        Expects an event already passed through verify(), so the required
        data fields are present.
        """
        payout_id = event.get("payoutId")
        settlement_id = event.get("refPayoutId")
        status = (event.get("status") or "").upper()
        failure_reason = event.get("failureReason") or DEFAULT_FAILURE_REASON

        log_context = {
            "event_id": event.event_id,
            "settlement_id": settlement_id,
            "external_payout_id": payout_id,
            "payout_status": status,
        }
        enqueue_retry = False

        with transaction.atomic():
            settlement = self._lock_settlement(settlement_id)
            if settlement is None:
                logger.warning("Settlement not found for payout webhook", extra=log_context)
                return self._result(event, WebhookOutcome.IGNORED, "Settlement not found")

            if settlement.external_payout_id and settlement.external_payout_id != payout_id:
                logger.warning(
                    "Payout webhook does not match settlement payout ID",
                    extra={**log_context, "recorded_payout_id": settlement.external_payout_id},
                )
                return self._result(event, WebhookOutcome.IGNORED, "Payout ID does not match settlement")

            if status == PayoutEventStatus.COMPLETED:
                result = self._apply_completed(event, settlement, payout_id, log_context)
            elif status == PayoutEventStatus.FAILED:
                result = self._apply_failed(event, settlement, failure_reason, log_context)
                enqueue_retry = result.outcome == WebhookOutcome.PROCESSED and settlement.can_retry
            elif status == PayoutEventStatus.CANCELLED:
                result = self._apply_cancelled(event, settlement, log_context)
            else:
                logger.warning("Unsupported payout status in webhook", extra=log_context)
                return self._result(event, WebhookOutcome.IGNORED, f"Unsupported payout status {status}")

        if enqueue_retry:
            from settlements.tasks import retry_settlement

            retry_settlement.delay(str(settlement.id))
            logger.info("Settlement retry queued from webhook", extra=log_context)

        return result

    def _apply_completed(self, event, settlement: Settlement, payout_id: str, log_context) -> WebhookResult:
        if settlement.status == SettlementStatus.PROCESSING:
            settlement.complete(payout_id)
            settlement.save()
            return self._result(event, WebhookOutcome.PROCESSED, "Settlement completed")

        if settlement.status == SettlementStatus.COMPLETED:
            return self._result(event, WebhookOutcome.ALREADY_PROCESSED, "Settlement already completed")

        # PENDING, FAILED or CANCELLED: money may have moved without a
        # matching local attempt
        logger.error(
            "Payout completed for settlement that is not processing - manual reconciliation required",
            extra={**log_context, "current_status": settlement.status},
        )
        return self._result(event, WebhookOutcome.IGNORED, f"Settlement is {settlement.status}, completion not applied")

    def _apply_failed(self, event, settlement: Settlement, reason: str, log_context) -> WebhookResult:
        if settlement.status in SettlementStatus.terminal():
            logger.warning(
                "Payout failure for terminal settlement ignored",
                extra={**log_context, "current_status": settlement.status},
            )
            return self._result(event, WebhookOutcome.IGNORED, f"Settlement is {settlement.status}")

        if settlement.status == SettlementStatus.FAILED:
            # Already recorded by the synchronous path
            return self._result(event, WebhookOutcome.ALREADY_PROCESSED, "Settlement already failed")

        settlement.fail(reason)
        settlement.save()
        return self._result(event, WebhookOutcome.PROCESSED, "Settlement failed")

    def _apply_cancelled(self, event, settlement: Settlement, log_context) -> WebhookResult:
        if settlement.status == SettlementStatus.COMPLETED:
            logger.warning("Payout cancellation for completed settlement ignored", extra=log_context)
            return self._result(event, WebhookOutcome.IGNORED, "Settlement is COMPLETED")

        if not settlement.cancel():
            return self._result(event, WebhookOutcome.ALREADY_PROCESSED, "Settlement already cancelled")
        settlement.save()
        return self._result(event, WebhookOutcome.PROCESSED, "Settlement cancelled")

    @staticmethod
    def _lock_settlement(settlement_id: str) -> Settlement | None:
        try:
            return Settlement.objects.select_for_update().filter(pk=settlement_id).first()
        except (DjangoValidationError, ValueError):
            return None

    # =========================================================================
    # Seller Events
    # =========================================================================

    def apply_seller_changed(self, event: ProviderEvent) -> WebhookResult:
        """Apply a seller approval status change and queue follow-up sweeps."""
        seller_id = event.get("sellerId")
        ref_seller_id = event.get("refSellerId")
        status = (event.get("status") or "").upper()

        log_context = {
            "event_id": event.event_id,
            "ref_seller_id": ref_seller_id,
            "external_seller_id": seller_id,
            "seller_status": status,
        }

        if status not in SellerStatus.values:
            logger.warning("Unsupported seller status in webhook", extra=log_context)
            return self._result(event, WebhookOutcome.IGNORED, f"Unsupported seller status {status}")

        with transaction.atomic():
            account = SellerAccount.objects.select_for_update().filter(ref_seller_id=ref_seller_id).first()
            if account is None:
                logger.warning("Seller account not found for seller webhook", extra=log_context)
                return self._result(event, WebhookOutcome.IGNORED, "Seller account not found")

            if account.external_seller_id and account.external_seller_id != seller_id:
                logger.warning(
                    "Seller webhook does not match recorded seller ID",
                    extra={**log_context, "recorded_seller_id": account.external_seller_id},
                )
                return self._result(event, WebhookOutcome.IGNORED, "Seller ID does not match account")

            if account.status == status and account.is_registered:
                return self._result(event, WebhookOutcome.IGNORED, "Seller status unchanged")

            was_eligible = account.payout_eligible
            previous_status = account.status
            if not account.is_registered:
                account.assign_external_id(seller_id)
            account.update_status(status)
            account.save()

        logger.info(
            "Seller status updated from webhook",
            extra={**log_context, "previous_status": previous_status},
        )

        from settlements.tasks import SWEEP_FAIL, SWEEP_PROCESS, sweep_seller_settlements

        if account.payout_eligible and not was_eligible:
            sweep_seller_settlements.delay(str(account.id), SWEEP_PROCESS)
        elif account.is_rejected:
            sweep_seller_settlements.delay(str(account.id), SWEEP_FAIL)

        return self._result(event, WebhookOutcome.PROCESSED, f"Seller status updated to {status}")

    @staticmethod
    def _result(event: ProviderEvent, outcome: WebhookOutcome, message: str) -> WebhookResult:
        return WebhookResult(outcome, message, event.event_id)


__all__ = [
    "ProviderEvent",
    "WebhookOutcome",
    "WebhookReconciler",
    "WebhookRejected",
    "WebhookResult",
]
