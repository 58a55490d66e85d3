"""
ProviderWebhookEvent model for payout provider webhook tracking.

Every accepted webhook is recorded here before its handler runs. The unique
event_id constraint turns provider redelivery into a cheap lookup instead
of a second pass through the business logic.

Usage:
    from settlements.models import ProviderWebhookEvent

    event, created = ProviderWebhookEvent.objects.get_or_create(
        event_id="evt_123",
        defaults={"event_type": "payout.changed", "payload": payload},
    )

    if not created and event.is_processed:
        # Duplicate delivery - already applied
        return

    # ... handle event ...
    event.mark_processed("Settlement completed")
    event.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from settlements.state_machines import WebhookEventStatus, WebhookEventType


class ProviderWebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Dedupe record for provider webhook events.

    Processing Flow:
        1. Webhook arrives, signature and freshness verified
        2. Insert/get ProviderWebhookEvent with event_id
        3. If exists and PROCESSED or IGNORED -> "already processed"
        4. Route to the payout or seller handler
        5. Mark PROCESSED, IGNORED or FAILED

    A FAILED event is picked up again when the provider redelivers it.

    Fields:
        event_id: Provider event ID (unique)
        event_type: payout.changed or seller.changed
        payload: Event body as received
        status: Processing status
        result_message: Outcome description (reason for ignore/failure)
        processed_at: When the event reached a final status
        attempts: Number of times the handler ran for this event
    """

    event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Provider event ID - unique constraint for idempotency",
    )

    event_type = models.CharField(
        max_length=50,
        choices=WebhookEventType.choices,
        db_index=True,
        help_text="Provider event type",
    )

    payload = models.JSONField(
        default=dict,
        help_text="Event body as received from the provider",
    )

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    result_message = models.TextField(
        blank=True,
        default="",
        help_text="Outcome description",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the event reached a final status",
    )

    attempts = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of handler runs",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Provider Webhook Event"
        verbose_name_plural = "Provider Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
            models.Index(fields=["event_type", "created_at"], name="webhook_type_created_idx"),
        ]

    def __str__(self) -> str:
        return f"ProviderWebhookEvent({self.event_id}, {self.event_type})"

    @property
    def is_processed(self) -> bool:
        """Check if the event reached a final, non-failed status."""
        return self.status in (WebhookEventStatus.PROCESSED, WebhookEventStatus.IGNORED)

    # ==========================================================================
    # Helper Methods
    # ==========================================================================
    #
    # None of these save - caller must save after calling.

    def mark_attempt(self) -> None:
        self.attempts += 1

    def mark_processed(self, message: str = "") -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.result_message = message
        self.processed_at = timezone.now()

    def mark_ignored(self, message: str) -> None:
        self.status = WebhookEventStatus.IGNORED
        self.result_message = message
        self.processed_at = timezone.now()

    def mark_failed(self, message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.result_message = message
