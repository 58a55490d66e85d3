"""
State enums for settlement models.

This module defines all state enums used by settlement models with django-fsm.
These are Django TextChoices for database storage and admin integration.

Stored values are the provider's wire literals (upper case) so that records,
API responses and provider payloads all agree on spelling.

State Machines Overview:

Settlement States:
    PENDING → PROCESSING → COMPLETED
    PENDING → PROCESSING → FAILED → PENDING (retry, at most 3 failures)
    PENDING/PROCESSING/FAILED → CANCELLED

Seller States:
    APPROVAL_REQUIRED → PARTIALLY_APPROVED (individual business) → APPROVED
    APPROVAL_REQUIRED → KYC_REQUIRED (corporate) → APPROVED
    any → REJECTED/SUSPENDED (provider-side refusal)
"""

from django.db import models


class SettlementStatus(models.TextChoices):
    """
    States for the Settlement model lifecycle.

    Terminal states: COMPLETED, CANCELLED
    FAILED is terminal only once the retry budget is spent.

    State Flow:
        PENDING → PROCESSING → COMPLETED
        PENDING → PROCESSING → FAILED

    Recovery Flow:
        FAILED → PENDING (retry while retry_count < 3)

    Cancellation Flow:
        PENDING/PROCESSING/FAILED → CANCELLED
    """

    PENDING = "PENDING", "Pending"
    PROCESSING = "PROCESSING", "Processing"
    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"
    CANCELLED = "CANCELLED", "Cancelled"

    @classmethod
    def terminal(cls) -> list[str]:
        """States no writer may move a settlement out of."""
        return [cls.COMPLETED, cls.CANCELLED]


class SellerStatus(models.TextChoices):
    """
    Provider approval status of a store's seller account.

    Payout-eligible states: APPROVED, PARTIALLY_APPROVED
    Pending states: APPROVAL_REQUIRED, KYC_REQUIRED
    Rejection states: REJECTED, SUSPENDED

    Note:
        PARTIALLY_APPROVED only happens for individual businesses, which
        may receive payouts up to a provider limit before full approval.
        Corporate sellers go through KYC_REQUIRED instead.
    """

    APPROVAL_REQUIRED = "APPROVAL_REQUIRED", "Approval Required"
    PARTIALLY_APPROVED = "PARTIALLY_APPROVED", "Partially Approved"
    KYC_REQUIRED = "KYC_REQUIRED", "KYC Required"
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"
    SUSPENDED = "SUSPENDED", "Suspended"

    @classmethod
    def payout_eligible(cls) -> list[str]:
        return [cls.APPROVED, cls.PARTIALLY_APPROVED]

    @classmethod
    def pending(cls) -> list[str]:
        return [cls.APPROVAL_REQUIRED, cls.KYC_REQUIRED]

    @classmethod
    def rejected(cls) -> list[str]:
        return [cls.REJECTED, cls.SUSPENDED]


class BusinessType(models.TextChoices):
    """
    Business category of a seller.

    INDIVIDUAL_BUSINESS: Sole proprietor, usually approved within 1-2 days,
        supports partial approval.
    CORPORATE: Incorporated business, requires KYC, usually 3-7 days.
    """

    INDIVIDUAL_BUSINESS = "INDIVIDUAL_BUSINESS", "Individual Business"
    CORPORATE = "CORPORATE", "Corporate"


class WebhookEventType(models.TextChoices):
    """Provider webhook event types handled by the reconciler."""

    PAYOUT_CHANGED = "payout.changed", "Payout Changed"
    SELLER_CHANGED = "seller.changed", "Seller Changed"


class PayoutEventStatus(models.TextChoices):
    """Payout status literals carried in payout.changed webhooks."""

    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"
    CANCELLED = "CANCELLED", "Cancelled"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for provider webhook events.

    Flow:
        PENDING → PROCESSED (applied to local state)
        PENDING → IGNORED (no matching record, stale or foreign)
        PENDING → FAILED (handler raised, provider will redeliver)
    """

    PENDING = "pending", "Pending"
    PROCESSED = "processed", "Processed"
    IGNORED = "ignored", "Ignored"
    FAILED = "failed", "Failed"
