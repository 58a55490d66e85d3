"""
SellerAccount model for provider payout onboarding.

Each store registers once with the payout provider as a "seller". The
provider reviews the registration and reports approval progress through
seller.changed webhooks. Payouts are only sent to sellers that have a
provider ID and are (partially) approved.

Usage:
    from settlements.models import SellerAccount

    account = SellerAccount.objects.create(
        store=store,
        ref_seller_id=str(store.id),
        business_type=BusinessType.INDIVIDUAL_BUSINESS,
    )

    # After provider registration
    account.assign_external_id("seller_abc")
    account.save()

    # After seller.changed webhook
    account.update_status(SellerStatus.APPROVED)
    account.save()

    if account.payout_eligible:
        ...
"""

from __future__ import annotations

import logging

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel

from settlements.exceptions import ErrorKind, SettlementError
from settlements.state_machines import BusinessType, SellerStatus

logger = logging.getLogger(__name__)


class SellerAccount(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A store's registration with the payout provider.

    Status Flow:
        APPROVAL_REQUIRED -> PARTIALLY_APPROVED -> APPROVED (individual)
        APPROVAL_REQUIRED -> KYC_REQUIRED -> APPROVED (corporate)
        any -> REJECTED/SUSPENDED (provider refusal)

    Fields:
        store: OneToOne link to the Store
        ref_seller_id: Our reference ID sent to the provider (store ID)
        external_seller_id: Provider seller ID, assignable once
        business_type: Individual business or corporate
        status: Provider approval status
        registered_at: When the registration was created
        approved_at: First time the seller became payout-eligible
        version: Optimistic locking version field

    Properties:
        payout_eligible: True if payouts can be sent to this seller

    Note:
        status is a plain field rather than an FSM field: the provider owns
        the approval process and may report any status at any time, so
        update_status() accepts every value and only logs regressions.
    """

    # ==========================================================================
    # Relationships & Identity
    # ==========================================================================

    store = models.OneToOneField(
        "stores.Store",
        on_delete=models.PROTECT,
        related_name="seller_account",
        help_text="Store this seller account belongs to",
    )

    ref_seller_id = models.CharField(
        max_length=100,
        unique=True,
        help_text="Reference seller ID sent to the provider (mirrors store ID)",
    )

    external_seller_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        unique=True,
        help_text="Provider seller ID (assigned once after registration)",
    )

    business_type = models.CharField(
        max_length=20,
        choices=BusinessType.choices,
        help_text="Business category of the seller",
    )

    # ==========================================================================
    # Approval Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=SellerStatus.choices,
        default=SellerStatus.APPROVAL_REQUIRED,
        db_index=True,
        help_text="Provider approval status",
    )

    registered_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the seller registration was created",
    )

    approved_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="First time the seller became payout-eligible",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Seller Account"
        verbose_name_plural = "Seller Accounts"
        indexes = [
            models.Index(fields=["status", "registered_at"], name="seller_status_registered_idx"),
        ]

    def __str__(self) -> str:
        return f"SellerAccount({self.ref_seller_id}, {self.status})"

    # ==========================================================================
    # Status Changes
    # ==========================================================================

    def assign_external_id(self, external_seller_id: str) -> None:
        """
        Bind the provider's seller ID to this account.

        Can only happen once. A second call fails even with the same ID, so
        an account can never be silently re-bound to another provider seller.

        Args:
            external_seller_id: Provider seller ID

        Raises:
            SettlementError(kind=VALIDATION): If the ID is blank
            SettlementError(kind=STATE_CONFLICT): If an ID is already assigned

        Note: Does not save - caller must save after calling.
        """
        if not external_seller_id or not external_seller_id.strip():
            raise SettlementError(
                "External seller ID is required",
                kind=ErrorKind.VALIDATION,
                details={"ref_seller_id": self.ref_seller_id},
            )
        if self.external_seller_id:
            raise SettlementError(
                "External seller ID is already assigned",
                kind=ErrorKind.STATE_CONFLICT,
                details={
                    "ref_seller_id": self.ref_seller_id,
                    "external_seller_id": self.external_seller_id,
                },
            )
        self.external_seller_id = external_seller_id

    def approve(self) -> None:
        """
        Mark the seller as fully approved.

        No-op if already APPROVED. approved_at is stamped only once.

        Note: Does not save - caller must save after calling.
        """
        if self.status == SellerStatus.APPROVED:
            return
        self.update_status(SellerStatus.APPROVED)

    def update_status(self, new_status: str) -> bool:
        """
        Apply a provider-reported status.

        Accepts every SellerStatus value. Moving away from APPROVED is
        logged as a regression but still applied, since the provider is
        the source of truth for approval.

        Args:
            new_status: The SellerStatus to apply

        Returns:
            True if the status changed, False if it was already current

        Raises:
            SettlementError(kind=VALIDATION): If the value is not a SellerStatus

        Note: Does not save - caller must save after calling.
        """
        if new_status not in SellerStatus.values:
            raise SettlementError(
                f"Unknown seller status: {new_status}",
                kind=ErrorKind.VALIDATION,
                details={"ref_seller_id": self.ref_seller_id, "status": new_status},
            )
        if self.status == new_status:
            return False

        previous = self.status
        if previous == SellerStatus.APPROVED:
            logger.warning(
                "Seller status regressed from APPROVED",
                extra={
                    "seller_account_id": str(self.id),
                    "ref_seller_id": self.ref_seller_id,
                    "previous_status": previous,
                    "new_status": new_status,
                },
            )

        self.status = new_status
        if new_status in SellerStatus.payout_eligible() and self.approved_at is None:
            self.approved_at = timezone.now()
        return True

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_registered(self) -> bool:
        """Check if the provider has assigned a seller ID."""
        return bool(self.external_seller_id and self.external_seller_id.strip())

    @property
    def payout_eligible(self) -> bool:
        """Check if payouts can be sent to this seller."""
        return self.is_registered and self.status in SellerStatus.payout_eligible()

    @property
    def is_pending_approval(self) -> bool:
        return self.status in SellerStatus.pending()

    @property
    def is_rejected(self) -> bool:
        return self.status in SellerStatus.rejected()
