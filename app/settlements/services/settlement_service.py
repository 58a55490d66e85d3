"""
Settlement service for fee splitting and payout execution.

This module provides the SettlementService class which owns the settlement
lifecycle from creation through payout.

Payout execution follows a three-phase pattern:
1. Phase 1: Validate and transition the settlement to PROCESSING, commit
2. Phase 2: Call the payout provider (outside any transaction)
3. Phase 3: Record COMPLETED or FAILED under a row lock

A distributed lock keyed by settlement ID spans all three phases, so two
workers never send the same settlement to the provider concurrently. The
provider call is additionally keyed by the settlement ID, so even a repeat
after a timeout cannot create a second transfer.

Usage:
    from settlements.services import SettlementService

    settlement = SettlementService.create_settlement(
        store_id=store.id,
        order_id="order-123",
        original_amount=Decimal("10000"),
    )

    try:
        settlement = SettlementService.process_settlement(settlement.id)
    except SettlementError as e:
        if e.retryable:
            retry_settlement.delay(str(settlement.id))
"""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.db.models import Count, Q, QuerySet, Sum

from core.services import BaseService

from settlements.adapters import Balance, PayoutGateway, PayoutResult
from settlements.conf import get_settlement_config
from settlements.exceptions import ErrorKind, SettlementError
from settlements.fees import calculate_fee_split
from settlements.locks import DistributedLock, lock_for_update
from settlements.models import SellerAccount, Settlement
from settlements.state_machines import SettlementStatus
from stores.models import Store


# =============================================================================
# Constants
# =============================================================================

# Distributed lock TTL for payout execution (seconds); longer than the
# provider connect + read timeouts
SETTLEMENT_LOCK_TTL = 90

ZERO = Decimal("0.00")


def settlement_lock_key(settlement_id: Any) -> str:
    return f"settlement:process:{settlement_id}"


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class SettlementSummary:
    """
    Daily aggregate for one store.

    Totals cover every settlement created on the date, whatever its status.
    pending_count includes PROCESSING settlements.
    """

    store_id: str
    date: datetime.date
    total_original_amount: Decimal
    total_platform_fee: Decimal
    total_settlement_amount: Decimal
    total_count: int
    completed_count: int
    pending_count: int
    failed_count: int
    cancelled_count: int


# =============================================================================
# Settlement Service
# =============================================================================


class SettlementService(BaseService):
    """
    Service for settlement creation, payout and reporting.

    Error Handling:
        Every failure is raised as SettlementError with an ErrorKind.
        Provider failures during payout are recorded on the settlement
        (FAILED, error_message, retry_count) and then re-raised with their
        original kind, so callers can still decide on a retry.

    Usage:
        settlement = SettlementService.process_settlement(settlement_id)
        summary = SettlementService.get_summary(store_id, date.today())
    """

    # Payout gateway - can be injected for testing
    _gateway: PayoutGateway | None = None

    @classmethod
    def get_gateway(cls) -> PayoutGateway:
        """Get the payout gateway, building it from settings on first use."""
        if cls._gateway is None:
            SettlementService._gateway = PayoutGateway.from_settings()
        return cls._gateway

    @classmethod
    def set_gateway(cls, gateway: PayoutGateway | None) -> None:
        """Set the payout gateway (for testing)."""
        SettlementService._gateway = gateway

    # =========================================================================
    # Creation
    # =========================================================================

    @classmethod
    def create_settlement(
        cls,
        store_id: uuid.UUID | str,
        order_id: str,
        original_amount: Any,
        metadata: dict[str, Any] | None = None,
    ) -> Settlement:
        """
        Create a PENDING settlement for a captured order.

        Args:
            store_id: Store receiving the net share
            order_id: Order the payment belongs to (one settlement per order)
            original_amount: Captured gross amount (Decimal, int or string)
            metadata: Optional JSON metadata

        Returns:
            The new settlement

        Raises:
            SettlementError(kind=VALIDATION): Blank order ID, bad amount or
                metadata that is not an object
            SettlementError(kind=NOT_FOUND): Unknown or inactive store
            SettlementError(kind=DUPLICATE): A settlement for the order exists
        """
        if not order_id or not str(order_id).strip():
            raise SettlementError("Order ID is required", kind=ErrorKind.VALIDATION)
        if metadata is not None and not isinstance(metadata, dict):
            raise SettlementError("Metadata must be an object", kind=ErrorKind.VALIDATION)

        split = calculate_fee_split(original_amount, get_settlement_config().platform_fee_rate)
        store = cls.get_store(store_id)

        if Settlement.objects.filter(order_id=order_id).exists():
            raise SettlementError(
                "A settlement already exists for this order",
                kind=ErrorKind.DUPLICATE,
                details={"order_id": order_id},
            )

        try:
            with cls.atomic():
                settlement = Settlement.objects.create(
                    store=store,
                    order_id=order_id,
                    original_amount=split.gross,
                    platform_fee_rate=split.rate,
                    platform_fee=split.fee,
                    settlement_amount=split.net,
                    metadata=metadata or {},
                )
        except IntegrityError:
            # Lost a race with a concurrent request for the same order
            raise SettlementError(
                "A settlement already exists for this order",
                kind=ErrorKind.DUPLICATE,
                details={"order_id": order_id},
            )

        cls.get_logger().info(
            "Settlement created",
            extra={
                "settlement_id": str(settlement.id),
                "store_id": str(store.id),
                "order_id": order_id,
                "original_amount": str(split.gross),
                "platform_fee": str(split.fee),
                "settlement_amount": str(split.net),
            },
        )
        return settlement

    @staticmethod
    def get_store(store_id: Any) -> Store:
        try:
            store = Store.objects.filter(pk=store_id, is_active=True).first()
        except (DjangoValidationError, ValueError, TypeError):
            store = None
        if store is None:
            raise SettlementError(
                f"Store {store_id} not found",
                kind=ErrorKind.NOT_FOUND,
                details={"store_id": str(store_id)},
            )
        return store

    # =========================================================================
    # Payout Execution
    # =========================================================================

    @classmethod
    def process_settlement(cls, settlement_id: uuid.UUID | str) -> Settlement:
        """
        Send a PENDING settlement's net amount to the store's seller account.

        Args:
            settlement_id: Settlement to process

        Returns:
            The settlement, COMPLETED on provider success

        Raises:
            LockAcquisitionError: Another worker is processing the settlement
            SettlementError(kind=NOT_FOUND): Unknown settlement
            SettlementError(kind=STATE_CONFLICT): Settlement is not processable
            SettlementError(kind=PRECONDITION_FAILED): Seller missing or not
                payout-eligible; the settlement is left untouched
            SettlementError: Provider failures, after the settlement has
                been marked FAILED
        """
        cls.get_logger().info(
            "Starting settlement processing",
            extra={"settlement_id": str(settlement_id)},
        )

        with DistributedLock(settlement_lock_key(settlement_id), ttl=SETTLEMENT_LOCK_TTL):
            return cls._process_with_lock(settlement_id)

    @classmethod
    def _process_with_lock(cls, settlement_id: uuid.UUID | str) -> Settlement:
        logger = cls.get_logger()

        # Phase 1: validate and move to PROCESSING
        with cls.atomic():
            settlement = lock_for_update(Settlement, settlement_id)

            if not settlement.can_process:
                raise SettlementError(
                    f"Settlement cannot be processed in {settlement.status} state",
                    kind=ErrorKind.STATE_CONFLICT,
                    details={
                        "settlement_id": str(settlement.id),
                        "current_status": settlement.status,
                    },
                )

            seller_account = SellerAccount.objects.filter(store_id=settlement.store_id).first()
            if seller_account is None or not seller_account.payout_eligible:
                logger.warning(
                    "Seller account not eligible for payout",
                    extra={
                        "settlement_id": str(settlement.id),
                        "store_id": str(settlement.store_id),
                        "seller_status": getattr(seller_account, "status", None),
                    },
                )
                raise SettlementError(
                    "Seller account is not eligible for payouts",
                    kind=ErrorKind.PRECONDITION_FAILED,
                    details={
                        "settlement_id": str(settlement.id),
                        "store_id": str(settlement.store_id),
                        "seller_status": getattr(seller_account, "status", None),
                    },
                )

            settlement.start()
            settlement.save()

        # Phase 2: provider call (outside transaction)
        try:
            result = cls.get_gateway().request_payout(settlement, seller_account)
        except SettlementError as e:
            cls._record_failure(settlement.id, e)
            raise

        # Phase 3: record success
        with cls.atomic():
            settlement = lock_for_update(Settlement, settlement.id)

            if settlement.status == SettlementStatus.PROCESSING:
                settlement.external_seller_id = seller_account.external_seller_id
                settlement.complete(result.payout_id)
                settlement.save()
            else:
                # A webhook got here first
                logger.info(
                    "Settlement state advanced before payout response was recorded",
                    extra={
                        "settlement_id": str(settlement.id),
                        "current_status": settlement.status,
                        "external_payout_id": result.payout_id,
                    },
                )

        logger.info(
            "Settlement payout completed",
            extra={
                "settlement_id": str(settlement.id),
                "external_payout_id": result.payout_id,
                "provider_status": result.status,
            },
        )
        return settlement

    @classmethod
    def _record_failure(cls, settlement_id: uuid.UUID, error: SettlementError) -> None:
        """Mark a PROCESSING settlement FAILED with the provider's reason."""
        with cls.atomic():
            settlement = lock_for_update(Settlement, settlement_id)
            if settlement.status != SettlementStatus.PROCESSING:
                return
            settlement.fail(f"Payout request failed: {error.message}")
            settlement.save()

        cls.get_logger().error(
            "Settlement payout failed",
            extra={
                "settlement_id": str(settlement_id),
                "kind": error.kind.name,
                "retryable": error.retryable,
                "provider_code": error.provider_code,
                "retry_count": settlement.retry_count,
            },
        )

    @classmethod
    def retry_settlement(cls, settlement_id: uuid.UUID | str) -> Settlement:
        """
        Reset a FAILED settlement to PENDING and process it again.

        A settlement already back in PENDING is processed as is.

        Raises:
            SettlementError(kind=STATE_CONFLICT): Not FAILED/PENDING or the
                retry budget is spent
            SettlementError: Anything process_settlement raises
        """
        with cls.atomic():
            settlement = lock_for_update(Settlement, settlement_id)
            if settlement.status != SettlementStatus.PENDING:
                settlement.retry()
                settlement.save()

        cls.get_logger().info(
            "Retrying settlement",
            extra={"settlement_id": str(settlement_id), "retry_count": settlement.retry_count},
        )
        return cls.process_settlement(settlement_id)

    @classmethod
    def cancel_settlement(
        cls,
        settlement_id: uuid.UUID | str,
        expected_version: int | None = None,
    ) -> Settlement:
        """
        Cancel a settlement that has not completed.

        Takes the processing lock without waiting, so a settlement whose
        payout request is in flight cannot be cancelled underneath it.
        Payouts already accepted by the provider are cancelled with
        cancel_payout().

        Args:
            settlement_id: Settlement to cancel
            expected_version: Version the caller last saw (optional)

        Raises:
            LockAcquisitionError: A payout request is in flight
            StaleRecordError: The settlement changed since expected_version
            SettlementError(kind=STATE_CONFLICT): Settlement is COMPLETED
        """
        with DistributedLock(settlement_lock_key(settlement_id), ttl=SETTLEMENT_LOCK_TTL):
            with cls.atomic():
                settlement = lock_for_update(Settlement, settlement_id, expected_version)
                if not settlement.cancel():
                    return settlement
                settlement.save()

        cls.get_logger().info("Settlement cancelled", extra={"settlement_id": str(settlement_id)})
        return settlement

    @classmethod
    def fail_pending_settlement(cls, settlement_id: uuid.UUID | str, reason: str) -> Settlement:
        """
        Fail a PENDING settlement that can no longer be paid out.

        Used when the store's seller account is rejected or suspended. The
        processing lock is taken without waiting so an in-flight payout is
        never failed underneath its request.

        Raises:
            LockAcquisitionError: A payout request is in flight
            SettlementError(kind=STATE_CONFLICT): Settlement is not PENDING
        """
        with DistributedLock(settlement_lock_key(settlement_id), ttl=SETTLEMENT_LOCK_TTL):
            with cls.atomic():
                settlement = lock_for_update(Settlement, settlement_id)
                if settlement.status != SettlementStatus.PENDING:
                    raise SettlementError(
                        f"Cannot fail settlement in {settlement.status} state",
                        kind=ErrorKind.STATE_CONFLICT,
                        details={"settlement_id": str(settlement.id), "current_status": settlement.status},
                    )
                settlement.fail(reason)
                settlement.save()

        cls.get_logger().warning(
            "Pending settlement failed",
            extra={"settlement_id": str(settlement_id), "reason": reason},
        )
        return settlement

    # =========================================================================
    # Queries
    # =========================================================================

    @classmethod
    def get_settlement(cls, settlement_id: uuid.UUID | str) -> Settlement:
        try:
            settlement = Settlement.objects.select_related("store").filter(pk=settlement_id).first()
        except (DjangoValidationError, ValueError):
            settlement = None
        if settlement is None:
            raise SettlementError(
                f"Settlement {settlement_id} not found",
                kind=ErrorKind.NOT_FOUND,
                details={"settlement_id": str(settlement_id)},
            )
        return settlement

    @classmethod
    def list_settlements(
        cls,
        store_id: uuid.UUID | str | None = None,
        start: datetime.datetime | None = None,
        end: datetime.datetime | None = None,
    ) -> QuerySet[Settlement]:
        """
        Settlements newest first, optionally by store and creation range.

        Both range bounds are inclusive.
        """
        queryset = Settlement.objects.select_related("store").order_by("-created_at")
        if store_id:
            queryset = queryset.filter(store_id=store_id)
        if start:
            queryset = queryset.filter(created_at__gte=start)
        if end:
            queryset = queryset.filter(created_at__lte=end)
        return queryset

    @classmethod
    def get_summary(cls, store_id: uuid.UUID | str, date: datetime.date) -> SettlementSummary:
        """
        Aggregate a store's settlements created on one day.

        Raises:
            SettlementError(kind=VALIDATION): Missing store ID or date
        """
        if not store_id or date is None:
            raise SettlementError("Store ID and date are required", kind=ErrorKind.VALIDATION)

        totals = Settlement.objects.filter(store_id=store_id, created_at__date=date).aggregate(
            total_original_amount=Sum("original_amount"),
            total_platform_fee=Sum("platform_fee"),
            total_settlement_amount=Sum("settlement_amount"),
            total_count=Count("id"),
            completed_count=Count("id", filter=Q(status=SettlementStatus.COMPLETED)),
            pending_count=Count(
                "id",
                filter=Q(status__in=[SettlementStatus.PENDING, SettlementStatus.PROCESSING]),
            ),
            failed_count=Count("id", filter=Q(status=SettlementStatus.FAILED)),
            cancelled_count=Count("id", filter=Q(status=SettlementStatus.CANCELLED)),
        )

        return SettlementSummary(
            store_id=str(store_id),
            date=date,
            total_original_amount=totals["total_original_amount"] or ZERO,
            total_platform_fee=totals["total_platform_fee"] or ZERO,
            total_settlement_amount=totals["total_settlement_amount"] or ZERO,
            total_count=totals["total_count"],
            completed_count=totals["completed_count"],
            pending_count=totals["pending_count"],
            failed_count=totals["failed_count"],
            cancelled_count=totals["cancelled_count"],
        )

    @classmethod
    def get_balance(cls) -> Balance:
        """Current provider balance."""
        return cls.get_gateway().get_balance()

    @classmethod
    def cancel_payout(cls, external_payout_id: str) -> PayoutResult:
        """
        Ask the provider to cancel a payout it has not executed yet.

        Settlement records are not touched: the provider reports the
        outcome through the payout.changed webhook.

        Raises:
            SettlementError(kind=VALIDATION): Blank payout ID
            SettlementError: Provider refused or was unreachable
        """
        result = cls.get_gateway().cancel_payout(external_payout_id)
        cls.get_logger().info(
            "Provider payout cancelled",
            extra={"external_payout_id": result.payout_id, "payout_status": result.status},
        )
        return result


__all__ = [
    "SettlementService",
    "SettlementSummary",
]
