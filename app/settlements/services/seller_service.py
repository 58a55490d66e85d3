"""
Seller account service for provider onboarding.

Registers stores with the payout provider and keeps the local approval
status in step with what the provider reports.

Usage:
    from settlements.services import SellerAccountService

    account = SellerAccountService.register_seller(store.id)
    account.external_seller_id  # "seller_abc"

    # Calling again is a no-op that returns the same account
    SellerAccountService.register_seller(store.id)
"""

from __future__ import annotations

import uuid
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError

from core.services import BaseService

from settlements.exceptions import ErrorKind, SettlementError
from settlements.locks import lock_for_update
from settlements.models import SellerAccount
from settlements.services.settlement_service import SettlementService
from settlements.state_machines import BusinessType, SellerStatus
from stores.models import Store


class SellerAccountService(BaseService):
    """
    Service for seller registration and status changes.

    Registration is upsert-idempotent by store: an already registered
    account is returned without contacting the provider.
    """

    @classmethod
    def get_for_store(cls, store_id: uuid.UUID | str) -> SellerAccount:
        """
        Raises:
            SettlementError(kind=NOT_FOUND): The store has no seller account
        """
        try:
            account = SellerAccount.objects.select_related("store").filter(store_id=store_id).first()
        except (DjangoValidationError, ValueError):
            account = None
        if account is None:
            raise SettlementError(
                f"No seller account for store {store_id}",
                kind=ErrorKind.NOT_FOUND,
                details={"store_id": str(store_id)},
            )
        return account

    @classmethod
    def register_seller(
        cls,
        store_id: uuid.UUID | str,
        business_type: str = BusinessType.INDIVIDUAL_BUSINESS,
    ) -> SellerAccount:
        """
        Register a store with the payout provider.

        The local account row is created before the provider call, so a
        failed call can be repeated against the same ref_seller_id.

        Args:
            store_id: Store to register
            business_type: BusinessType of the store

        Returns:
            The registered seller account

        Raises:
            SettlementError(kind=VALIDATION): Unknown business type
            SettlementError(kind=NOT_FOUND): Unknown store
            SettlementError: Provider failures from the gateway
        """
        logger = cls.get_logger()

        if business_type not in BusinessType.values:
            raise SettlementError(
                f"Unknown business type: {business_type}",
                kind=ErrorKind.VALIDATION,
                details={"business_type": business_type},
            )

        store = SettlementService.get_store(store_id)
        account = cls._get_or_create_account(store, business_type)

        if account.is_registered:
            logger.info(
                "Seller already registered",
                extra={
                    "store_id": str(store.id),
                    "external_seller_id": account.external_seller_id,
                    "status": account.status,
                },
            )
            return account

        result = SettlementService.get_gateway().register_account(account)

        with cls.atomic():
            account = lock_for_update(SellerAccount, account.id)
            if account.is_registered:
                # A concurrent registration finished first
                return account

            account.assign_external_id(result.seller_id)
            cls._apply_reported_status(account, result.status)
            account.save()

        logger.info(
            "Seller registered",
            extra={
                "store_id": str(store.id),
                "external_seller_id": account.external_seller_id,
                "status": account.status,
            },
        )
        return account

    @classmethod
    def _get_or_create_account(cls, store: Store, business_type: str) -> SellerAccount:
        try:
            with cls.atomic():
                account, _ = SellerAccount.objects.get_or_create(
                    store=store,
                    defaults={
                        "ref_seller_id": str(store.id),
                        "business_type": business_type,
                    },
                )
        except IntegrityError:
            account = SellerAccount.objects.get(store=store)
        return account

    @classmethod
    def _apply_reported_status(cls, account: SellerAccount, status: Any) -> bool:
        """Apply a provider status literal, keeping the current one if unknown."""
        if not status:
            return False
        if status not in SellerStatus.values:
            cls.get_logger().warning(
                "Unknown seller status from provider, keeping current status",
                extra={"ref_seller_id": account.ref_seller_id, "reported_status": status},
            )
            return False
        return account.update_status(status)


__all__ = ["SellerAccountService"]
