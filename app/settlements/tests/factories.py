"""
Factory Boy factories for settlement test data.

This module provides factories for creating test instances of settlement
models. Factories generate realistic test data while allowing easy
customization.

Usage:
    from settlements.tests.factories import (
        ProviderWebhookEventFactory,
        SellerAccountFactory,
        SettlementFactory,
    )

    # Create a PENDING settlement for 10,000 with the default 20% fee
    settlement = SettlementFactory()

    # Create an approved seller for a specific store
    account = SellerAccountFactory(store=store)

    # Create a seller still waiting for provider approval
    account = SellerAccountFactory(
        status=SellerStatus.APPROVAL_REQUIRED,
        external_seller_id=None,
    )
"""

from decimal import Decimal

import factory
from django.utils import timezone

from settlements.models import ProviderWebhookEvent, SellerAccount, Settlement
from settlements.state_machines import (
    BusinessType,
    SellerStatus,
    WebhookEventStatus,
    WebhookEventType,
)
from stores.tests.factories import StoreFactory

# Provider credentials used across the settlement tests (match app/conftest.py)
TEST_SECURITY_KEY = "a1" * 32
TEST_WEBHOOK_SECRET = "whsec_test"


class SellerAccountFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating SellerAccount instances.

    Default creates a registered, APPROVED individual business seller.
    """

    class Meta:
        model = SellerAccount

    store = factory.SubFactory(StoreFactory)
    ref_seller_id = factory.LazyAttribute(lambda o: str(o.store.id))
    external_seller_id = factory.Sequence(lambda n: f"seller_test_{n}")
    business_type = BusinessType.INDIVIDUAL_BUSINESS
    status = SellerStatus.APPROVED
    approved_at = factory.LazyFunction(timezone.now)


class SettlementFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating Settlement instances.

    Default creates a PENDING settlement for 10,000.00 split 2,000.00 /
    8,000.00.

    Example:
        # Default pending settlement
        settlement = SettlementFactory()

        # Settlement for a specific store
        settlement = SettlementFactory(store=account.store)
    """

    class Meta:
        model = Settlement

    store = factory.SubFactory(StoreFactory)
    order_id = factory.Sequence(lambda n: f"order-{n:06d}")
    original_amount = Decimal("10000.00")
    platform_fee_rate = Decimal("0.2000")
    platform_fee = Decimal("2000.00")
    settlement_amount = Decimal("8000.00")
    # Note: status is managed by FSM, default is PENDING
    metadata = factory.LazyFunction(dict)


class ProviderWebhookEventFactory(factory.django.DjangoModelFactory):
    """Factory for creating pending ProviderWebhookEvent instances."""

    class Meta:
        model = ProviderWebhookEvent

    event_id = factory.Sequence(lambda n: f"evt_test_{n}")
    event_type = WebhookEventType.PAYOUT_CHANGED
    payload = factory.LazyFunction(dict)
    status = WebhookEventStatus.PENDING
