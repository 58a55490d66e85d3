"""
Pytest fixtures for settlement tests.

This module provides fixtures for creating settlement-related test data.
Fixtures are designed to provide objects in various states for testing
state transitions and business logic.

Every test runs with a mocked Redis connection (distributed locks always
succeed) and with the provider configuration caches cleared, so settings
overrides take effect.

Usage:
    def test_complete_payout(processing_settlement):
        processing_settlement.complete("payout_abc")
        processing_settlement.save()
        assert processing_settlement.status == SettlementStatus.COMPLETED
"""

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from settlements.adapters import PayoutGateway
from settlements.conf import ProviderConfig, get_provider_config, get_settlement_config
from settlements.services import SettlementService
from settlements.state_machines import BusinessType, SellerStatus
from settlements.tests.factories import (
    TEST_SECURITY_KEY,
    TEST_WEBHOOK_SECRET,
    SellerAccountFactory,
    SettlementFactory,
)
from stores.tests.factories import StoreFactory


# =============================================================================
# Infrastructure Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def mock_redis(mocker):
    """
    Mock Redis client for distributed locks.

    Locks are acquired and released successfully unless a test reconfigures
    the returned mock.
    """
    mock_client = mocker.MagicMock()
    mock_client.set.return_value = True
    mock_client.eval.return_value = 1

    mocker.patch("settlements.locks.get_redis_connection", return_value=mock_client)

    return mock_client


@pytest.fixture(autouse=True)
def reset_settlement_config():
    """Clear cached configuration and the injected gateway around each test."""
    get_provider_config.cache_clear()
    get_settlement_config.cache_clear()
    yield
    get_provider_config.cache_clear()
    get_settlement_config.cache_clear()
    SettlementService.set_gateway(None)


@pytest.fixture
def provider_config():
    """Provider configuration pointing at a fake host."""
    return ProviderConfig(
        base_url="https://provider.test",
        secret_key="test_sk_settlement",
        security_key=TEST_SECURITY_KEY,
        webhook_secret=TEST_WEBHOOK_SECRET,
        webhook_url="https://api.example.test/api/v1/settlements/webhooks/payout/",
        connect_timeout=3.0,
        read_timeout=5.0,
    )


@pytest.fixture
def mock_gateway(mocker):
    """
    Mock payout gateway injected into SettlementService.

    Configure per test, e.g.:
        mock_gateway.request_payout.return_value = PayoutResult("payout_1", "COMPLETED")
    """
    gateway = mocker.create_autospec(PayoutGateway, instance=True)
    SettlementService.set_gateway(gateway)
    return gateway


# =============================================================================
# Store and Seller Fixtures
# =============================================================================


@pytest.fixture
def store(db):
    """Create an active store."""
    return StoreFactory()


@pytest.fixture
def seller_account(db, store):
    """Create a registered, APPROVED seller account for the store."""
    return SellerAccountFactory(store=store)


@pytest.fixture
def unapproved_seller_account(db, store):
    """Create a registered seller still waiting for approval."""
    return SellerAccountFactory(
        store=store,
        status=SellerStatus.APPROVAL_REQUIRED,
        approved_at=None,
    )


@pytest.fixture
def unregistered_seller_account(db, store):
    """Create a seller account the provider has not assigned an ID to yet."""
    return SellerAccountFactory(
        store=store,
        external_seller_id=None,
        status=SellerStatus.APPROVAL_REQUIRED,
        approved_at=None,
        business_type=BusinessType.CORPORATE,
    )


# =============================================================================
# Settlement State Fixtures
# =============================================================================


@pytest.fixture
def pending_settlement(db, seller_account):
    """Create a PENDING settlement for a store with an approved seller."""
    return SettlementFactory(store=seller_account.store)


@pytest.fixture
def processing_settlement(db, seller_account):
    """Create a PROCESSING settlement."""
    settlement = SettlementFactory(store=seller_account.store)
    settlement.start()
    settlement.external_seller_id = seller_account.external_seller_id
    settlement.save()
    return settlement


@pytest.fixture
def completed_settlement(db, seller_account):
    """Create a COMPLETED settlement with provider payout ID payout_done_1."""
    settlement = SettlementFactory(store=seller_account.store)
    settlement.start()
    settlement.save()
    settlement.complete("payout_done_1")
    settlement.save()
    return settlement


@pytest.fixture
def failed_settlement(db, seller_account):
    """Create a FAILED settlement after one failed attempt."""
    settlement = SettlementFactory(store=seller_account.store)
    settlement.start()
    settlement.save()
    settlement.fail("Payout request failed: provider unavailable")
    settlement.save()
    return settlement


@pytest.fixture
def exhausted_settlement(db, seller_account):
    """Create a FAILED settlement whose retry budget is spent."""
    settlement = SettlementFactory(store=seller_account.store)
    for attempt in range(3):
        if attempt:
            settlement.retry()
        settlement.start()
        settlement.fail(f"Attempt {attempt + 1} failed")
        settlement.save()
    return settlement


@pytest.fixture
def cancelled_settlement(db, seller_account):
    """Create a CANCELLED settlement."""
    settlement = SettlementFactory(store=seller_account.store)
    settlement.cancel()
    settlement.save()
    return settlement


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def staff_user(db):
    """Create a back-office staff user."""
    return get_user_model().objects.create_user(
        username="settlement-ops",
        email="ops@example.com",
        password="testpass123",
        is_staff=True,
    )


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture
def authenticated_client(api_client, staff_user):
    """DRF test client authenticated as a staff user."""
    api_client.force_authenticate(user=staff_user)
    return api_client
