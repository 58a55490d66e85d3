"""
Tests for settlements app.

This package contains test modules for:
- test_fees.py: Fee split arithmetic
- test_models.py / test_state_transitions.py: Settlement and SellerAccount rules
- test_locks.py: Redis lock and row-lock helpers
- test_masking.py: Log masking helpers
- test_retry.py: RetryPolicy backoff and synchronous runs
- test_encryption.py / test_payout_gateway.py: Provider adapter tests
- test_services.py: SettlementService and SellerAccountService tests
- test_webhooks.py: Webhook verification and reconciliation
- test_tasks.py: Celery task tests
- test_views.py: API endpoint tests
- test_integration.py: Onboarding-to-payout lifecycle

Usage:
    pytest settlements/tests/
    pytest settlements/tests/test_webhooks.py
"""
