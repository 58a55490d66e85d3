"""
Tests for settlement models.

Covers Settlement persistence rules, SellerAccount status handling and
ProviderWebhookEvent bookkeeping. State machine transitions are tested in
test_state_transitions.py.
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError, models, transaction

from settlements.exceptions import ErrorKind, SettlementError
from settlements.models import SellerAccount, Settlement
from settlements.state_machines import SellerStatus, SettlementStatus, WebhookEventStatus
from settlements.tests.factories import (
    ProviderWebhookEventFactory,
    SellerAccountFactory,
    SettlementFactory,
)


# =============================================================================
# Settlement Tests
# =============================================================================


class TestSettlementModel:
    """Tests for Settlement persistence."""

    def test_defaults(self, db):
        settlement = SettlementFactory()

        assert settlement.status == SettlementStatus.PENDING
        assert settlement.retry_count == 0
        assert settlement.version == 1
        assert settlement.external_payout_id is None
        assert settlement.requested_at is not None
        assert settlement.can_process is True

    def test_version_increments_on_save(self, db):
        settlement = SettlementFactory()

        settlement.metadata = {"note": "first"}
        settlement.save()
        assert settlement.version == 2

        settlement.metadata = {"note": "second"}
        settlement.save()
        assert settlement.version == 3

    def test_order_id_is_unique(self, db):
        SettlementFactory(order_id="order-dup")

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                SettlementFactory(order_id="order-dup")

    def test_original_amount_must_be_positive(self, db):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                SettlementFactory(
                    original_amount=Decimal("0.00"),
                    platform_fee=Decimal("0.00"),
                    settlement_amount=Decimal("0.00"),
                )

    def test_zero_net_amount_cannot_be_processed(self, db):
        settlement = SettlementFactory(
            original_amount=Decimal("1.00"),
            platform_fee=Decimal("1.00"),
            settlement_amount=Decimal("0.00"),
        )

        assert settlement.can_process is False

    def test_status_cannot_be_assigned_directly(self, db):
        settlement = SettlementFactory()

        with pytest.raises(AttributeError):
            settlement.status = SettlementStatus.COMPLETED

    def test_str(self, db):
        settlement = SettlementFactory()

        assert str(settlement.id) in str(settlement)
        assert "8000.00" in str(settlement)

    def test_amounts_round_trip_exactly(self, db):
        settlement = SettlementFactory(
            original_amount=Decimal("12345.67"),
            platform_fee=Decimal("2469.13"),
            settlement_amount=Decimal("9876.54"),
        )

        stored = Settlement.objects.get(pk=settlement.pk)

        assert stored.original_amount == Decimal("12345.67")
        assert stored.platform_fee + stored.settlement_amount == stored.original_amount


# =============================================================================
# SellerAccount Tests
# =============================================================================


class TestSellerAccountModel:
    """Tests for SellerAccount identity and status rules."""

    def test_assign_external_id_once(self, db):
        account = SellerAccountFactory(external_seller_id=None)

        account.assign_external_id("seller_1")
        account.save()

        assert account.external_seller_id == "seller_1"
        assert account.is_registered is True

    def test_assign_external_id_twice_fails_even_with_same_id(self, db):
        account = SellerAccountFactory(external_seller_id="seller_1")

        with pytest.raises(SettlementError) as exc_info:
            account.assign_external_id("seller_1")

        assert exc_info.value.kind == ErrorKind.STATE_CONFLICT
        assert account.external_seller_id == "seller_1"

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_assign_blank_external_id(self, db, value):
        account = SellerAccountFactory(external_seller_id=None)

        with pytest.raises(SettlementError) as exc_info:
            account.assign_external_id(value)

        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_update_status_stamps_approved_at_once(self, db):
        account = SellerAccountFactory(status=SellerStatus.APPROVAL_REQUIRED, approved_at=None)

        assert account.update_status(SellerStatus.PARTIALLY_APPROVED) is True
        first_approval = account.approved_at
        assert first_approval is not None

        account.update_status(SellerStatus.APPROVED)

        assert account.approved_at == first_approval

    def test_update_status_unchanged_returns_false(self, db):
        account = SellerAccountFactory(status=SellerStatus.KYC_REQUIRED, approved_at=None)

        assert account.update_status(SellerStatus.KYC_REQUIRED) is False

    def test_update_status_rejects_unknown_value(self, db):
        account = SellerAccountFactory()

        with pytest.raises(SettlementError) as exc_info:
            account.update_status("ON_HOLD")

        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert account.status == SellerStatus.APPROVED

    def test_regression_from_approved_is_applied_and_logged(self, db, mocker):
        logger = mocker.patch("settlements.models.seller_account.logger")
        account = SellerAccountFactory(status=SellerStatus.APPROVED)

        assert account.update_status(SellerStatus.SUSPENDED) is True

        assert account.status == SellerStatus.SUSPENDED
        assert account.is_rejected is True
        assert "regressed from APPROVED" in logger.warning.call_args.args[0]

    def test_approve_is_idempotent(self, db):
        account = SellerAccountFactory(status=SellerStatus.KYC_REQUIRED, approved_at=None)

        account.approve()
        approved_at = account.approved_at
        account.approve()

        assert account.status == SellerStatus.APPROVED
        assert account.approved_at == approved_at

    def test_status_is_freely_assignable(self, db):
        account = SellerAccountFactory(status=SellerStatus.SUSPENDED)

        account.approve()
        account.save()
        account.refresh_from_db()

        assert account.status == SellerStatus.APPROVED
        assert SellerAccount._meta.get_field("status").__class__ is models.CharField

    @pytest.mark.parametrize(
        "status,external_id,eligible",
        [
            (SellerStatus.APPROVED, "seller_1", True),
            (SellerStatus.PARTIALLY_APPROVED, "seller_1", True),
            (SellerStatus.APPROVED, None, False),
            (SellerStatus.APPROVAL_REQUIRED, "seller_1", False),
            (SellerStatus.KYC_REQUIRED, "seller_1", False),
            (SellerStatus.REJECTED, "seller_1", False),
            (SellerStatus.SUSPENDED, "seller_1", False),
        ],
    )
    def test_payout_eligible(self, db, status, external_id, eligible):
        account = SellerAccountFactory(status=status, external_seller_id=external_id)

        assert account.payout_eligible is eligible

    def test_version_increments_on_save(self, db):
        account = SellerAccountFactory()

        account.update_status(SellerStatus.SUSPENDED)
        account.save()

        assert account.version == 2


# =============================================================================
# ProviderWebhookEvent Tests
# =============================================================================


class TestProviderWebhookEventModel:
    """Tests for webhook event bookkeeping."""

    def test_event_id_is_unique(self, db):
        ProviderWebhookEventFactory(event_id="evt_dup")

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                ProviderWebhookEventFactory(event_id="evt_dup")

    def test_mark_processed(self, db):
        event = ProviderWebhookEventFactory()

        event.mark_attempt()
        event.mark_processed("Settlement completed")
        event.save()

        assert event.status == WebhookEventStatus.PROCESSED
        assert event.is_processed is True
        assert event.processed_at is not None
        assert event.attempts == 1

    def test_mark_ignored_counts_as_processed(self, db):
        event = ProviderWebhookEventFactory()

        event.mark_ignored("Settlement not found")

        assert event.is_processed is True
        assert event.result_message == "Settlement not found"

    def test_failed_event_is_not_processed(self, db):
        event = ProviderWebhookEventFactory()

        event.mark_failed("RuntimeError: boom")

        assert event.status == WebhookEventStatus.FAILED
        assert event.is_processed is False
        assert event.processed_at is None
