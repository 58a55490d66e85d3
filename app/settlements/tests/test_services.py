"""
Tests for settlement services.

Tests SettlementService (creation, payout execution, retries, cancellation
and reporting) and SellerAccountService (provider registration). The payout
gateway is replaced by an autospec mock, and Redis locks are mocked by the
autouse fixture in conftest.py.
"""

import datetime
import uuid
from decimal import Decimal

import pytest
from freezegun import freeze_time

from settlements.adapters import Balance, PayoutResult, SellerRegistrationResult
from settlements.exceptions import (
    ErrorKind,
    LockAcquisitionError,
    SettlementError,
    StaleRecordError,
)
from settlements.models import SellerAccount, Settlement
from settlements.services import SellerAccountService, SettlementService
from settlements.state_machines import BusinessType, SellerStatus, SettlementStatus
from settlements.tests.factories import SettlementFactory
from stores.tests.factories import StoreFactory


def reload(settlement):
    return Settlement.objects.get(pk=settlement.pk)


# =============================================================================
# Settlement Creation
# =============================================================================


class TestCreateSettlement:
    """Tests for SettlementService.create_settlement."""

    def test_creates_pending_settlement_with_fee_split(self, store):
        settlement = SettlementService.create_settlement(
            store_id=store.id,
            order_id="order-1",
            original_amount=Decimal("10000"),
            metadata={"channel": "app"},
        )

        assert settlement.status == SettlementStatus.PENDING
        assert settlement.original_amount == Decimal("10000.00")
        assert settlement.platform_fee_rate == Decimal("0.2000")
        assert settlement.platform_fee == Decimal("2000.00")
        assert settlement.settlement_amount == Decimal("8000.00")
        assert settlement.metadata == {"channel": "app"}
        assert settlement.retry_count == 0

    def test_uses_configured_fee_rate(self, store, settings):
        settings.SETTLEMENT_PLATFORM_FEE_RATE = "0.1500"

        settlement = SettlementService.create_settlement(store.id, "order-1", "12345.67")

        assert settlement.platform_fee_rate == Decimal("0.1500")
        assert settlement.platform_fee == Decimal("1851.85")
        assert settlement.settlement_amount == Decimal("10493.82")

    def test_one_settlement_per_order(self, store):
        SettlementService.create_settlement(store.id, "order-1", Decimal("1000"))

        with pytest.raises(SettlementError) as exc_info:
            SettlementService.create_settlement(store.id, "order-1", Decimal("1000"))

        assert exc_info.value.kind == ErrorKind.DUPLICATE
        assert Settlement.objects.filter(order_id="order-1").count() == 1

    def test_unknown_store(self, db):
        with pytest.raises(SettlementError) as exc_info:
            SettlementService.create_settlement(uuid.uuid4(), "order-1", Decimal("1000"))

        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_inactive_store(self, db):
        store = StoreFactory(is_active=False)

        with pytest.raises(SettlementError) as exc_info:
            SettlementService.create_settlement(store.id, "order-1", Decimal("1000"))

        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    @pytest.mark.parametrize(
        "order_id,amount,metadata",
        [
            ("", Decimal("1000"), None),
            ("order-1", Decimal("0"), None),
            ("order-1", Decimal("-5"), None),
            ("order-1", 1000.5, None),
            ("order-1", Decimal("1000"), ["not", "an", "object"]),
        ],
    )
    def test_rejects_invalid_input(self, store, order_id, amount, metadata):
        with pytest.raises(SettlementError) as exc_info:
            SettlementService.create_settlement(store.id, order_id, amount, metadata)

        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert Settlement.objects.count() == 0


# =============================================================================
# Payout Execution
# =============================================================================


class TestProcessSettlement:
    """Tests for SettlementService.process_settlement."""

    def test_successful_payout(self, pending_settlement, seller_account, mock_gateway):
        mock_gateway.request_payout.return_value = PayoutResult("payout_1", "REQUESTED")

        settlement = SettlementService.process_settlement(pending_settlement.id)

        assert settlement.status == SettlementStatus.COMPLETED
        assert settlement.external_payout_id == "payout_1"
        assert settlement.external_seller_id == seller_account.external_seller_id
        assert settlement.completed_at is not None

        sent_settlement, sent_account = mock_gateway.request_payout.call_args.args
        assert sent_settlement.pk == pending_settlement.pk
        assert sent_account.pk == seller_account.pk

    def test_holds_processing_lock(self, pending_settlement, mock_gateway, mock_redis):
        mock_gateway.request_payout.return_value = PayoutResult("payout_1", "REQUESTED")

        SettlementService.process_settlement(pending_settlement.id)

        assert mock_redis.set.call_args.args[0] == f"lock:settlement:process:{pending_settlement.id}"
        mock_redis.eval.assert_called_once()

    def test_lock_held_elsewhere(self, pending_settlement, mock_gateway, mock_redis):
        mock_redis.set.return_value = False

        with pytest.raises(LockAcquisitionError):
            SettlementService.process_settlement(pending_settlement.id)

        mock_gateway.request_payout.assert_not_called()
        assert reload(pending_settlement).status == SettlementStatus.PENDING

    def test_seller_not_approved(self, db, unapproved_seller_account, mock_gateway):
        settlement = SettlementFactory(store=unapproved_seller_account.store)

        with pytest.raises(SettlementError) as exc_info:
            SettlementService.process_settlement(settlement.id)

        assert exc_info.value.kind == ErrorKind.PRECONDITION_FAILED
        mock_gateway.request_payout.assert_not_called()
        assert reload(settlement).status == SettlementStatus.PENDING

    def test_store_without_seller_account(self, db, mock_gateway):
        settlement = SettlementFactory()

        with pytest.raises(SettlementError) as exc_info:
            SettlementService.process_settlement(settlement.id)

        assert exc_info.value.kind == ErrorKind.PRECONDITION_FAILED
        assert reload(settlement).retry_count == 0

    @pytest.mark.parametrize(
        "fixture_name",
        ["completed_settlement", "cancelled_settlement", "failed_settlement"],
    )
    def test_only_pending_settlements_are_processed(self, request, fixture_name, mock_gateway):
        settlement = request.getfixturevalue(fixture_name)

        with pytest.raises(SettlementError) as exc_info:
            SettlementService.process_settlement(settlement.id)

        assert exc_info.value.kind == ErrorKind.STATE_CONFLICT
        mock_gateway.request_payout.assert_not_called()

    def test_unknown_settlement(self, db, mock_gateway):
        with pytest.raises(SettlementError) as exc_info:
            SettlementService.process_settlement(uuid.uuid4())

        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_transient_failure_marks_failed_and_reraises(self, pending_settlement, mock_gateway):
        mock_gateway.request_payout.side_effect = SettlementError(
            "Could not reach the payout provider",
            kind=ErrorKind.PROVIDER_TRANSIENT,
        )

        with pytest.raises(SettlementError) as exc_info:
            SettlementService.process_settlement(pending_settlement.id)

        assert exc_info.value.retryable is True
        stored = reload(pending_settlement)
        assert stored.status == SettlementStatus.FAILED
        assert stored.retry_count == 1
        assert "Could not reach the payout provider" in stored.error_message
        assert stored.can_retry is True

    def test_business_failure_keeps_provider_code(self, pending_settlement, mock_gateway):
        mock_gateway.request_payout.side_effect = SettlementError(
            "Insufficient provider balance for payout",
            kind=ErrorKind.INSUFFICIENT_BALANCE,
            provider_code="INSUFFICIENT_BALANCE",
        )

        with pytest.raises(SettlementError) as exc_info:
            SettlementService.process_settlement(pending_settlement.id)

        assert exc_info.value.kind == ErrorKind.INSUFFICIENT_BALANCE
        assert reload(pending_settlement).status == SettlementStatus.FAILED

    def test_webhook_arriving_during_request_wins(self, pending_settlement, mock_gateway):
        """A state change recorded while the provider call is in flight is kept."""

        def cancel_during_request(settlement, seller_account):
            concurrent = Settlement.objects.get(pk=settlement.pk)
            concurrent.cancel()
            concurrent.save()
            return PayoutResult("payout_1", "REQUESTED")

        mock_gateway.request_payout.side_effect = cancel_during_request

        settlement = SettlementService.process_settlement(pending_settlement.id)

        assert settlement.status == SettlementStatus.CANCELLED
        assert reload(pending_settlement).external_payout_id is None


class TestRetrySettlement:
    """Tests for SettlementService.retry_settlement."""

    def test_failed_settlement_is_retried(self, failed_settlement, mock_gateway):
        mock_gateway.request_payout.return_value = PayoutResult("payout_2", "REQUESTED")

        settlement = SettlementService.retry_settlement(failed_settlement.id)

        assert settlement.status == SettlementStatus.COMPLETED
        assert settlement.external_payout_id == "payout_2"
        assert settlement.retry_count == 1

    def test_pending_settlement_is_processed_as_is(self, pending_settlement, mock_gateway):
        mock_gateway.request_payout.return_value = PayoutResult("payout_1", "REQUESTED")

        settlement = SettlementService.retry_settlement(pending_settlement.id)

        assert settlement.status == SettlementStatus.COMPLETED

    def test_spent_budget_is_not_retried(self, exhausted_settlement, mock_gateway):
        with pytest.raises(SettlementError) as exc_info:
            SettlementService.retry_settlement(exhausted_settlement.id)

        assert exc_info.value.kind == ErrorKind.STATE_CONFLICT
        mock_gateway.request_payout.assert_not_called()

    def test_retry_failure_counts_against_budget(self, failed_settlement, mock_gateway):
        mock_gateway.request_payout.side_effect = SettlementError(
            "Provider unavailable", kind=ErrorKind.PROVIDER_TRANSIENT
        )

        with pytest.raises(SettlementError):
            SettlementService.retry_settlement(failed_settlement.id)

        assert reload(failed_settlement).retry_count == 2


class TestCancelSettlement:
    """Tests for SettlementService.cancel_settlement."""

    def test_cancel_pending(self, pending_settlement, mock_gateway):
        settlement = SettlementService.cancel_settlement(pending_settlement.id)

        assert settlement.status == SettlementStatus.CANCELLED
        mock_gateway.cancel_payout.assert_not_called()

    def test_cancel_failed(self, failed_settlement, mock_gateway):
        settlement = SettlementService.cancel_settlement(failed_settlement.id)

        assert settlement.status == SettlementStatus.CANCELLED

    def test_cancel_is_idempotent(self, cancelled_settlement, mock_gateway):
        version = cancelled_settlement.version

        settlement = SettlementService.cancel_settlement(cancelled_settlement.id)

        assert settlement.status == SettlementStatus.CANCELLED
        assert reload(cancelled_settlement).version == version

    def test_cannot_cancel_completed(self, completed_settlement, mock_gateway):
        with pytest.raises(SettlementError) as exc_info:
            SettlementService.cancel_settlement(completed_settlement.id)

        assert exc_info.value.kind == ErrorKind.STATE_CONFLICT
        assert reload(completed_settlement).status == SettlementStatus.COMPLETED

    def test_expected_version_guard(self, pending_settlement, mock_gateway):
        with pytest.raises(StaleRecordError):
            SettlementService.cancel_settlement(pending_settlement.id, expected_version=99)

        assert reload(pending_settlement).status == SettlementStatus.PENDING

    def test_matching_expected_version(self, pending_settlement, mock_gateway):
        settlement = SettlementService.cancel_settlement(
            pending_settlement.id, expected_version=pending_settlement.version
        )

        assert settlement.status == SettlementStatus.CANCELLED

    def test_in_flight_payout_cannot_be_cancelled(self, pending_settlement, mock_gateway, mock_redis):
        mock_redis.set.return_value = False

        with pytest.raises(LockAcquisitionError):
            SettlementService.cancel_settlement(pending_settlement.id)

        assert reload(pending_settlement).status == SettlementStatus.PENDING

    def test_cancel_does_not_call_provider(self, failed_settlement, mock_gateway):
        SettlementService.cancel_settlement(failed_settlement.id)

        mock_gateway.cancel_payout.assert_not_called()


class TestCancelPayout:
    """Tests for SettlementService.cancel_payout."""

    def test_cancels_at_provider(self, mock_gateway):
        mock_gateway.cancel_payout.return_value = PayoutResult("payout_live", "CANCELLED")

        result = SettlementService.cancel_payout("payout_live")

        mock_gateway.cancel_payout.assert_called_once_with("payout_live")
        assert result.status == "CANCELLED"

    def test_provider_refusal_propagates(self, completed_settlement, mock_gateway):
        mock_gateway.cancel_payout.side_effect = SettlementError(
            "Payout already executed",
            kind=ErrorKind.PROVIDER_ERROR,
            provider_code="ALREADY_COMPLETED_PAYOUT",
        )

        with pytest.raises(SettlementError) as exc_info:
            SettlementService.cancel_payout(completed_settlement.external_payout_id)

        assert exc_info.value.provider_code == "ALREADY_COMPLETED_PAYOUT"
        assert reload(completed_settlement).status == SettlementStatus.COMPLETED


class TestFailPendingSettlement:
    """Tests for SettlementService.fail_pending_settlement."""

    def test_fails_pending(self, pending_settlement):
        settlement = SettlementService.fail_pending_settlement(
            pending_settlement.id, "Seller account REJECTED: payouts are blocked"
        )

        assert settlement.status == SettlementStatus.FAILED
        assert settlement.error_message == "Seller account REJECTED: payouts are blocked"

    def test_rejects_non_pending(self, processing_settlement):
        with pytest.raises(SettlementError) as exc_info:
            SettlementService.fail_pending_settlement(processing_settlement.id, "blocked")

        assert exc_info.value.kind == ErrorKind.STATE_CONFLICT
        assert reload(processing_settlement).status == SettlementStatus.PROCESSING


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    """Tests for lookups, listing, summaries and balance."""

    def test_get_settlement(self, pending_settlement):
        assert SettlementService.get_settlement(pending_settlement.id).pk == pending_settlement.pk

    @pytest.mark.parametrize("settlement_id", [uuid.uuid4(), "not-a-uuid"])
    def test_get_settlement_not_found(self, db, settlement_id):
        with pytest.raises(SettlementError) as exc_info:
            SettlementService.get_settlement(settlement_id)

        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_list_settlements_by_store_and_range(self, store):
        other_store = StoreFactory()
        with freeze_time("2026-03-01 10:00:00"):
            early = SettlementFactory(store=store)
        with freeze_time("2026-03-02 10:00:00"):
            middle = SettlementFactory(store=store)
            SettlementFactory(store=other_store)
        with freeze_time("2026-03-03 10:00:00"):
            late = SettlementFactory(store=store)

        everything = SettlementService.list_settlements(store_id=store.id)
        assert [s.pk for s in everything] == [late.pk, middle.pk, early.pk]

        ranged = SettlementService.list_settlements(
            store_id=store.id,
            start=datetime.datetime(2026, 3, 2, 10, 0, tzinfo=datetime.timezone.utc),
            end=datetime.datetime(2026, 3, 3, 10, 0, tzinfo=datetime.timezone.utc),
        )
        assert [s.pk for s in ranged] == [late.pk, middle.pk]

    def test_daily_summary(self, seller_account):
        store = seller_account.store
        with freeze_time("2026-03-02 09:00:00"):
            SettlementFactory(store=store)
            completed = SettlementFactory(store=store)
            completed.start()
            completed.complete("payout_a")
            completed.save()
            failed = SettlementFactory(store=store)
            failed.start()
            failed.fail("rejected")
            failed.save()
            cancelled = SettlementFactory(store=store)
            cancelled.cancel()
            cancelled.save()
        with freeze_time("2026-03-03 09:00:00"):
            SettlementFactory(store=store)

        summary = SettlementService.get_summary(store.id, datetime.date(2026, 3, 2))

        assert summary.total_count == 4
        assert summary.completed_count == 1
        assert summary.pending_count == 1
        assert summary.failed_count == 1
        assert summary.cancelled_count == 1
        assert summary.total_original_amount == Decimal("40000.00")
        assert summary.total_platform_fee == Decimal("8000.00")
        assert summary.total_settlement_amount == Decimal("32000.00")

    def test_empty_summary(self, store):
        summary = SettlementService.get_summary(store.id, datetime.date(2026, 1, 1))

        assert summary.total_count == 0
        assert summary.total_settlement_amount == Decimal("0.00")

    def test_summary_requires_date(self, store):
        with pytest.raises(SettlementError) as exc_info:
            SettlementService.get_summary(store.id, None)

        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_get_balance(self, mock_gateway):
        mock_gateway.get_balance.return_value = Balance(Decimal("1000"), Decimal("50"))

        balance = SettlementService.get_balance()

        assert balance.total_amount == Decimal("1050")


# =============================================================================
# Seller Registration
# =============================================================================


class TestRegisterSeller:
    """Tests for SellerAccountService.register_seller."""

    def test_registers_new_seller(self, store, mock_gateway):
        mock_gateway.register_account.return_value = SellerRegistrationResult(
            "seller_new", SellerStatus.APPROVAL_REQUIRED
        )

        account = SellerAccountService.register_seller(store.id)

        assert account.store_id == store.id
        assert account.ref_seller_id == str(store.id)
        assert account.external_seller_id == "seller_new"
        assert account.business_type == BusinessType.INDIVIDUAL_BUSINESS
        assert account.status == SellerStatus.APPROVAL_REQUIRED
        assert account.payout_eligible is False

    def test_reported_approval_is_applied(self, store, mock_gateway):
        mock_gateway.register_account.return_value = SellerRegistrationResult(
            "seller_new", SellerStatus.APPROVED
        )

        account = SellerAccountService.register_seller(store.id, BusinessType.CORPORATE)

        assert account.payout_eligible is True
        assert account.approved_at is not None

    def test_unknown_reported_status_is_ignored(self, store, mock_gateway):
        mock_gateway.register_account.return_value = SellerRegistrationResult("seller_new", "ON_HOLD")

        account = SellerAccountService.register_seller(store.id)

        assert account.status == SellerStatus.APPROVAL_REQUIRED

    def test_already_registered_store_is_returned(self, seller_account, mock_gateway):
        account = SellerAccountService.register_seller(seller_account.store_id)

        assert account.pk == seller_account.pk
        mock_gateway.register_account.assert_not_called()

    def test_failed_registration_can_be_repeated(self, store, mock_gateway):
        mock_gateway.register_account.side_effect = [
            SettlementError("Provider unavailable", kind=ErrorKind.PROVIDER_TRANSIENT),
            SellerRegistrationResult("seller_new", SellerStatus.KYC_REQUIRED),
        ]

        with pytest.raises(SettlementError):
            SellerAccountService.register_seller(store.id)

        pending = SellerAccount.objects.get(store=store)
        assert pending.is_registered is False

        account = SellerAccountService.register_seller(store.id)

        assert account.pk == pending.pk
        assert account.external_seller_id == "seller_new"
        assert SellerAccount.objects.filter(store=store).count() == 1

    def test_unknown_business_type(self, store, mock_gateway):
        with pytest.raises(SettlementError) as exc_info:
            SellerAccountService.register_seller(store.id, "PARTNERSHIP")

        assert exc_info.value.kind == ErrorKind.VALIDATION
        mock_gateway.register_account.assert_not_called()

    def test_unknown_store(self, db, mock_gateway):
        with pytest.raises(SettlementError) as exc_info:
            SellerAccountService.register_seller(uuid.uuid4())

        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_get_for_store(self, seller_account):
        assert SellerAccountService.get_for_store(seller_account.store_id).pk == seller_account.pk

    def test_get_for_store_not_registered(self, store):
        with pytest.raises(SettlementError) as exc_info:
            SellerAccountService.get_for_store(store.id)

        assert exc_info.value.kind == ErrorKind.NOT_FOUND
