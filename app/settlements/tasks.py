"""
Celery tasks for settlement processing.

This module provides async tasks for:
- Executing a single settlement payout
- Retrying a failed settlement with bounded backoff
- Following up on seller approval changes (process or fail pending settlements)
- Periodically re-queueing failed settlements that still have retry budget

Transient provider failures are never retried inside a worker by sleeping.
The failed settlement is recorded as FAILED and retry_settlement is queued
with a countdown from the RetryPolicy, so the horizon of all retries is
spread across the broker rather than held by one process.

Usage:
    from settlements.tasks import execute_settlement

    # Queue a settlement for payout
    execute_settlement.delay(str(settlement.id))

    # Re-queue failed settlements (typically via celery-beat)
    from settlements.tasks import retry_failed_settlements
    retry_failed_settlements.delay()
"""

from __future__ import annotations

import logging
from typing import Callable

from celery import shared_task

from settlements.conf import get_settlement_config
from settlements.exceptions import ErrorKind, LockAcquisitionError, SettlementError
from settlements.models import SellerAccount, Settlement
from settlements.retry import RetryPolicy
from settlements.state_machines import SellerStatus, SettlementStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Maximum settlements handled per periodic scan
BATCH_SIZE = 100

SWEEP_PROCESS = "process"
SWEEP_FAIL = "fail"
SWEEP_ACTIONS = (SWEEP_PROCESS, SWEEP_FAIL)


def _retry_policy() -> RetryPolicy:
    return RetryPolicy.from_config(get_settlement_config())


def schedule_settlement_retry(settlement_id: str, error: SettlementError) -> int | None:
    """
    Queue retry_settlement with the policy countdown.

    The settlement's retry_count is the number of failed attempts so far;
    it is the attempt number handed to the policy.

    Returns:
        The countdown in seconds, or None if no retry was scheduled
    """
    settlement = Settlement.objects.filter(pk=settlement_id).first()
    if settlement is None or not settlement.can_retry:
        return None

    policy = _retry_policy()
    attempt = max(settlement.retry_count, 1)
    if not policy.should_retry(error, attempt):
        return None

    countdown = policy.countdown(attempt)
    retry_settlement.apply_async(args=[settlement_id], countdown=countdown)
    logger.info(
        "Settlement retry scheduled",
        extra={
            "settlement_id": settlement_id,
            "retry_count": settlement.retry_count,
            "countdown_seconds": countdown,
        },
    )
    return countdown


def _run_payout(settlement_id: str, operation: Callable[[str], Settlement], task_name: str) -> dict:
    """
    Run a payout operation and translate the outcome into a status dict.

    Returns:
        Dict with:
        - status: One of "completed", "processing", "retry_scheduled",
                  "failed", "not_found", "invalid_state",
                  "seller_not_eligible", "lock_failed"
        - settlement_id: The settlement ID processed
        - external_payout_id: Provider payout ID if completed
        - error / error_code: Failure details
    """
    settlement_id = str(settlement_id)
    logger.info(f"Running {task_name}", extra={"settlement_id": settlement_id})

    try:
        settlement = operation(settlement_id)
    except LockAcquisitionError as e:
        logger.warning(
            f"Could not acquire lock for {task_name}",
            extra={"settlement_id": settlement_id, "error": str(e)},
        )
        return {"status": "lock_failed", "settlement_id": settlement_id, "error": str(e)}
    except SettlementError as e:
        if e.kind == ErrorKind.NOT_FOUND:
            return {"status": "not_found", "settlement_id": settlement_id}
        if e.kind == ErrorKind.STATE_CONFLICT:
            logger.info(
                "Settlement not in a processable state, skipping",
                extra={"settlement_id": settlement_id, "error": e.message},
            )
            return {"status": "invalid_state", "settlement_id": settlement_id, "error": e.message}
        if e.kind == ErrorKind.PRECONDITION_FAILED:
            return {"status": "seller_not_eligible", "settlement_id": settlement_id, "error": e.message}

        countdown = schedule_settlement_retry(settlement_id, e) if e.retryable else None
        if countdown is not None:
            return {
                "status": "retry_scheduled",
                "settlement_id": settlement_id,
                "countdown": countdown,
                "error": e.message,
                "error_code": e.error_code,
            }

        logger.error(
            f"{task_name} failed",
            extra={
                "settlement_id": settlement_id,
                "kind": e.kind.name,
                "provider_code": e.provider_code,
                "error": e.message,
            },
        )
        return {
            "status": "failed",
            "settlement_id": settlement_id,
            "error": e.message,
            "error_code": e.error_code,
        }

    if settlement.status != SettlementStatus.COMPLETED:
        return {"status": settlement.status.lower(), "settlement_id": settlement_id}

    return {
        "status": "completed",
        "settlement_id": settlement_id,
        "external_payout_id": settlement.external_payout_id,
    }


# =============================================================================
# Payout Tasks
# =============================================================================


@shared_task(bind=True, acks_late=True)
def execute_settlement(self, settlement_id: str) -> dict:
    """
    Send one PENDING settlement to the payout provider.

    A retryable provider failure leaves the settlement FAILED and queues
    retry_settlement with the policy countdown, bounded by the policy's
    max_attempts. Other failures are recorded on the settlement and
    reported in the returned dict.

    Args:
        settlement_id: UUID of the Settlement to process

    Returns:
        Status dict, see _run_payout
    """
    from settlements.services import SettlementService

    return _run_payout(settlement_id, SettlementService.process_settlement, "execute_settlement")


@shared_task(bind=True, acks_late=True)
def retry_settlement(self, settlement_id: str) -> dict:
    """
    Re-run a FAILED settlement that still has retry budget.

    Settlements already moved on (completed, cancelled, budget spent) are
    skipped, so a retry queued by both the process path and a FAILED
    webhook runs at most once.

    Args:
        settlement_id: UUID of the Settlement to retry

    Returns:
        Status dict, see _run_payout, or "skipped" when not retryable
    """
    from settlements.services import SettlementService

    settlement = Settlement.objects.filter(pk=settlement_id).only("id", "status", "retry_count").first()
    if settlement is None:
        return {"status": "not_found", "settlement_id": str(settlement_id)}

    if not settlement.can_retry and settlement.status != SettlementStatus.PENDING:
        logger.info(
            "Settlement not retryable, skipping",
            extra={
                "settlement_id": str(settlement_id),
                "current_status": settlement.status,
                "retry_count": settlement.retry_count,
            },
        )
        return {
            "status": "skipped",
            "settlement_id": str(settlement_id),
            "current_status": settlement.status,
        }

    return _run_payout(settlement_id, SettlementService.retry_settlement, "retry_settlement")


# =============================================================================
# Seller Follow-up
# =============================================================================


@shared_task(bind=True)
def sweep_seller_settlements(self, seller_account_id: str, action: str) -> dict:
    """
    Apply a seller status change to the store's PENDING settlements.

    Actions:
        process: Seller became payout-eligible; send each PENDING settlement
        fail: Seller was rejected or suspended; fail each PENDING settlement

    Each settlement is handled on its own. Failures are logged and counted
    and never stop the sweep.

    Args:
        seller_account_id: UUID of the SellerAccount that changed
        action: "process" or "fail"

    Returns:
        Dict with the action, total and per-outcome counts
    """
    from settlements.services import SettlementService

    if action not in SWEEP_ACTIONS:
        logger.error("Unknown seller sweep action", extra={"action": action})
        return {"status": "invalid_action", "action": action}

    account = SellerAccount.objects.filter(pk=seller_account_id).first()
    if account is None:
        logger.warning("Seller account not found for sweep", extra={"seller_account_id": str(seller_account_id)})
        return {"status": "not_found", "seller_account_id": str(seller_account_id)}

    settlement_ids = list(
        Settlement.objects.filter(store_id=account.store_id, status=SettlementStatus.PENDING)
        .order_by("created_at")
        .values_list("id", flat=True)
    )

    logger.info(
        "Starting seller settlement sweep",
        extra={
            "seller_account_id": str(account.id),
            "action": action,
            "seller_status": account.status,
            "settlement_count": len(settlement_ids),
        },
    )

    succeeded = 0
    failed = 0
    reason = f"Seller account {account.status}: payouts are blocked"

    for settlement_id in settlement_ids:
        try:
            if action == SWEEP_PROCESS:
                SettlementService.process_settlement(settlement_id)
            else:
                SettlementService.fail_pending_settlement(settlement_id, reason)
            succeeded += 1
        except (SettlementError, LockAcquisitionError) as e:
            failed += 1
            logger.warning(
                "Seller sweep could not handle settlement",
                extra={
                    "seller_account_id": str(account.id),
                    "settlement_id": str(settlement_id),
                    "action": action,
                    "error": str(e),
                },
            )

    logger.info(
        "Seller settlement sweep finished",
        extra={
            "seller_account_id": str(account.id),
            "action": action,
            "succeeded": succeeded,
            "failed": failed,
        },
    )

    return {
        "status": "completed",
        "seller_account_id": str(account.id),
        "action": action,
        "total": len(settlement_ids),
        "succeeded": succeeded,
        "failed": failed,
    }


# =============================================================================
# Periodic Task: Retry Failed Settlements
# =============================================================================


@shared_task(bind=True)
def retry_failed_settlements(self) -> dict:
    """
    Scan for FAILED settlements with retry budget and queue retries.

    Only settlements whose seller is still payout-eligible are queued; the
    rest stay FAILED until the seller is approved and swept.

    This task runs via celery-beat (see migration 0002).

    Returns:
        Dict with:
        - queued_count: Number of settlements queued for retry
    """
    logger.info("Starting failed settlement retry scan")

    candidates = (
        Settlement.objects.filter(
            status=SettlementStatus.FAILED,
            retry_count__lt=_retry_policy().max_attempts,
            store__seller_account__status__in=SellerStatus.payout_eligible(),
            store__seller_account__external_seller_id__isnull=False,
        )
        .order_by("updated_at")[:BATCH_SIZE]
    )

    queued_count = 0
    for settlement in candidates:
        if not settlement.can_retry:
            continue
        retry_settlement.delay(str(settlement.id))
        queued_count += 1

    logger.info(
        f"Queued {queued_count} failed settlements for retry",
        extra={"queued_count": queued_count},
    )

    return {"queued_count": queued_count}
