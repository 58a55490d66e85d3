"""
Settlement model for splitting a captured payment between platform and store.

A Settlement is created once per order after payment capture. It records the
gross amount, the platform fee and the store's net share, and then tracks the
payout of the net share through the provider.

Usage:
    from settlements.models import Settlement
    from settlements.fees import calculate_fee_split

    split = calculate_fee_split(Decimal("10000"))
    settlement = Settlement.objects.create(
        store=store,
        order_id="order-123",
        original_amount=split.gross,
        platform_fee_rate=split.rate,
        platform_fee=split.fee,
        settlement_amount=split.net,
    )

    # State transitions using django-fsm
    settlement.start()  # PENDING -> PROCESSING
    settlement.save()

    # After the provider accepts the payout
    settlement.complete("payout_abc")  # PROCESSING -> COMPLETED
    settlement.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from django_fsm import FSMField, TransitionNotAllowed, can_proceed, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel

from settlements.exceptions import ErrorKind, SettlementError
from settlements.state_machines import SettlementStatus

MAX_RETRY_COUNT = 3


class Settlement(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    Per-order revenue split and payout record.

    State Flow:
        PENDING -> PROCESSING -> COMPLETED
        PENDING -> PROCESSING -> FAILED -> PENDING (retry)
        PENDING/PROCESSING/FAILED -> CANCELLED

    Fields:
        store: Store receiving the net share
        order_id: Order this settlement belongs to (unique)
        original_amount: Captured (gross) amount
        platform_fee_rate: Fee rate applied (4 decimals)
        platform_fee: Platform fee (2 decimals, half-up)
        settlement_amount: Net amount paid out to the store
        status: Current FSM state
        external_payout_id: Provider payout ID, set once the payout succeeds
        external_seller_id: Provider seller ID the payout was sent to
        requested_at: When the settlement was requested
        completed_at: When the payout completed
        error_message: Last failure reason
        retry_count: Number of failures so far (0-3)
        metadata: Flexible JSON storage
        version: Optimistic locking version

    Note:
        Settlements are never deleted. COMPLETED and CANCELLED are
        terminal and no writer may move a settlement out of them.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    store = models.ForeignKey(
        "stores.Store",
        on_delete=models.PROTECT,
        related_name="settlements",
        help_text="Store receiving the net share",
    )

    order_id = models.CharField(
        max_length=100,
        unique=True,
        help_text="Order this settlement belongs to (one settlement per order)",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    original_amount = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        help_text="Captured (gross) payment amount",
    )

    platform_fee_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        default="0.2000",
        help_text="Platform fee rate applied to the gross amount",
    )

    platform_fee = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        help_text="Platform fee (gross x rate, rounded half-up)",
    )

    settlement_amount = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        help_text="Net amount paid out to the store",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=SettlementStatus.PENDING,
        choices=SettlementStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the settlement (managed by FSM)",
    )

    # ==========================================================================
    # Provider Integration
    # ==========================================================================

    external_payout_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        unique=True,
        help_text="Provider payout ID",
    )

    external_seller_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        help_text="Provider seller ID the payout was sent to",
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    requested_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the settlement was requested",
    )

    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payout completed",
    )

    # ==========================================================================
    # Error Info & Metadata
    # ==========================================================================

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Last failure reason",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of failed attempts (bounded by 3)",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Settlement"
        verbose_name_plural = "Settlements"
        indexes = [
            models.Index(fields=["store", "status"], name="settlement_store_status_idx"),
            models.Index(fields=["store", "created_at"], name="settlement_store_created_idx"),
            models.Index(fields=["status", "retry_count"], name="settlement_status_retry_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(original_amount__gt=0),
                name="settlement_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(retry_count__lte=MAX_RETRY_COUNT),
                name="settlement_retry_count_bounded",
            ),
        ]

    def __str__(self) -> str:
        return f"Settlement({self.id}, {self.status}, {self.settlement_amount})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================
    #
    # The public methods below wrap the raw FSM transitions so callers see a
    # SettlementError(kind=STATE_CONFLICT) rather than TransitionNotAllowed,
    # and so argument validation runs before any field is touched.

    @transition(
        field=status,
        source=SettlementStatus.PENDING,
        target=SettlementStatus.PROCESSING,
    )
    def _start(self):
        pass

    @transition(
        field=status,
        source=SettlementStatus.PROCESSING,
        target=SettlementStatus.COMPLETED,
    )
    def _complete(self, external_payout_id: str):
        self.external_payout_id = external_payout_id
        self.completed_at = timezone.now()
        self.error_message = None

    @transition(
        field=status,
        source=[
            SettlementStatus.PENDING,
            SettlementStatus.PROCESSING,
            SettlementStatus.FAILED,
        ],
        target=SettlementStatus.FAILED,
    )
    def _fail(self, reason: str):
        self.error_message = reason
        self.retry_count = min(self.retry_count + 1, MAX_RETRY_COUNT)
        self.completed_at = None

    @transition(
        field=status,
        source=SettlementStatus.FAILED,
        target=SettlementStatus.PENDING,
        conditions=[lambda s: s.retry_count < MAX_RETRY_COUNT],
    )
    def _retry(self):
        self.external_payout_id = None

    @transition(
        field=status,
        source=[
            SettlementStatus.PENDING,
            SettlementStatus.PROCESSING,
            SettlementStatus.FAILED,
        ],
        target=SettlementStatus.CANCELLED,
    )
    def _cancel(self):
        self.external_payout_id = None
        self.completed_at = None

    def _conflict(self, action: str) -> SettlementError:
        return SettlementError(
            f"Cannot {action} settlement in {self.status} state",
            kind=ErrorKind.STATE_CONFLICT,
            details={
                "settlement_id": str(self.id),
                "current_status": self.status,
                "action": action,
            },
        )

    def start(self) -> None:
        """
        Begin processing the payout.

        Transition: PENDING -> PROCESSING

        Raises:
            SettlementError(kind=STATE_CONFLICT): If not PENDING
        """
        try:
            self._start()
        except TransitionNotAllowed:
            raise self._conflict("start")

    def complete(self, external_payout_id: str) -> bool:
        """
        Mark the payout as completed.

        Transition: PROCESSING -> COMPLETED

        Repeating the call on an already COMPLETED settlement with the same
        payout ID is a no-op, so webhook redelivery is harmless.

        Args:
            external_payout_id: Provider payout ID (required)

        Returns:
            True if the settlement changed, False for the idempotent no-op

        Raises:
            SettlementError(kind=VALIDATION): If the payout ID is blank
            SettlementError(kind=STATE_CONFLICT): If not PROCESSING, or
                COMPLETED under a different payout ID
        """
        if not external_payout_id or not str(external_payout_id).strip():
            raise SettlementError(
                "External payout ID is required",
                kind=ErrorKind.VALIDATION,
                details={"settlement_id": str(self.id)},
            )
        if (
            self.status == SettlementStatus.COMPLETED
            and self.external_payout_id == external_payout_id
        ):
            return False
        try:
            self._complete(external_payout_id)
        except TransitionNotAllowed:
            raise self._conflict("complete")
        return True

    def fail(self, reason: str) -> None:
        """
        Mark the settlement as failed.

        Transition: PENDING/PROCESSING/FAILED -> FAILED

        Increments retry_count (saturating at 3) and clears completed_at.

        Args:
            reason: Failure reason (required), kept verbatim

        Raises:
            SettlementError(kind=VALIDATION): If the reason is blank
            SettlementError(kind=STATE_CONFLICT): If COMPLETED or CANCELLED
        """
        if not reason or not reason.strip():
            raise SettlementError(
                "Failure reason is required",
                kind=ErrorKind.VALIDATION,
                details={"settlement_id": str(self.id)},
            )
        try:
            self._fail(reason)
        except TransitionNotAllowed:
            raise self._conflict("fail")

    def retry(self) -> None:
        """
        Reset a failed settlement so it can be processed again.

        Transition: FAILED -> PENDING (only while retry_count < 3)

        Raises:
            SettlementError(kind=STATE_CONFLICT): If not FAILED or the retry
                budget is spent
        """
        try:
            self._retry()
        except TransitionNotAllowed:
            raise self._conflict("retry")

    def cancel(self) -> bool:
        """
        Cancel the settlement.

        Transition: PENDING/PROCESSING/FAILED -> CANCELLED

        Cancelling an already CANCELLED settlement is a no-op.

        Returns:
            True if the settlement changed, False for the idempotent no-op

        Raises:
            SettlementError(kind=STATE_CONFLICT): If COMPLETED
        """
        if self.status == SettlementStatus.CANCELLED:
            return False
        try:
            self._cancel()
        except TransitionNotAllowed:
            raise self._conflict("cancel")
        return True

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def can_retry(self) -> bool:
        """Check if the settlement failed and still has retry budget."""
        return self.status == SettlementStatus.FAILED and can_proceed(self._retry)

    @property
    def can_process(self) -> bool:
        """Check if the settlement is ready to be sent to the provider."""
        return (
            self.status == SettlementStatus.PENDING
            and self.store_id is not None
            and self.settlement_amount is not None
            and self.settlement_amount > 0
        )

    @property
    def is_completed(self) -> bool:
        return self.status == SettlementStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == SettlementStatus.FAILED

    @property
    def is_terminal(self) -> bool:
        return self.status in SettlementStatus.terminal()
