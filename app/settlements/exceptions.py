"""
Settlement exceptions.

Settlement failures use a single tagged error type instead of a class per
failure. Every SettlementError carries an ErrorKind from a closed set plus
the structured fields a caller needs to decide between retrying and
abandoning:

    SettlementError
        kind            ErrorKind (VALIDATION, STATE_CONFLICT, ...)
        retryable       bool, defaults from the kind
        provider_code   provider error code when the provider sent one
        error_code      machine-readable code (defaults to kind value)
        details         extra context for logs and API responses

    StaleRecordError - Optimistic locking conflict (inherits ConflictError)
    LockAcquisitionError - Distributed lock timeout (inherits ConflictError)

Usage:
    from settlements.exceptions import ErrorKind, SettlementError

    raise SettlementError(
        "Seller account is not eligible for payouts",
        kind=ErrorKind.PRECONDITION_FAILED,
        details={"store_id": str(store.id)},
    )

    try:
        gateway.request_payout(settlement, seller)
    except SettlementError as e:
        if e.retryable:
            schedule_retry(settlement.id)
        elif e.kind == ErrorKind.INSUFFICIENT_BALANCE:
            alert_finance(e)
        else:
            raise
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Error Kinds
# =============================================================================


class ErrorKind(str, Enum):
    """
    Closed set of settlement failure kinds.

    Each kind fixes whether the failure is retryable by default and which
    HTTP status the API layer answers with.
    """

    VALIDATION = "VALIDATION_ERROR"
    STATE_CONFLICT = "STATE_CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    DUPLICATE = "DUPLICATE"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    PROVIDER_TRANSIENT = "PROVIDER_TRANSIENT"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    ENCRYPTION = "ENCRYPTION_ERROR"

    @property
    def retryable(self) -> bool:
        """Only transport-level provider failures are worth retrying."""
        return self is ErrorKind.PROVIDER_TRANSIENT

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.STATE_CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DUPLICATE: 409,
    ErrorKind.PRECONDITION_FAILED: 422,
    ErrorKind.INSUFFICIENT_BALANCE: 422,
    ErrorKind.PROVIDER_TRANSIENT: 503,
    ErrorKind.PROVIDER_ERROR: 502,
    ErrorKind.ENCRYPTION: 500,
}


# =============================================================================
# Settlement Error
# =============================================================================


class SettlementError(BaseApplicationError):
    """
    Tagged error for every settlement, seller and provider failure.

    Inspect `kind` and `retryable` rather than catching subclasses.

    Attributes:
        kind: The ErrorKind tag
        retryable: Whether a later attempt may succeed
        provider_code: Error code returned by the provider, if any

    Example:
        raise SettlementError(
            "Provider rejected payout",
            kind=ErrorKind.PROVIDER_ERROR,
            provider_code="INVALID_DESTINATION",
        )
    """

    default_error_code: str = "SETTLEMENT_ERROR"

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.PROVIDER_ERROR,
        retryable: bool | None = None,
        provider_code: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.kind = kind
        self.retryable = kind.retryable if retryable is None else retryable
        self.provider_code = provider_code
        super().__init__(message, error_code=error_code or kind.value, details=details)

    @property
    def http_status(self) -> int:
        return self.kind.http_status

    def to_dict(self) -> dict[str, Any]:
        """Extend the base payload with the tag fields."""
        result = super().to_dict()
        result["kind"] = self.kind.name
        result["retryable"] = self.retryable
        if self.provider_code:
            result["provider_code"] = self.provider_code
        return result

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"kind={self.kind.name}, "
            f"retryable={self.retryable!r}, "
            f"provider_code={self.provider_code!r})"
        )


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects a concurrent modification.

    The record's version changed between read and write, so the caller
    must reload and decide again.
    """

    default_error_code: str = "STALE_RECORD"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired in time.

    Another worker is already processing the same settlement; callers
    should back off rather than proceed without the lock.
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


__all__ = [
    "ErrorKind",
    "LockAcquisitionError",
    "SettlementError",
    "StaleRecordError",
]
