"""
Base exception classes for application-wide error handling.

Every domain failure carries a human-readable message, a machine-readable
error code and optional details, and renders itself for API responses with
to_dict().

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ConflictError - Concurrent access conflicts (locks, stale versions)
    └── settlements.exceptions.SettlementError - Tagged settlement failures

Usage:
    from core.exceptions import BaseApplicationError

    try:
        settlement = SettlementService.process_settlement(settlement_id)
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=409)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (serialization, authentication, etc.).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (IDs, current status, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Settlement 1f0c... not found",
                "error_code": "NOT_FOUND",
                "details": {"settlement_id": "1f0c..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ConflictError(BaseApplicationError):
    """
    Raised when concurrent access prevents an operation.

    Use for:
        - A distributed lock held by another worker
        - Optimistic locking failures (stale version)

    The API layer answers 409; the caller may reload and try again.

    Example:
        raise ConflictError(
            "Settlement was modified by another request",
            error_code="STALE_RECORD",
            details={"expected_version": 3, "current_version": 4}
        )
    """

    default_error_code: str = "CONFLICT"


__all__ = [
    "BaseApplicationError",
    "ConflictError",
]
