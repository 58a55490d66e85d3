"""
Platform fee split.

Every settlement divides the captured (gross) amount into the platform fee
and the store's net share. The fee is rounded half-up to 2 decimal places
and the net share is whatever remains, so fee + net always equals gross
exactly.

Usage:
    from settlements.fees import calculate_fee_split

    split = calculate_fee_split(Decimal("12345.67"))
    split.fee  # Decimal("2469.13")
    split.net  # Decimal("9876.54")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from settlements.exceptions import ErrorKind, SettlementError

DEFAULT_FEE_RATE = Decimal("0.2000")

AMOUNT_QUANTUM = Decimal("0.01")
RATE_QUANTUM = Decimal("0.0001")


@dataclass(frozen=True)
class FeeSplit:
    """
    Result of a fee computation.

    Attributes:
        gross: Captured payment amount (2 decimals)
        rate: Platform fee rate (4 decimals)
        fee: Platform fee, rounded half-up to 2 decimals
        net: Amount paid out to the store (gross - fee)
    """

    gross: Decimal
    rate: Decimal
    fee: Decimal
    net: Decimal


def _to_decimal(value, field: str) -> Decimal:
    if isinstance(value, float):
        # Floats carry binary rounding error into money arithmetic
        raise SettlementError(
            f"{field} must be a Decimal, int or numeric string",
            kind=ErrorKind.VALIDATION,
            details={field: repr(value)},
        )
    try:
        result = Decimal(str(value)) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError, ValueError):
        raise SettlementError(
            f"{field} is not a valid number",
            kind=ErrorKind.VALIDATION,
            details={field: repr(value)},
        )
    if not result.is_finite():
        raise SettlementError(
            f"{field} must be finite",
            kind=ErrorKind.VALIDATION,
            details={field: str(result)},
        )
    return result


def calculate_fee_split(gross, rate=DEFAULT_FEE_RATE) -> FeeSplit:
    """
    Split a gross amount into platform fee and net store share.

    Args:
        gross: Captured amount, must be > 0 (at most 2 decimal places)
        rate: Fee rate in [0, 1) (at most 4 decimal places)

    Returns:
        FeeSplit with fee = round(gross * rate, 2, HALF_UP), net = gross - fee

    Raises:
        SettlementError(kind=VALIDATION): On non-positive gross, out-of-range
            rate, excess precision or non-numeric input
    """
    gross = _to_decimal(gross, "gross")
    rate = _to_decimal(rate, "rate")

    if gross <= 0:
        raise SettlementError(
            "Gross amount must be greater than zero",
            kind=ErrorKind.VALIDATION,
            details={"gross": str(gross)},
        )
    if gross != gross.quantize(AMOUNT_QUANTUM):
        raise SettlementError(
            "Gross amount supports at most 2 decimal places",
            kind=ErrorKind.VALIDATION,
            details={"gross": str(gross)},
        )
    if rate < 0 or rate >= 1:
        raise SettlementError(
            "Fee rate must be in the range [0, 1)",
            kind=ErrorKind.VALIDATION,
            details={"rate": str(rate)},
        )
    if rate != rate.quantize(RATE_QUANTUM):
        raise SettlementError(
            "Fee rate supports at most 4 decimal places",
            kind=ErrorKind.VALIDATION,
            details={"rate": str(rate)},
        )

    gross = gross.quantize(AMOUNT_QUANTUM)
    rate = rate.quantize(RATE_QUANTUM)
    fee = (gross * rate).quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)

    return FeeSplit(gross=gross, rate=rate, fee=fee, net=gross - fee)


__all__ = [
    "DEFAULT_FEE_RATE",
    "FeeSplit",
    "calculate_fee_split",
]
