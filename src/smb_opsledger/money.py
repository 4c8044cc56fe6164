# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Money helpers for SMB OpsLedger.

Monetary values are stored in the database as signed integer cents and
exposed to the rest of the application as ``decimal.Decimal`` values with
two decimal places. All conversions go through this module so that no
floating-point arithmetic is ever applied to amounts.
"""

from decimal import Decimal, InvalidOperation
from typing import Union

AmountLike = Union[Decimal, int, str, float]

_CENT = Decimal("0.01")

# Largest absolute amount accepted anywhere (10 trillion). Keeps sums of
# stored cents far below the int64 range used by SQLite and pandas.
MAX_AMOUNT_CENTS = 10**15
_MAX_AMOUNT = Decimal(MAX_AMOUNT_CENTS).scaleb(-2)


def to_decimal(value: AmountLike) -> Decimal:
    """
    Parse a user-supplied amount into a Decimal.

    Floats are converted through ``str()`` so that ``0.1`` becomes
    ``Decimal("0.1")`` rather than its binary approximation.

    Raises:
        ValueError: if the value is not a finite number, has more than
            two decimal places or exceeds the largest accepted amount.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")

    try:
        if isinstance(value, float):
            amount = Decimal(str(value))
        elif isinstance(value, str):
            amount = Decimal(value.strip())
        else:
            amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc

    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")

    if abs(amount) > _MAX_AMOUNT:
        raise ValueError(
            f"Amount {value!r} is out of range (maximum {_MAX_AMOUNT:.2f})."
        )

    try:
        quantized = amount.quantize(_CENT)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if amount != quantized:
        raise ValueError(f"Amount {value!r} has more than two decimal places.")

    return amount


def to_cents(value: AmountLike) -> int:
    """Convert an amount to signed integer cents."""
    return int(to_decimal(value).scaleb(2))


def positive_cents(value: AmountLike, field: str = "amount") -> int:
    """Convert an amount to cents and require it to be strictly positive."""
    cents = to_cents(value)
    if cents <= 0:
        raise ValueError(f"The {field} must be positive, got {value!r}.")
    return cents


def check_cents_range(cents: int, field: str = "amount") -> int:
    """Raise ValueError if `cents` is beyond the largest accepted amount."""
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValueError(
            f"The {field} would be out of range "
            f"(maximum {_MAX_AMOUNT:.2f}, got {format_amount(from_cents(cents))})."
        )
    return cents


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a two-decimal Decimal."""
    return Decimal(int(cents)).scaleb(-2).quantize(_CENT)


def format_amount(amount: Decimal) -> str:
    """Render a Decimal amount as a fixed two-decimal string (e.g. '120.00')."""
    return f"{amount.quantize(_CENT):.2f}"
