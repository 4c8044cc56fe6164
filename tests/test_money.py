from decimal import Decimal

import pytest

from smb_opsledger.money import (
    MAX_AMOUNT_CENTS,
    check_cents_range,
    format_amount,
    from_cents,
    positive_cents,
    to_cents,
    to_decimal,
)


def test_to_decimal_accepts_common_inputs():
    assert to_decimal("120.50") == Decimal("120.50")
    assert to_decimal(" 7 ") == Decimal("7")
    assert to_decimal(150) == Decimal("150")
    assert to_decimal(Decimal("-30")) == Decimal("-30")


def test_float_inputs_go_through_their_text_form():
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_cents(0.1) + to_cents(0.2) == to_cents("0.30")


@pytest.mark.parametrize("value", ["abc", "", "NaN", "Infinity", True, None, "1.005"])
def test_to_decimal_rejects_invalid_amounts(value):
    with pytest.raises(ValueError):
        to_decimal(value)


def test_cents_conversions():
    assert to_cents("19.99") == 1999
    assert to_cents(-30) == -3000
    assert from_cents(12000) == Decimal("120.00")
    assert from_cents(-5) == Decimal("-0.05")


def test_positive_cents_requires_strictly_positive_amounts():
    assert positive_cents("0.01") == 1
    with pytest.raises(ValueError, match="must be positive"):
        positive_cents(0)
    with pytest.raises(ValueError, match="must be positive"):
        positive_cents("-10")


def test_format_amount_uses_two_decimals():
    assert format_amount(Decimal("120")) == "120.00"
    assert format_amount(Decimal("-0.5")) == "-0.50"


@pytest.mark.parametrize("value", ["1e30", "-1e30", "10000000000000.01", 10**14])
def test_to_decimal_rejects_out_of_range_amounts(value):
    with pytest.raises(ValueError, match="out of range"):
        to_decimal(value)


def test_largest_accepted_amount():
    assert to_cents("10000000000000") == MAX_AMOUNT_CENTS
    assert to_cents("-10000000000000.00") == -MAX_AMOUNT_CENTS
    assert to_decimal("1e3") == Decimal("1000")


def test_check_cents_range():
    assert check_cents_range(MAX_AMOUNT_CENTS) == MAX_AMOUNT_CENTS
    with pytest.raises(ValueError, match="account balance would be out of range"):
        check_cents_range(MAX_AMOUNT_CENTS + 1, "account balance")
