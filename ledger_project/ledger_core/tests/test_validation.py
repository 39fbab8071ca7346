import datetime
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from ledger_core.models.payment import PAYMENT_METHODS
from ledger_core.services.validation import (parse_choice, parse_date,
                                             parse_decimal, parse_id,
                                             parse_line_items, parse_money)


def test_decimal_from_strings_and_numbers():
    assert parse_decimal("12.50", "amount") == Decimal("12.50")
    assert parse_decimal(3, "amount") == Decimal("3")
    assert parse_decimal(" 1.1 ", "amount") == Decimal("1.1")
    assert parse_decimal(None, "amount", default=Decimal("0")) == Decimal("0")


@pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", True, "1.234"])
def test_bad_money(value):
    with pytest.raises(ValidationError):
        parse_money(value, "amount")


def test_money_bounds():
    with pytest.raises(ValidationError):
        parse_money("-0.01", "amount")
    with pytest.raises(ValidationError):
        parse_money("0", "amount", positive=True)
    with pytest.raises(ValidationError, match="amount is required"):
        parse_money(None, "amount")
    # trailing zeros beyond two places are fine
    assert parse_money("5.1000", "amount") == Decimal("5.1000")


def test_dates():
    assert parse_date("2025-02-28", "date") == datetime.date(2025, 2, 28)
    assert parse_date("2025-02-28T10:00:00", "date") == datetime.date(2025, 2, 28)
    assert parse_date(datetime.datetime(2025, 3, 1, 9), "date") == datetime.date(2025, 3, 1)
    for bad in ("2025-02-30", "yesterday", "28/02/2025"):
        with pytest.raises(ValidationError):
            parse_date(bad, "date")


def test_choice_is_case_insensitive():
    assert parse_choice("upi", "method", PAYMENT_METHODS) == "UPI"
    with pytest.raises(ValidationError):
        parse_choice("barter", "method", PAYMENT_METHODS)


def test_ids():
    assert parse_id("42", "customer_id") == 42
    assert parse_id(None, "product_id", required=False) is None
    with pytest.raises(ValidationError):
        parse_id("x", "customer_id")
    with pytest.raises(ValidationError):
        parse_id("", "customer_id")


def test_line_items():
    lines = parse_line_items([
        {"quantity": "1.5", "unit_price": "10.0000", "description": " Bolt "},
        {"quantity": 2, "unit_price": 3, "tax_rate": "18", "discount_amount": "1"},
    ])
    assert lines[0].quantity == Decimal("1.5")
    assert lines[0].tax_rate == Decimal("0.00")
    assert lines[0].description == "Bolt"
    assert lines[1].discount_amount == Decimal("1")


@pytest.mark.parametrize("items", [
    "not a list",
    ["not an object"],
    [{"quantity": 0, "unit_price": 1}],
    [{"quantity": 1}],
    [{"quantity": 1, "unit_price": -1}],
    [{"quantity": 1, "unit_price": 1, "tax_rate": -5}],
])
def test_bad_line_items(items):
    with pytest.raises(ValidationError):
        parse_line_items(items)
