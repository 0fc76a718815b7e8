from datetime import date

import pytest

from aymur.services.errors import ValidationError
from aymur.validation import (
    coerce_int,
    parse_discount,
    require_cents,
    require_currency,
    require_date,
    require_quantity,
    require_text,
)


@pytest.mark.parametrize("value,expected", [(5, 5), ("12", 12), (" 7 ", 7), ("-3", -3)])
def test_coerce_int_accepts_integers(value, expected):
    assert coerce_int(value, "n") == expected


@pytest.mark.parametrize("value", [1.5, "1.0", "1e3", "", "abc", True, None, [1]])
def test_coerce_int_rejects_everything_else(value):
    with pytest.raises(ValidationError):
        coerce_int(value, "n")


def test_require_cents_bounds():
    assert require_cents(0, "price") == 0
    with pytest.raises(ValidationError):
        require_cents(-1, "price")
    with pytest.raises(ValidationError):
        require_cents(0, "amount", positive=True)
    with pytest.raises(ValidationError):
        require_cents(1_000_000_000, "price")


def test_quantity_must_be_at_least_one():
    assert require_quantity("2") == 2
    with pytest.raises(ValidationError, match="at least 1"):
        require_quantity(0)


def test_currency_is_three_letters_upper_cased():
    assert require_currency("usd") == "USD"
    for bad in ("US", "USDX", "12$", None):
        with pytest.raises(ValidationError):
            require_currency(bad)


def test_dates_are_strict_iso():
    assert require_date("2024-12-04", "sale_date") == date(2024, 12, 4)
    assert require_date(date(2024, 1, 2), "sale_date") == date(2024, 1, 2)
    for bad in ("04/12/2024", "2024-13-01", "2024-1-4", None, ""):
        with pytest.raises(ValidationError):
            require_date(bad, "sale_date")


def test_require_text_strips_and_limits():
    assert require_text("  damaged box ", "reason", 500) == "damaged box"
    with pytest.raises(ValidationError):
        require_text("   ", "reason", 500)
    with pytest.raises(ValidationError):
        require_text("x" * 501, "reason", 500)


def test_parse_discount():
    assert parse_discount(None, None) == (None, None)
    assert parse_discount("percentage", 1250) == ("percentage", 1250)
    assert parse_discount("fixed", "500") == ("fixed", 500)
    with pytest.raises(ValidationError):
        parse_discount("percentage", 10001)
    with pytest.raises(ValidationError):
        parse_discount("fixed", -1)
    with pytest.raises(ValidationError):
        parse_discount("bogus", 1)
    with pytest.raises(ValidationError):
        parse_discount(None, 100)
