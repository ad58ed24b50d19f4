from collections import namedtuple
from datetime import datetime
from decimal import Decimal

import pytest

from functions.functions import SortOrder, hash_password, sort_rows
from functions.order_functions import OrdersFilter, line_total, order_fits
from validations.validation import (
    validate_count, validate_feedback, validate_price, validate_rating, validate_username,
)

OrderRow = namedtuple("OrderRow", "id rider_id completed_time")
NamedRow = namedtuple("NamedRow", "id name")


def test_hash_password_fits_column():
    digest = hash_password("secret")
    assert len(digest) == 64
    assert digest == hash_password("secret")
    assert digest != hash_password("Secret")


def test_sort_rows_puts_missing_values_first():
    rows = [NamedRow(1, "b"), NamedRow(2, None), NamedRow(3, "a"), NamedRow(4, "a")]
    assert [r.id for r in sort_rows(rows, "name")] == [2, 3, 4, 1]
    assert [r.id for r in sort_rows(rows, "name", SortOrder.DESC)] == [1, 4, 3, 2]


@pytest.mark.parametrize("orders_filter, expected", [
    (OrdersFilter.ALL, [1, 2, 3]),
    (OrdersFilter.IN_PROGRESS, [2]),
    (OrdersFilter.COMPLETED, [3]),
])
def test_order_fits(orders_filter, expected):
    orders = [
        OrderRow(1, None, None),
        OrderRow(2, 7, None),
        OrderRow(3, 7, datetime(2023, 5, 1, 12, 30)),
    ]
    assert [o.id for o in orders if order_fits(o, orders_filter)] == expected


def test_line_total_accepts_float_prices():
    assert line_total(Decimal("4.50"), 3) == Decimal("13.50")
    assert line_total(4.1, 3) == Decimal("12.3")


def test_validations():
    assert validate_username("alice")
    assert not validate_username("")
    assert not validate_username("a" * 65)

    assert validate_count(1)
    assert not validate_count(0)

    assert validate_rating(None)
    assert validate_rating(0) and validate_rating(5)
    assert not validate_rating(6)

    assert validate_feedback(None, "Nice")
    assert validate_feedback(0, None)
    assert not validate_feedback(None, "")

    assert validate_price(Decimal("99999.99"))
    assert validate_price("0")
    assert not validate_price(Decimal("100000"))
    assert not validate_price(Decimal("-1"))
    assert not validate_price("abc")
