"""Tests for toolkit helpers."""

from decimal import Decimal

import pytest

from toolkit.helpers import format_money, mask_email


@pytest.mark.parametrize(
    "email, expected",
    [
        ("owner@example.com", "o***@example.com"),
        ("a@example.com", "***@example.com"),
        ("", "***"),
        ("no-at-sign", "***"),
    ],
)
def test_mask_email(email, expected):
    assert mask_email(email) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        (Decimal("1234567.5"), "$ 1.234.567,50"),
        (Decimal("0"), "$ 0,00"),
        (None, "$ 0,00"),
        (Decimal("-1500.5"), "-$ 1.500,50"),
        (300000, "$ 300.000,00"),
    ],
)
def test_format_money(value, expected):
    assert format_money(value) == expected


def test_format_money_custom_symbol():
    assert format_money(Decimal("10"), symbol="COP") == "COP 10,00"
