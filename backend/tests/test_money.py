"""
Tests for integer-cent money helpers.
"""

from decimal import Decimal

import pytest

from shared.utils.money import format_cents, from_cents, split_evenly, to_cents


class TestToCents:
    @pytest.mark.parametrize(
        "amount, expected",
        [
            (10, 1000),
            ("4.995", 500),
            (Decimal("0.005"), 1),
            (12.34, 1234),
            (None, 0),
        ],
    )
    def test_conversion_rounds_half_up(self, amount, expected):
        assert to_cents(amount) == expected

    @pytest.mark.parametrize("amount", ["abc", "NaN", float("inf")])
    def test_invalid_amounts(self, amount):
        with pytest.raises(ValueError):
            to_cents(amount)


def test_from_cents_and_format():
    assert from_cents(1999) == Decimal("19.99")
    assert format_cents(500) == "5.00"


def test_split_evenly():
    assert split_evenly(1000, 3) == 333
    assert split_evenly(1001, 2) == 501
    assert split_evenly(1000, 0) == 1000
