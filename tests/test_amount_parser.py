"""Tests for amount parsing."""

from decimal import Decimal

import pytest

from ledgerkit.utils.amount_parser import parse_amount


class TestParseAmount:
    """Tests for parse_amount."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("123.45", Decimal("123.45")),
            ("-123.45", Decimal("-123.45")),
            ("1,234.56", Decimal("1234.56")),
            ("¥1,234.56", Decimal("1234.56")),
            ("CNY 88.00", Decimal("88.00")),
            ("$ 10", Decimal("10")),
            ("(123.45)", Decimal("-123.45")),
            ("500.00 CR", Decimal("500.00")),
            ("500.00 DR", Decimal("-500.00")),
            ("  42 ", Decimal("42")),
        ],
    )
    def test_formats(self, raw, expected):
        assert parse_amount(raw) == expected

    def test_empty(self):
        with pytest.raises(ValueError, match="Empty amount"):
            parse_amount("  ")

    def test_none(self):
        with pytest.raises(ValueError):
            parse_amount(None)

    def test_garbage(self):
        with pytest.raises(ValueError, match="Could not parse amount"):
            parse_amount("twelve")

    def test_not_finite(self):
        with pytest.raises(ValueError):
            parse_amount("NaN")
