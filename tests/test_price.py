"""
Tests for price parsing and formatting.
"""

from decimal import Decimal

import pytest

from marketplace_watcher.utils.price import format_price, parse_price


class TestParsePrice:
    """Test cases for parse_price."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("R$ 1.500,00", Decimal("1500.00")),
            ("R$ 150,00", Decimal("150.00")),
            ("R$50", Decimal("50")),
            ("R$ 1.500", Decimal("1500")),
            ("1,500.00", Decimal("1500.00")),
            ("R$ 12.345.678,90", Decimal("12345678.90")),
            ("R$ 99,9", Decimal("99.9")),
            ("por R$ 250,00 à vista", Decimal("250.00")),
        ],
    )
    def test_parses_brazilian_and_english_formats(self, text, expected):
        assert parse_price(text) == expected

    @pytest.mark.parametrize("text", ["preço a combinar", "", "R$", None, "grátis"])
    def test_unparsable_returns_none(self, text):
        assert parse_price(text) is None

    def test_numeric_inputs_pass_through(self):
        assert parse_price(Decimal("10.5")) == Decimal("10.5")
        assert parse_price(200) == Decimal("200")

    def test_comparison_of_display_prices(self):
        assert parse_price("R$ 100,00") < parse_price("R$ 150,00")
        assert parse_price("R$ 200,00") > parse_price("R$ 150,00")


class TestFormatPrice:
    """Test cases for format_price."""

    def test_formats_with_brazilian_separators(self):
        assert format_price(Decimal("1500")) == "R$ 1.500,00"
        assert format_price(Decimal("99.9")) == "R$ 99,90"

    def test_none_is_not_available(self):
        assert format_price(None) == "N/A"
