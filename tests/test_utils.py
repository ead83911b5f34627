"""Tests for pricing and cell helpers."""

from datetime import datetime
from decimal import Decimal

import pytest

from boutique_hub.utils import (
    cell_str, clamp_page, currency_rate, local_price, price_history_entry, to_decimal,
)


class TestLocalPrice:
    """Local price rounds up to the next thousand."""

    def test_rsd_example(self):
        assert local_price(Decimal("1000"), Decimal("117.4")) == Decimal("118000")

    def test_exact_thousand_is_kept(self):
        assert local_price(Decimal("5000"), Decimal("100")) == Decimal("500000")

    def test_rounds_up_not_to_nearest(self):
        assert local_price(Decimal("10"), Decimal("100.1")) == Decimal("2000")

    def test_catalog_currency_has_no_rate(self):
        assert currency_rate("EUR") is None
        assert local_price(Decimal("1234.50"), currency_rate("EUR")) == Decimal("1234.50")

    def test_rsd_rate(self):
        assert currency_rate("rsd") == Decimal("117.4")

    def test_blank_price(self):
        assert local_price(None, Decimal("117.4")) is None


class TestCells:
    def test_integral_float_loses_decimal_part(self):
        assert cell_str(116769.0) == "116769"

    def test_nbsp_and_blank(self):
        assert cell_str("  Oyster ") == "Oyster"
        assert cell_str("   ") is None
        assert cell_str(float("nan")) is None

    @pytest.mark.parametrize("raw,expected", [
        ("1.250,00", Decimal("1250.00")),
        ("1,250.00", Decimal("1250.00")),
        ("12 500", Decimal("12500")),
        (9400, Decimal("9400")),
    ])
    def test_to_decimal(self, raw, expected):
        assert to_decimal(raw) == expected

    def test_to_decimal_garbage(self):
        with pytest.raises(ValueError):
            to_decimal("abc")

    def test_price_history_entry_shape(self):
        entry = price_history_entry(datetime(2024, 5, 1, 10, 0), Decimal("1000"), Decimal("20"), Decimal("118000"))
        assert entry == {"date": "2024-05-01T10:00:00", "price": 1000.0, "VAT": 20.0, "priceLocal": 118000.0}


class TestPaging:
    def test_defaults(self):
        assert clamp_page(None, None) == (0, 50)

    def test_limit_is_clamped(self):
        assert clamp_page(10, 500) == (10, 50)

    def test_negative_skip(self):
        assert clamp_page(-5, 5) == (0, 5)
