"""Unit tests for currency conversions."""
from decimal import Decimal
from mindbridge.utils.money import to_major_units, to_minor_units


class TestMoney:
    """Test minor/major unit conversion."""

    def test_two_decimal_currency(self):
        assert to_major_units(50000, "HKD") == Decimal("500.00")
        assert to_minor_units(500.0, "HKD") == 50000

    def test_float_noise_is_rounded(self):
        assert to_minor_units(19.99, "usd") == 1999
        assert to_minor_units("0.005", "USD") == 1

    def test_zero_decimal_currency(self):
        assert to_major_units(1200, "JPY") == Decimal("1200")
        assert to_minor_units(1200, "JPY") == 1200
