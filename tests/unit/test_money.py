"""Unit tests for Decimal helpers."""

from decimal import Decimal

from stockbasket.utils.money import floor_shares, quantize_weight, round_up_to, to_decimal


class TestToDecimal:
    """Test cases for to_decimal."""

    def test_float_goes_through_string(self) -> None:
        """Test floats keep their short decimal form."""
        assert to_decimal(0.1) == Decimal("0.1")

    def test_passthrough_and_int(self) -> None:
        """Test Decimal inputs are returned as-is and ints convert exactly."""
        value = Decimal("12.34")
        assert to_decimal(value) is value
        assert to_decimal(7) == Decimal("7")


class TestRounding:
    """Test cases for weight and money rounding."""

    def test_quantize_weight_half_up(self) -> None:
        """Test weights round half up to two decimals."""
        assert quantize_weight(Decimal("33.335")) == Decimal("33.34")
        assert quantize_weight(Decimal("33.3333")) == Decimal("33.33")

    def test_round_up_to(self) -> None:
        """Test rounding up to a unit."""
        assert round_up_to(Decimal("200"), Decimal("100")) == Decimal("200")
        assert round_up_to(Decimal("200.01"), Decimal("100")) == Decimal("300")
        assert round_up_to(Decimal("0"), Decimal("100")) == Decimal("0")

    def test_floor_shares(self) -> None:
        """Test whole-share flooring."""
        assert floor_shares(Decimal("100"), Decimal("50")) == 2
        assert floor_shares(Decimal("99.99"), Decimal("50")) == 1
        assert floor_shares(Decimal("49.99"), Decimal("50")) == 0
        assert floor_shares(Decimal("100"), Decimal("0")) == 0
