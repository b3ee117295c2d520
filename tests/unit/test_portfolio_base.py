"""Unit tests for portfolio value types."""

from decimal import Decimal

import pytest

from stockbasket.portfolio.base import (
    Holding,
    Order,
    OrderSide,
    OrderType,
    PriceSnapshot,
    make_order,
)
from stockbasket.utils.exceptions import InvariantViolation


class TestOrder:
    """Test cases for Order data structure."""

    def test_create_order(self) -> None:
        """Test creating a valid market order."""
        order = Order(symbol="TCS", exchange="NSE", side=OrderSide.BUY, quantity=5)

        assert order.order_type == OrderType.MARKET
        assert order.estimated_value == Decimal("0")
        assert order.key == ("NSE", "TCS")

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity_is_invariant_violation(self, quantity: int) -> None:
        """Test a zero or negative quantity is a programmer error."""
        with pytest.raises(InvariantViolation, match="quantity must be a positive integer"):
            Order(symbol="TCS", exchange="NSE", side=OrderSide.SELL, quantity=quantity)

    def test_fractional_quantity_rejected(self) -> None:
        """Test fractional shares are not representable."""
        with pytest.raises(InvariantViolation):
            Order(symbol="TCS", exchange="NSE", side=OrderSide.BUY, quantity=1.5)

    def test_make_order_values_order(self) -> None:
        """Test make_order sets the estimated value."""
        order = make_order(OrderSide.BUY, "INFY", "NSE", 3, Decimal("1500.50"), reason="test")

        assert order.estimated_value == Decimal("4501.50")
        assert order.reason == "test"


class TestHolding:
    """Test cases for Holding."""

    def test_cost_basis(self) -> None:
        """Test cost basis is quantity times average price."""
        holding = Holding("TCS", "NSE", 4, 3400.25)
        assert holding.cost_basis == Decimal("13601.00")

    def test_negative_quantity_rejected(self) -> None:
        """Test negative holdings are invalid."""
        with pytest.raises(ValueError, match="non-negative"):
            Holding("TCS", "NSE", -1)


class TestPriceSnapshot:
    """Test cases for PriceSnapshot."""

    def test_lookup_by_tuple_and_string(self) -> None:
        """Test both key formats resolve to the same instrument."""
        prices = PriceSnapshot({"NSE:TCS": 3500, ("nse", "infy"): "1500.5"})

        assert prices.get_price("NSE", "TCS") == Decimal("3500")
        assert prices.get_price("NSE", "INFY") == Decimal("1500.5")
        assert prices["NSE:INFY"] == Decimal("1500.5")
        assert ("NSE", "TCS") in prices
        assert "NSE:WIPRO" not in prices
        assert len(prices) == 2

    def test_unusable_prices_dropped(self) -> None:
        """Test missing, zero, negative and non-numeric prices are treated as absent."""
        prices = PriceSnapshot(
            {
                "NSE:A": None,
                "NSE:B": 0,
                "NSE:C": -10,
                "NSE:D": "n/a",
                "NSE:E": float("nan"),
                "NSE:F": 10,
            }
        )

        assert list(prices) == [("NSE", "F")]
        assert prices.get_price("NSE", "B") is None

    def test_invalid_key_rejected(self) -> None:
        """Test keys must identify exchange and symbol."""
        with pytest.raises(ValueError, match="EXCHANGE:SYMBOL"):
            PriceSnapshot({"TCS": 3500})

    def test_from_quotes(self) -> None:
        """Test building from broker LTP payloads."""
        prices = PriceSnapshot.from_quotes(
            {
                "NSE:TCS": {"instrument_token": 1, "last_price": 3500},
                "NSE:INFY": {"lastPrice": 1500},
                "BSE:WIPRO": 450,
            }
        )

        assert prices.get_price("NSE", "TCS") == Decimal("3500")
        assert prices.get_price("NSE", "INFY") == Decimal("1500")
        assert prices.get_price("BSE", "WIPRO") == Decimal("450")

    def test_contains_tolerates_garbage(self) -> None:
        """Test membership checks never raise."""
        prices = PriceSnapshot({"NSE:TCS": 1})
        assert 42 not in prices
        assert "TCS" not in prices
