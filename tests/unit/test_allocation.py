"""Unit tests for cash-to-orders allocation."""

import logging
from decimal import Decimal

import pytest

from stockbasket.basket.base import Basket
from stockbasket.portfolio.allocation import plan_buy
from stockbasket.portfolio.base import DataGap, OrderSide, PriceSnapshot


@pytest.fixture
def basket() -> Basket:
    return Basket.from_weights([("NSE", "A", 50), ("NSE", "B", 50)])


class TestPlanBuy:
    """Test cases for plan_buy."""

    def test_exact_allocation(self, basket: Basket) -> None:
        """Test 200 split 50/50 buys one A and two B with nothing left."""
        plan = plan_buy(basket, PriceSnapshot({"NSE:A": 100, "NSE:B": 50}), 200)

        assert [(o.symbol, o.quantity) for o in plan.orders] == [("A", 1), ("B", 2)]
        assert all(o.side == OrderSide.BUY for o in plan.orders)
        assert plan.spent_amount == Decimal("200")
        assert plan.leftover_cash == Decimal("0")
        assert plan.quantities == {"NSE:A": 1, "NSE:B": 2}

    def test_leftover_adds_back_to_cash(self, basket: Basket) -> None:
        """Test spent plus leftover equals the input exactly."""
        prices = PriceSnapshot({"NSE:A": "333.33", "NSE:B": "77.7"})

        plan = plan_buy(basket, prices, "1234.56")

        assert [o.quantity for o in plan.orders] == [1, 7]
        assert plan.spent_amount == Decimal("877.23")
        assert plan.leftover_cash == Decimal("357.33")
        assert plan.spent_amount + plan.leftover_cash == Decimal("1234.56")

    def test_never_overspends(self) -> None:
        """Test each order stays within its weighted slice."""
        basket = Basket.from_weights(
            [("NSE", "A", 33.33), ("NSE", "B", 33.33), ("NSE", "C", 33.34)]
        )
        prices = PriceSnapshot({"NSE:A": 97, "NSE:B": 13.5, "NSE:C": 251})

        plan = plan_buy(basket, prices, 10000)

        for order, constituent in zip(plan.orders, basket):
            slice_amount = Decimal("10000") * constituent.weight_percentage / 100
            assert order.estimated_value <= slice_amount
        assert plan.spent_amount <= Decimal("10000")

    def test_missing_price_reported(
        self, basket: Basket, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test a constituent without a price is skipped and reported."""
        with caplog.at_level(logging.WARNING, logger="stockbasket.portfolio.allocation"):
            plan = plan_buy(basket, PriceSnapshot({"NSE:B": 50}), 200)

        assert [o.symbol for o in plan.orders] == ["B"]
        assert plan.skipped == (DataGap("NSE", "A"),)
        assert "Price missing" in caplog.text

    def test_unaffordable_constituent_gets_no_order(self, basket: Basket) -> None:
        """Test a zero-share slice produces no order."""
        plan = plan_buy(basket, PriceSnapshot({"NSE:A": 1000, "NSE:B": 50}), 200)

        assert [o.symbol for o in plan.orders] == ["B"]
        assert plan.skipped == ()

    def test_tiny_cash_is_empty(self, basket: Basket) -> None:
        """Test cash below every price yields an empty plan."""
        plan = plan_buy(basket, PriceSnapshot({"NSE:A": 100, "NSE:B": 50}), 10)

        assert plan.is_empty
        assert plan.leftover_cash == Decimal("10")
