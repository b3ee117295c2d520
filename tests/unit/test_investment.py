"""Unit tests for investment bookkeeping."""

from dataclasses import replace
from decimal import Decimal

import pytest

from stockbasket.portfolio.base import Holding, OrderSide, PriceSnapshot
from stockbasket.portfolio.investment import (
    Fill,
    Investment,
    InvestmentStatus,
    apply_fills,
    mark_to_market,
    percentage_change,
    revalue,
    sync_holdings,
)
from stockbasket.utils.exceptions import InvariantViolation


def buy(symbol: str, quantity: int, price) -> Fill:
    return Fill(symbol, "NSE", OrderSide.BUY, quantity, price)


def sell(symbol: str, quantity: int, price) -> Fill:
    return Fill(symbol, "NSE", OrderSide.SELL, quantity, price)


@pytest.fixture
def investment() -> Investment:
    return apply_fills(Investment(basket_ref="IT"), [buy("A", 10, 100), buy("A", 10, 120)])


class TestFill:
    """Test cases for Fill."""

    def test_value(self) -> None:
        assert buy("A", 3, "10.5").value == Decimal("31.5")

    def test_non_positive_quantity_rejected(self) -> None:
        with pytest.raises(ValueError):
            buy("A", 0, 10)


class TestApplyFills:
    """Test cases for apply_fills."""

    def test_buys_average_price(self, investment: Investment) -> None:
        """Test repeated buys keep a weighted average price."""
        holding = investment.holding("NSE", "A")

        assert holding.quantity == 20
        assert holding.average_price == Decimal("110")
        assert investment.invested_amount == Decimal("2200")
        assert investment.status == InvestmentStatus.ACTIVE

    def test_sell_reduces_cost_basis(self, investment: Investment) -> None:
        """Test selling removes shares at their average cost."""
        updated = apply_fills(investment, [sell("A", 5, 130)])

        assert updated.holding("NSE", "A").quantity == 15
        assert updated.invested_amount == Decimal("1650")
        assert updated.status == InvestmentStatus.ACTIVE

    def test_sell_everything_marks_sold(self, investment: Investment) -> None:
        """Test a fully sold investment has no holdings and status SOLD."""
        updated = apply_fills(investment, [sell("A", 20, 130)])

        assert updated.holdings == ()
        assert updated.invested_amount == Decimal("0")
        assert updated.status == InvestmentStatus.SOLD

    def test_buy_back_reactivates(self, investment: Investment) -> None:
        """Test buying into a SOLD investment makes it ACTIVE again."""
        sold = apply_fills(investment, [sell("A", 20, 130)])

        again = apply_fills(sold, [buy("B", 1, 50)])

        assert again.status == InvestmentStatus.ACTIVE

    def test_partial_status_kept(self, investment: Investment) -> None:
        """Test fills do not overwrite a PARTIAL status while holdings remain."""
        partial = replace(investment, status=InvestmentStatus.PARTIAL)

        assert apply_fills(partial, [sell("A", 1, 100)]).status == InvestmentStatus.PARTIAL

    def test_oversell_is_invariant_violation(self, investment: Investment) -> None:
        """Test selling more than held is a programmer error."""
        with pytest.raises(InvariantViolation, match="exceeds held quantity"):
            apply_fills(investment, [sell("A", 21, 100)])

        with pytest.raises(InvariantViolation):
            apply_fills(investment, [sell("ZZZ", 1, 100)])

    def test_no_fills_returns_same(self, investment: Investment) -> None:
        assert apply_fills(investment, []) is investment

    def test_input_not_mutated(self, investment: Investment) -> None:
        apply_fills(investment, [sell("A", 5, 130)])
        assert investment.holding("NSE", "A").quantity == 20


class TestSyncHoldings:
    """Test cases for sync_holdings."""

    def test_broker_view_updates_owned_holdings(self) -> None:
        """Test reported holdings are updated, zero removed, unowned ignored."""
        current = Investment(
            basket_ref="IT",
            holdings=[Holding("A", "NSE", 10, 100), Holding("B", "NSE", 5, 50)],
        )
        broker = [
            Holding("A", "NSE", 8, 100),
            Holding("B", "NSE", 0, 50),
            Holding("C", "NSE", 5, 10),
        ]

        synced = sync_holdings(current, broker)

        assert [(h.symbol, h.quantity) for h in synced.holdings] == [("A", 8)]
        assert synced.invested_amount == Decimal("800")
        assert synced.status == InvestmentStatus.ACTIVE

    def test_partial_view_keeps_unreported_holdings(self) -> None:
        """Test holdings the broker does not list survive the sync."""
        current = Investment(
            basket_ref="IT",
            holdings=[Holding("A", "NSE", 10, 100), Holding("B", "NSE", 5, 50)],
            invested_amount=Decimal("1250"),
            current_value=Decimal("1250"),
        )

        synced = sync_holdings(
            current, [Holding("A", "NSE", 12, 110)], PriceSnapshot({"NSE:A": 120, "NSE:B": 60})
        )

        assert [(h.symbol, h.quantity, h.average_price) for h in synced.holdings] == [
            ("A", 12, Decimal("110")),
            ("B", 5, Decimal("50")),
        ]
        assert synced.invested_amount == Decimal("1570")
        assert synced.current_value == Decimal("1740")
        assert synced.status == InvestmentStatus.ACTIVE

    def test_current_value_falls_back_to_average_price(self) -> None:
        current = Investment(
            basket_ref="IT",
            holdings=[Holding("A", "NSE", 10, 100)],
            current_value=Decimal("5000"),
        )

        synced = sync_holdings(current, [Holding("A", "NSE", 4, 100)])

        assert synced.current_value == Decimal("400")

    def test_empty_broker_view_changes_nothing(self) -> None:
        current = Investment(
            basket_ref="IT",
            holdings=[Holding("A", "NSE", 10, 100)],
            invested_amount=Decimal("1000"),
        )

        synced = sync_holdings(current, [])

        assert synced is current
        assert synced.status == InvestmentStatus.ACTIVE

    def test_all_reported_zero_marks_sold(self) -> None:
        current = Investment(basket_ref="IT", holdings=[Holding("A", "NSE", 10, 100)])

        synced = sync_holdings(current, [Holding("A", "NSE", 0, 100)])

        assert synced.holdings == ()
        assert synced.invested_amount == Decimal("0")
        assert synced.current_value == Decimal("0")
        assert synced.status == InvestmentStatus.SOLD


class TestRevalue:
    """Test cases for revalue and mark_to_market."""

    def test_profit(self) -> None:
        """Test a 10% price rise shows 10% profit."""
        current = Investment(basket_ref="IT", holdings=[Holding("A", "NSE", 10, 100)])

        valuation = revalue(current, PriceSnapshot({"NSE:A": 110}))

        assert valuation.invested_amount == Decimal("1000")
        assert valuation.current_value == Decimal("1100")
        assert valuation.pnl == Decimal("100")
        assert valuation.pnl_percentage == Decimal("10")
        assert valuation.weights == {("NSE", "A"): Decimal("100")}

    def test_missing_price_uses_average(self) -> None:
        current = Investment(
            basket_ref="IT",
            holdings=[Holding("A", "NSE", 10, 100), Holding("B", "NSE", 10, 100)],
        )

        valuation = revalue(current, PriceSnapshot({"NSE:A": 300}))

        assert valuation.current_value == Decimal("4000")
        assert valuation.weights[("NSE", "A")] == Decimal("75")

    def test_empty_investment(self) -> None:
        valuation = revalue(Investment(basket_ref="IT"), PriceSnapshot())

        assert valuation.current_value == Decimal("0")
        assert valuation.pnl_percentage == Decimal("0")
        assert valuation.weights == {}

    def test_mark_to_market(self, investment: Investment) -> None:
        marked = mark_to_market(investment, PriceSnapshot({"NSE:A": 150}))
        assert marked.current_value == Decimal("3000")

    def test_percentage_change(self) -> None:
        assert percentage_change(Decimal("90"), Decimal("100")) == Decimal("-10")
        assert percentage_change(Decimal("90"), Decimal("0")) == Decimal("0")
