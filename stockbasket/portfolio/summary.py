"""Portfolio-wide views across investments.

``summarize`` totals invested cash, market value and P&L over every open
investment. ``aggregate_holdings`` merges the holdings of all open
investments per instrument, so a stock bought through two baskets shows up
once with a combined quantity and cost.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping, Tuple

from stockbasket.basket.base import InstrumentKey
from stockbasket.portfolio.base import PriceSnapshot
from stockbasket.portfolio.investment import (
    Investment,
    InvestmentStatus,
    percentage_change,
    revalue,
)
from stockbasket.utils.logging import get_logger, log_with_context
from stockbasket.utils.money import ZERO

logger = get_logger(__name__)


@dataclass(frozen=True)
class PortfolioSummary:
    """Totals over all open investments.

    Attributes:
        total_invested: Sum of the investments' invested amounts
        current_value: Holdings valued at snapshot prices (average price
                       when a price is missing)
        pnl: current_value - total_invested
        pnl_percentage: pnl as a percentage of total_invested
        investments_count: Number of open investments included
    """

    total_invested: Decimal
    current_value: Decimal
    pnl: Decimal
    pnl_percentage: Decimal
    investments_count: int


@dataclass(frozen=True)
class AggregatedHolding:
    """One instrument held across any number of investments.

    Attributes:
        symbol: Trading symbol
        exchange: Exchange code
        quantity: Total shares across investments
        average_price: Quantity-weighted average acquisition price
        invested_value: quantity * average_price
        current_price: Snapshot price, average price when missing
        current_value: quantity * current_price
        pnl: current_value - invested_value
        pnl_percentage: Price change against the average price
        baskets: Basket references holding the instrument, in first-seen order
    """

    symbol: str
    exchange: str
    quantity: int
    average_price: Decimal
    invested_value: Decimal
    current_price: Decimal
    current_value: Decimal
    pnl: Decimal
    pnl_percentage: Decimal
    baskets: Tuple[str, ...]

    @property
    def key(self) -> InstrumentKey:
        return (self.exchange, self.symbol)


def _open(investments: Mapping[str, Investment]) -> List[Investment]:
    return [i for i in investments.values() if i.status != InvestmentStatus.SOLD]


def summarize(investments: Mapping[str, Investment], prices: PriceSnapshot) -> PortfolioSummary:
    """Total invested cash, market value and P&L of all open investments.

    SOLD investments are left out. An open investment without holdings
    contributes its stored ``current_value``.
    """
    included = _open(investments)

    total_invested = sum((i.invested_amount for i in included), ZERO)
    current_value = ZERO
    for investment in included:
        if investment.holdings:
            current_value += revalue(investment, prices).current_value
        else:
            current_value += investment.current_value

    pnl = current_value - total_invested
    summary = PortfolioSummary(
        total_invested=total_invested,
        current_value=current_value,
        pnl=pnl,
        pnl_percentage=percentage_change(current_value, total_invested),
        investments_count=len(included),
    )
    log_with_context(
        logger, "debug", "Portfolio summarized",
        investments=summary.investments_count, invested=total_invested, value=current_value,
    )
    return summary


def aggregate_holdings(
    investments: Mapping[str, Investment],
    prices: PriceSnapshot,
) -> List[AggregatedHolding]:
    """Merge the holdings of all open investments per instrument.

    Returns:
        One AggregatedHolding per instrument, largest invested value first
    """
    quantities: Dict[InstrumentKey, int] = {}
    costs: Dict[InstrumentKey, Decimal] = {}
    baskets: Dict[InstrumentKey, List[str]] = {}

    for investment in _open(investments):
        for holding in investment.holdings:
            key = holding.key
            quantities[key] = quantities.get(key, 0) + holding.quantity
            costs[key] = costs.get(key, ZERO) + holding.cost_basis
            refs = baskets.setdefault(key, [])
            if investment.basket_ref not in refs:
                refs.append(investment.basket_ref)

    aggregated = []
    for key, quantity in quantities.items():
        if quantity == 0:
            continue
        exchange, symbol = key
        invested = costs[key]
        average = invested / quantity
        price = prices.get_price(exchange, symbol)
        if price is None:
            price = average
        value = quantity * price
        aggregated.append(
            AggregatedHolding(
                symbol=symbol,
                exchange=exchange,
                quantity=quantity,
                average_price=average,
                invested_value=invested,
                current_price=price,
                current_value=value,
                pnl=value - invested,
                pnl_percentage=percentage_change(price, average),
                baskets=tuple(baskets[key]),
            )
        )

    aggregated.sort(key=lambda h: h.invested_value, reverse=True)
    return aggregated
