"""Cash-to-orders allocation for new basket investments.

Algorithm:
1. Split the cash by constituent weight
2. Buy as many whole shares as each slice affords
3. Whatever does not fit into whole shares is left over

Constituents without a price are skipped and reported; the caller decides
whether a partial plan is acceptable.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Tuple

from stockbasket.basket.base import Basket
from stockbasket.portfolio.base import DataGap, Order, OrderSide, PriceSnapshot, make_order
from stockbasket.utils.logging import get_logger, log_with_context
from stockbasket.utils.money import HUNDRED, ZERO, Number, floor_shares, to_decimal

logger = get_logger(__name__)


@dataclass(frozen=True)
class BuyPlan:
    """Result of converting cash into buy orders.

    Attributes:
        orders: BUY orders in basket order, one per affordable constituent
        cash_amount: Cash the plan was built for
        spent_amount: Sum of quantity * price over all orders
        leftover_cash: cash_amount - spent_amount
        skipped: Constituents left out because their price was missing
    """

    orders: Tuple[Order, ...]
    cash_amount: Decimal
    spent_amount: Decimal
    leftover_cash: Decimal
    skipped: Tuple[DataGap, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        """True when no order could be generated.

        An empty plan usually means the cash is below the minimum investment
        and must be treated as a rejection.
        """
        return not self.orders

    @property
    def quantities(self) -> dict:
        """``{"EXCHANGE:SYMBOL": quantity}`` for every order."""
        return {f"{o.exchange}:{o.symbol}": o.quantity for o in self.orders}


def plan_buy(basket: Basket, prices: PriceSnapshot, cash_amount: Number) -> BuyPlan:
    """Convert a cash amount into whole-share BUY orders.

    Args:
        basket: Target basket
        prices: Price snapshot
        cash_amount: Cash to invest

    Returns:
        BuyPlan whose spent_amount + leftover_cash equals cash_amount exactly

    Example:
        >>> basket = Basket.from_weights([("NSE", "A", 50), ("NSE", "B", 50)])
        >>> plan = plan_buy(basket, PriceSnapshot({"NSE:A": 100, "NSE:B": 50}), 200)
        >>> [(o.symbol, o.quantity) for o in plan.orders]
        [('A', 1), ('B', 2)]
    """
    cash = to_decimal(cash_amount)
    orders: List[Order] = []
    skipped: List[DataGap] = []
    spent = ZERO

    for constituent in basket:
        price = prices.get_price(constituent.exchange, constituent.symbol)
        if price is None:
            log_with_context(
                logger, "warning", "Price missing, constituent skipped",
                exchange=constituent.exchange, symbol=constituent.symbol,
            )
            skipped.append(DataGap(constituent.exchange, constituent.symbol))
            continue

        allocation = cash * constituent.weight_percentage / HUNDRED
        quantity = floor_shares(allocation, price)
        if quantity == 0:
            continue

        order = make_order(
            OrderSide.BUY,
            constituent.symbol,
            constituent.exchange,
            quantity,
            price,
            reason=f"Allocate {constituent.weight_percentage}% of {cash}",
        )
        spent += order.estimated_value
        orders.append(order)

    plan = BuyPlan(
        orders=tuple(orders),
        cash_amount=cash,
        spent_amount=spent,
        leftover_cash=cash - spent,
        skipped=tuple(skipped),
    )

    log_with_context(
        logger, "info", "Buy plan calculated",
        cash=cash, orders=len(plan.orders), spent=plan.spent_amount,
        leftover=plan.leftover_cash, skipped=len(plan.skipped),
    )
    return plan
