"""Partial or full liquidation of a basket investment."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from stockbasket.portfolio.base import Holding, Order, OrderSide, PriceSnapshot, make_order
from stockbasket.utils.exceptions import ValidationError
from stockbasket.utils.logging import get_logger, log_with_context
from stockbasket.utils.money import HUNDRED, ZERO, Number, to_decimal

logger = get_logger(__name__)


@dataclass(frozen=True)
class SellPlan:
    """SELL orders for an exit.

    Attributes:
        orders: One SELL per holding with a non-zero sell quantity
        percentage: Share of every position being sold
        estimated_value: Sum of order values (snapshot price, or average
                         price when the snapshot has none)
        error: Set when the request was rejected; orders is then empty
    """

    orders: Tuple[Order, ...]
    percentage: Decimal
    estimated_value: Decimal = ZERO
    error: Optional[ValidationError] = field(default=None)

    @property
    def is_full_exit(self) -> bool:
        return self.percentage == HUNDRED

    @property
    def is_empty(self) -> bool:
        return not self.orders


def plan_sell(
    holdings: Iterable[Holding],
    percentage: Number = HUNDRED,
    prices: Optional[PriceSnapshot] = None,
) -> SellPlan:
    """Sell ``percentage`` percent of every holding, rounded down to whole shares.

    Args:
        holdings: Current holdings
        percentage: Portion to sell, in (0, 100]. 100 sells everything.
        prices: Optional snapshot used only to estimate proceeds

    Returns:
        SellPlan; holdings whose sell quantity rounds to 0 get no order
    """
    pct = to_decimal(percentage)
    if not pct.is_finite() or pct <= ZERO or pct > HUNDRED:
        logger.info("Sell rejected: percentage %s outside (0, 100]", percentage)
        return SellPlan(
            orders=(),
            percentage=pct,
            error=ValidationError(f"Sell percentage must be in (0, 100], got {percentage}"),
        )

    orders: List[Order] = []
    total = ZERO
    for holding in holdings:
        if pct == HUNDRED:
            quantity = holding.quantity
        else:
            quantity = int(holding.quantity * pct // HUNDRED)
        if quantity <= 0:
            continue

        price = prices.get_price(holding.exchange, holding.symbol) if prices else None
        if price is None:
            price = holding.average_price

        order = make_order(
            OrderSide.SELL,
            holding.symbol,
            holding.exchange,
            quantity,
            price,
            reason=f"Exit {pct}% of position",
        )
        total += order.estimated_value
        orders.append(order)

    log_with_context(
        logger, "info", "Sell plan calculated",
        percentage=pct, orders=len(orders), estimated_value=total,
    )
    return SellPlan(orders=tuple(orders), percentage=pct, estimated_value=total)
