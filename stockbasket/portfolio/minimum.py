"""Minimum investment calculation.

For a constituent of weight w and price p, the basket needs at least
p / (w/100) of cash before that constituent's slice buys one share. The basket
minimum is the largest such amount, rounded up to the rounding unit.
"""

from decimal import Decimal
from typing import Optional

from stockbasket.basket.base import Basket
from stockbasket.portfolio.base import PriceSnapshot
from stockbasket.utils.exceptions import InsufficientInvestmentError
from stockbasket.utils.logging import get_logger, log_with_context
from stockbasket.utils.money import HUNDRED, ZERO, Number, round_up_to, to_decimal

logger = get_logger(__name__)

DEFAULT_ROUNDING = Decimal("100")


def min_investment(
    basket: Basket,
    prices: PriceSnapshot,
    rounding: Number = DEFAULT_ROUNDING,
) -> Decimal:
    """Smallest cash amount that buys at least one share of every constituent.

    Constituents without a price are left out of the maximum. If no
    constituent has a price the result is 0.

    Args:
        basket: Target basket
        prices: Price snapshot
        rounding: Result is rounded up to a multiple of this amount

    Returns:
        Minimum investment amount

    Example:
        >>> basket = Basket.from_weights([("NSE", "A", 50), ("NSE", "B", 50)])
        >>> min_investment(basket, PriceSnapshot({"NSE:A": 100, "NSE:B": 50}))
        Decimal('200')
    """
    binding = ZERO
    for constituent in basket:
        price = prices.get_price(constituent.exchange, constituent.symbol)
        weight = constituent.weight_percentage
        if price is None:
            log_with_context(
                logger, "warning", "Price missing, excluded from minimum investment",
                exchange=constituent.exchange, symbol=constituent.symbol,
            )
            continue
        if weight <= ZERO:
            continue
        binding = max(binding, price * HUNDRED / weight)

    return round_up_to(binding, to_decimal(rounding))


def check_investment_amount(
    basket: Basket,
    prices: PriceSnapshot,
    amount: Number,
    rounding: Number = DEFAULT_ROUNDING,
) -> Optional[InsufficientInvestmentError]:
    """Return an error when ``amount`` is below the basket minimum, else None."""
    amount = to_decimal(amount)
    minimum = min_investment(basket, prices, rounding)
    if amount < minimum:
        logger.info("Investment amount %s below minimum %s", amount, minimum)
        return InsufficientInvestmentError(amount, minimum)
    return None
