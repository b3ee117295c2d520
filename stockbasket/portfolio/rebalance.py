"""Drift-based rebalancing of an existing basket investment.

Algorithm:
1. Value every priced holding; the sum is the portfolio value
2. For each basket constituent compare actual weight with target weight
3. Leave constituents within the threshold alone (HOLD)
4. Otherwise trade the whole shares that bring the position back to target

Holdings that are not part of the basket are valued (they count towards the
portfolio total) but never traded: dropping a stock from a basket does not
sell it automatically. They are listed in ``RebalancePlan.untracked``.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from stockbasket.basket.base import Basket, InstrumentKey
from stockbasket.portfolio.base import (
    DataGap,
    Holding,
    Order,
    OrderSide,
    PriceSnapshot,
    make_order,
)
from stockbasket.utils.config import EngineSettings
from stockbasket.utils.logging import get_logger, log_with_context
from stockbasket.utils.money import HUNDRED, ZERO, Number, floor_shares, to_decimal

logger = get_logger(__name__)

DEFAULT_THRESHOLD = Decimal("5")


class RebalanceAction(Enum):
    """Per-constituent rebalance decision."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


@dataclass(frozen=True)
class RebalanceRecommendation:
    """Drift analysis for one basket constituent.

    Attributes:
        symbol: Trading symbol
        exchange: Exchange code
        target_weight: Weight in the basket (percent)
        actual_weight: Current share of portfolio value (percent)
        deviation: actual_weight - target_weight (percentage points)
        action: BUY, SELL or HOLD
        quantity: Shares to trade (0 for HOLD)
        amount: quantity * price
        price: Price used for sizing
    """

    symbol: str
    exchange: str
    target_weight: Decimal
    actual_weight: Decimal
    deviation: Decimal
    action: RebalanceAction
    quantity: int
    amount: Decimal
    price: Decimal


@dataclass(frozen=True)
class RebalancePlan:
    """Orders and analysis produced by the RebalancePlanner.

    Attributes:
        orders: Sells first, then buys
        total_value: Portfolio value over priced holdings
        total_buy_amount: Estimated value of all BUY orders
        total_sell_amount: Estimated value of all SELL orders
        threshold: Drift threshold the plan was built with
        recommendations: Per-constituent analysis, largest |deviation| first
        untracked: Held instruments that are not in the basket
        skipped: Instruments left out because their price was missing
    """

    orders: Tuple[Order, ...]
    total_value: Decimal
    total_buy_amount: Decimal
    total_sell_amount: Decimal
    threshold: Decimal
    recommendations: Tuple[RebalanceRecommendation, ...] = field(default_factory=tuple)
    untracked: Tuple[InstrumentKey, ...] = field(default_factory=tuple)
    skipped: Tuple[DataGap, ...] = field(default_factory=tuple)

    @property
    def net_amount(self) -> Decimal:
        """Cash needed (positive) or released (negative) by the plan."""
        return self.total_buy_amount - self.total_sell_amount

    @property
    def rebalance_needed(self) -> bool:
        return bool(self.orders)


class RebalancePlanner:
    """Generates corrective orders when holdings drift from basket weights.

    Configuration Parameters:
        threshold_percent: Drift in percentage points tolerated before trading
                           (default 5)

    Example:
        >>> planner = RebalancePlanner({"threshold_percent": 5})
        >>> holdings = [Holding("A", "NSE", 60), Holding("B", "NSE", 40)]
        >>> basket = Basket.from_weights([("NSE", "A", 50), ("NSE", "B", 50)])
        >>> plan = planner.plan_rebalance(
        ...     holdings, basket, PriceSnapshot({"NSE:A": 10, "NSE:B": 10})
        ... )
        >>> [(o.side.value, o.symbol, o.quantity) for o in plan.orders]
        [('SELL', 'A', 10), ('BUY', 'B', 10)]
    """

    def __init__(self, config: Optional[Dict] = None):
        """Initialize planner with configuration.

        Args:
            config: Configuration dictionary. Uses defaults if not provided.
        """
        config = config or {}
        self.threshold = to_decimal(config.get("threshold_percent", DEFAULT_THRESHOLD))
        self._validate_config()

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "RebalancePlanner":
        return cls({"threshold_percent": settings.rebalance_threshold})

    def _validate_config(self) -> None:
        """Validate configuration parameters."""
        if self.threshold < ZERO:
            raise ValueError(f"threshold_percent must be >= 0, got {self.threshold}")

    def plan_rebalance(
        self,
        holdings: Iterable[Holding],
        basket: Basket,
        prices: PriceSnapshot,
        threshold_percent: Optional[Number] = None,
    ) -> RebalancePlan:
        """Compare holdings with basket weights and size corrective orders.

        Args:
            holdings: Current holdings of the investment
            basket: Target basket
            prices: Price snapshot
            threshold_percent: Overrides the configured threshold

        Returns:
            RebalancePlan. A zero portfolio value yields a plan without orders.
        """
        threshold = self.threshold if threshold_percent is None else to_decimal(threshold_percent)
        if threshold < ZERO:
            raise ValueError(f"threshold_percent must be >= 0, got {threshold}")

        holdings = list(holdings)
        by_key: Dict[InstrumentKey, Holding] = {}
        for holding in holdings:
            by_key[holding.key] = holding

        skipped: List[DataGap] = []
        total_value = ZERO
        for holding in holdings:
            price = prices.get_price(holding.exchange, holding.symbol)
            if price is None:
                skipped.append(DataGap(holding.exchange, holding.symbol))
                continue
            total_value += holding.quantity * price

        basket_keys = set(basket.keys)
        untracked = tuple(h.key for h in holdings if h.key not in basket_keys)
        if untracked:
            log_with_context(
                logger, "info", "Holdings outside basket are not rebalanced",
                instruments=",".join(f"{e}:{s}" for e, s in untracked),
            )

        if total_value <= ZERO:
            logger.warning("Portfolio value is zero, no rebalance orders generated")
            return RebalancePlan(
                orders=(),
                total_value=ZERO,
                total_buy_amount=ZERO,
                total_sell_amount=ZERO,
                threshold=threshold,
                untracked=untracked,
                skipped=tuple(skipped),
            )

        sell_orders: List[Order] = []
        buy_orders: List[Order] = []
        recommendations: List[RebalanceRecommendation] = []
        buy_amount = ZERO
        sell_amount = ZERO

        for constituent in basket:
            price = prices.get_price(constituent.exchange, constituent.symbol)
            if price is None:
                if constituent.key not in by_key:
                    skipped.append(DataGap(constituent.exchange, constituent.symbol))
                log_with_context(
                    logger, "warning", "Price missing, constituent not rebalanced",
                    exchange=constituent.exchange, symbol=constituent.symbol,
                )
                continue

            holding = by_key.get(constituent.key)
            held = holding.quantity if holding else 0
            current_value = held * price
            target_weight = constituent.weight_percentage
            actual_weight = current_value / total_value * HUNDRED
            deviation = actual_weight - target_weight

            action = RebalanceAction.HOLD
            quantity = 0
            if abs(deviation) > threshold:
                target_value = target_weight / HUNDRED * total_value
                quantity_diff = floor_shares(abs(target_value - current_value), price)
                if deviation > ZERO:
                    quantity = min(quantity_diff, held)
                    if quantity > 0:
                        action = RebalanceAction.SELL
                        order = make_order(
                            OrderSide.SELL, constituent.symbol, constituent.exchange,
                            quantity, price,
                            reason=f"Reduce from {actual_weight:.2f}% to {target_weight}%",
                        )
                        sell_orders.append(order)
                        sell_amount += order.estimated_value
                else:
                    quantity = quantity_diff
                    if quantity > 0:
                        action = RebalanceAction.BUY
                        order = make_order(
                            OrderSide.BUY, constituent.symbol, constituent.exchange,
                            quantity, price,
                            reason=f"Increase from {actual_weight:.2f}% to {target_weight}%",
                        )
                        buy_orders.append(order)
                        buy_amount += order.estimated_value

            recommendations.append(
                RebalanceRecommendation(
                    symbol=constituent.symbol,
                    exchange=constituent.exchange,
                    target_weight=target_weight,
                    actual_weight=actual_weight,
                    deviation=deviation,
                    action=action,
                    quantity=quantity,
                    amount=quantity * price,
                    price=price,
                )
            )

        recommendations.sort(key=lambda r: abs(r.deviation), reverse=True)

        plan = RebalancePlan(
            orders=tuple(sell_orders + buy_orders),
            total_value=total_value,
            total_buy_amount=buy_amount,
            total_sell_amount=sell_amount,
            threshold=threshold,
            recommendations=tuple(recommendations),
            untracked=untracked,
            skipped=tuple(skipped),
        )

        log_with_context(
            logger, "info", "Rebalance plan calculated",
            total_value=total_value, threshold=threshold,
            sells=len(sell_orders), buys=len(buy_orders),
            buy_amount=buy_amount, sell_amount=sell_amount,
        )
        return plan


def plan_rebalance(
    holdings: Iterable[Holding],
    basket: Basket,
    prices: PriceSnapshot,
    threshold_percent: Number = DEFAULT_THRESHOLD,
) -> RebalancePlan:
    """Module-level shortcut for ``RebalancePlanner().plan_rebalance``."""
    return RebalancePlanner({"threshold_percent": threshold_percent}).plan_rebalance(
        holdings, basket, prices
    )
