"""Investment bookkeeping.

An Investment owns its holdings. The planners only read them; holdings change
only when confirmed fills are applied here or when the broker's view of the
holdings is synced in. Both operations return a new Investment.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from stockbasket.basket.base import InstrumentKey, instrument_key
from stockbasket.portfolio.base import Holding, OrderSide, PriceSnapshot
from stockbasket.utils.exceptions import InvariantViolation
from stockbasket.utils.logging import get_logger, log_with_context
from stockbasket.utils.money import HUNDRED, ZERO, to_decimal

logger = get_logger(__name__)


class InvestmentStatus(Enum):
    """Investment lifecycle."""

    ACTIVE = "ACTIVE"
    PARTIAL = "PARTIAL"  # Partially exited
    SOLD = "SOLD"  # No holdings left


@dataclass(frozen=True)
class Fill:
    """A confirmed execution reported by the broker.

    Attributes:
        symbol: Trading symbol
        exchange: Exchange code
        side: BUY or SELL
        quantity: Shares executed
        price: Execution price
    """

    symbol: str
    exchange: str
    side: OrderSide
    quantity: int
    price: Decimal

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"fill quantity must be positive, got {self.quantity}")
        object.__setattr__(self, "price", to_decimal(self.price))

    @property
    def value(self) -> Decimal:
        return self.quantity * self.price


@dataclass(frozen=True)
class Investment:
    """A basket investment and the holdings it exclusively owns.

    Attributes:
        basket_ref: Identifier or name of the basket invested in
        holdings: One Holding per owned instrument
        invested_amount: Net cash put in (buys minus sell proceeds at cost)
        current_value: Value at the last revaluation
        status: ACTIVE, PARTIAL or SOLD
        last_rebalanced_at: Set by the caller after a rebalance executes
    """

    basket_ref: str
    holdings: Tuple[Holding, ...] = field(default_factory=tuple)
    invested_amount: Decimal = ZERO
    current_value: Decimal = ZERO
    status: InvestmentStatus = InvestmentStatus.ACTIVE
    last_rebalanced_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "holdings", tuple(self.holdings))
        object.__setattr__(self, "invested_amount", to_decimal(self.invested_amount))
        object.__setattr__(self, "current_value", to_decimal(self.current_value))

    def holding(self, exchange: str, symbol: str) -> Optional[Holding]:
        key = instrument_key(exchange, symbol)
        for h in self.holdings:
            if h.key == key:
                return h
        return None


@dataclass(frozen=True)
class InvestmentValuation:
    """Mark-to-market view of an investment.

    Attributes:
        invested_amount: Cost basis of the current holdings
        current_value: Holdings valued at snapshot prices (average price
                       when a price is missing)
        pnl: current_value - invested_amount
        pnl_percentage: pnl as a percentage of invested_amount
        weights: Actual weight per instrument, in percent
    """

    invested_amount: Decimal
    current_value: Decimal
    pnl: Decimal
    pnl_percentage: Decimal
    weights: Dict[InstrumentKey, Decimal]


def percentage_change(current: Decimal, original: Decimal) -> Decimal:
    """Percentage change from ``original`` to ``current``; 0 when original is 0."""
    if original == ZERO:
        return ZERO
    return (current - original) / original * HUNDRED


def apply_fills(investment: Investment, fills: Iterable[Fill]) -> Investment:
    """Apply confirmed fills and return the updated investment.

    Buys add shares at a weighted average price; sells remove shares and
    drop holdings that reach zero. Status becomes SOLD when nothing is left
    and ACTIVE again when a SOLD investment buys back in; marking a partial
    exit is up to the caller.

    Raises:
        InvariantViolation: If a sell exceeds the held quantity
    """
    fills = list(fills)
    if not fills:
        return investment

    positions: Dict[InstrumentKey, Holding] = {h.key: h for h in investment.holdings}
    order: List[InstrumentKey] = [h.key for h in investment.holdings]
    invested = investment.invested_amount

    for fill in fills:
        key = instrument_key(fill.exchange, fill.symbol)
        current = positions.get(key)

        if fill.side == OrderSide.BUY:
            if current is None:
                positions[key] = Holding(fill.symbol, fill.exchange, fill.quantity, fill.price)
                order.append(key)
            else:
                quantity = current.quantity + fill.quantity
                average = (current.cost_basis + fill.value) / quantity
                positions[key] = replace(current, quantity=quantity, average_price=average)
            invested += fill.value
            continue

        held = current.quantity if current else 0
        if fill.quantity > held:
            message = (
                f"Sell fill of {fill.quantity} {fill.exchange}:{fill.symbol} "
                f"exceeds held quantity {held}"
            )
            logger.error(message)
            raise InvariantViolation(message)

        invested -= fill.quantity * current.average_price
        remaining = held - fill.quantity
        if remaining == 0:
            del positions[key]
            order.remove(key)
        else:
            positions[key] = replace(current, quantity=remaining)

    holdings = tuple(positions[k] for k in order)
    if not holdings:
        status = InvestmentStatus.SOLD
    elif investment.status == InvestmentStatus.SOLD:
        status = InvestmentStatus.ACTIVE
    else:
        status = investment.status

    updated = replace(
        investment,
        holdings=holdings,
        invested_amount=max(invested, ZERO),
        status=status,
    )
    log_with_context(
        logger, "info", "Fills applied",
        basket=investment.basket_ref, holdings=len(holdings), status=status.value,
    )
    return updated


def sync_holdings(
    investment: Investment,
    broker_holdings: Iterable[Holding],
    prices: Optional[PriceSnapshot] = None,
) -> Investment:
    """Refresh owned holdings from the broker's view.

    Only instruments the investment already owns and the broker reports are
    updated (quantity and average price); holdings the broker does not list
    are kept as they are. A reported quantity of zero removes the holding.
    Instruments the broker reports that the investment never owned are
    ignored. ``current_value`` is recomputed from ``prices`` (average price
    where a price is missing).
    """
    reported: Dict[InstrumentKey, Holding] = {h.key: h for h in broker_holdings}

    holdings: List[Holding] = []
    updated = 0
    for holding in investment.holdings:
        broker = reported.get(holding.key)
        if broker is None:
            holdings.append(holding)
            continue
        updated += 1
        if broker.quantity > 0:
            holdings.append(
                replace(holding, quantity=broker.quantity, average_price=broker.average_price)
            )

    if updated == 0:
        return investment

    status = investment.status if holdings else InvestmentStatus.SOLD
    synced = replace(
        investment,
        holdings=tuple(holdings),
        invested_amount=sum((h.cost_basis for h in holdings), ZERO),
        status=status,
    )
    synced = replace(
        synced, current_value=revalue(synced, prices or PriceSnapshot()).current_value
    )
    log_with_context(
        logger, "info", "Holdings synced with broker",
        basket=investment.basket_ref, updated=updated, holdings=len(holdings),
    )
    return synced


def revalue(investment: Investment, prices: PriceSnapshot) -> InvestmentValuation:
    """Value an investment at snapshot prices.

    Instruments without a price fall back to their average price.
    """
    values: Dict[InstrumentKey, Decimal] = {}
    for holding in investment.holdings:
        price = prices.get_price(holding.exchange, holding.symbol)
        if price is None:
            price = holding.average_price
        values[holding.key] = holding.quantity * price

    current_value = sum(values.values(), ZERO)
    invested = sum((h.cost_basis for h in investment.holdings), ZERO)
    weights = {
        key: (value / current_value * HUNDRED if current_value > ZERO else ZERO)
        for key, value in values.items()
    }
    pnl = current_value - invested
    return InvestmentValuation(
        invested_amount=invested,
        current_value=current_value,
        pnl=pnl,
        pnl_percentage=percentage_change(current_value, invested),
        weights=weights,
    )


def mark_to_market(investment: Investment, prices: PriceSnapshot) -> Investment:
    """Return the investment with ``current_value`` refreshed from prices."""
    return replace(investment, current_value=revalue(investment, prices).current_value)

