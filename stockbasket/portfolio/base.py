"""Core value types shared by the planners.

This module defines the contract between the planners and their callers:
price snapshots go in, orders and plans come out. Everything here is an
immutable value; nothing is persisted by the engine.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Union

from stockbasket.basket.base import InstrumentKey, instrument_key
from stockbasket.utils.exceptions import InvariantViolation
from stockbasket.utils.money import ZERO, Number, to_decimal


class OrderSide(Enum):
    """Order side."""

    BUY = "BUY"
    SELL = "SELL"


class OrderType(Enum):
    """Order types produced by the engine."""

    MARKET = "MARKET"


@dataclass(frozen=True)
class Order:
    """A broker-agnostic order to be handed to an OrderSubmitter.

    Attributes:
        symbol: Trading symbol
        exchange: Exchange code
        side: BUY or SELL
        quantity: Whole number of shares, always positive
        order_type: Always MARKET
        estimated_value: quantity * price at planning time
        reason: Why this order was generated (for logging/debugging)
    """

    symbol: str
    exchange: str
    side: OrderSide
    quantity: int
    order_type: OrderType = OrderType.MARKET
    estimated_value: Decimal = ZERO
    reason: str = ""

    def __post_init__(self):
        """Validate order fields."""
        if not isinstance(self.quantity, int) or self.quantity <= 0:
            raise InvariantViolation(
                f"quantity must be a positive integer, got {self.quantity!r}"
            )
        object.__setattr__(self, "estimated_value", to_decimal(self.estimated_value))
        if self.estimated_value < ZERO:
            raise InvariantViolation(
                f"estimated_value must be non-negative, got {self.estimated_value}"
            )

    @property
    def key(self) -> InstrumentKey:
        return instrument_key(self.exchange, self.symbol)


@dataclass(frozen=True)
class Holding:
    """Shares of one instrument owned by an investment.

    Attributes:
        symbol: Trading symbol
        exchange: Exchange code
        quantity: Shares held
        average_price: Average acquisition price per share
    """

    symbol: str
    exchange: str
    quantity: int
    average_price: Decimal = ZERO

    def __post_init__(self):
        if not isinstance(self.quantity, int) or self.quantity < 0:
            raise ValueError(f"quantity must be a non-negative integer, got {self.quantity!r}")
        object.__setattr__(self, "average_price", to_decimal(self.average_price))

    @property
    def key(self) -> InstrumentKey:
        return instrument_key(self.exchange, self.symbol)

    @property
    def cost_basis(self) -> Decimal:
        return self.quantity * self.average_price


@dataclass(frozen=True)
class DataGap:
    """An instrument the planner had to skip because its price was missing."""

    exchange: str
    symbol: str
    reason: str = "price unavailable"


PriceKey = Union[InstrumentKey, str]


def _parse_key(key: PriceKey) -> InstrumentKey:
    if isinstance(key, tuple):
        exchange, symbol = key
        return instrument_key(exchange, symbol)
    if isinstance(key, str) and ":" in key:
        exchange, symbol = key.split(":", 1)
        return instrument_key(exchange, symbol)
    raise ValueError(f"Price key must be (exchange, symbol) or 'EXCHANGE:SYMBOL', got {key!r}")


class PriceSnapshot(Mapping):
    """Immutable last-traded-price lookup keyed by (exchange, symbol).

    Missing, zero, negative or non-numeric prices are dropped on construction,
    so a lookup either returns a usable positive price or None.

    Example:
        >>> prices = PriceSnapshot({"NSE:TCS": 3500, ("NSE", "INFY"): 1500.5})
        >>> prices.get_price("NSE", "TCS")
        Decimal('3500')
        >>> prices.get_price("NSE", "WIPRO") is None
        True
    """

    def __init__(self, prices: Optional[Mapping[PriceKey, Any]] = None):
        self._prices: Dict[InstrumentKey, Decimal] = {}
        for key, value in (prices or {}).items():
            if value is None:
                continue
            try:
                price = to_decimal(value)
            except ArithmeticError:
                continue
            if price.is_finite() and price > ZERO:
                self._prices[_parse_key(key)] = price

    @classmethod
    def from_quotes(cls, quotes: Mapping[str, Any]) -> "PriceSnapshot":
        """Build from broker LTP responses.

        Accepts ``{"NSE:TCS": {"last_price": 3500}}`` (or ``lastPrice``) as
        well as plain ``{"NSE:TCS": 3500}``.
        """
        prices: Dict[PriceKey, Any] = {}
        for key, quote in quotes.items():
            if isinstance(quote, Mapping):
                quote = quote.get("last_price", quote.get("lastPrice"))
            prices[key] = quote
        return cls(prices)

    def get_price(self, exchange: str, symbol: str) -> Optional[Decimal]:
        return self._prices.get(instrument_key(exchange, symbol))

    def __getitem__(self, key: PriceKey) -> Decimal:
        return self._prices[_parse_key(key)]

    def __contains__(self, key: object) -> bool:
        try:
            return _parse_key(key) in self._prices  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return False

    def __iter__(self) -> Iterator[InstrumentKey]:
        return iter(self._prices)

    def __len__(self) -> int:
        return len(self._prices)

    def __repr__(self) -> str:
        return f"PriceSnapshot({self._prices!r})"


def make_order(
    side: OrderSide,
    symbol: str,
    exchange: str,
    quantity: int,
    price: Number,
    reason: str = "",
) -> Order:
    """Create a MARKET order valued at ``quantity * price``."""
    return Order(
        symbol=symbol,
        exchange=exchange,
        side=side,
        quantity=quantity,
        estimated_value=quantity * to_decimal(price),
        reason=reason,
    )
