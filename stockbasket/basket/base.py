"""Basket data structures.

A basket is an ordered, immutable list of constituents whose weights are
percentages summing to 100. Edits never mutate a basket in place; the
WeightNormalizer returns a new Basket for every change, so a UI or API layer
can hold a draft and hand it to the engine by value.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from stockbasket.utils.exceptions import BasketValidationError
from stockbasket.utils.money import HUNDRED, ZERO, Number, to_decimal

MIN_WEIGHT = Decimal("0.5")
MAX_CONSTITUENTS = 20
WEIGHT_TOLERANCE = Decimal("0.01")

InstrumentKey = Tuple[str, str]


def instrument_key(exchange: str, symbol: str) -> InstrumentKey:
    """Canonical ``(exchange, symbol)`` key used for price and holding lookup."""
    return (exchange.upper(), symbol.upper())


@dataclass(frozen=True)
class Constituent:
    """One stock in a basket.

    Attributes:
        symbol: Trading symbol (e.g. "RELIANCE")
        exchange: Exchange code (e.g. "NSE")
        weight_percentage: Target weight in percent
    """

    symbol: str
    exchange: str
    weight_percentage: Decimal = ZERO

    def __post_init__(self) -> None:
        object.__setattr__(self, "weight_percentage", to_decimal(self.weight_percentage))

    @property
    def key(self) -> InstrumentKey:
        return instrument_key(self.exchange, self.symbol)

    def with_weight(self, weight: Number) -> "Constituent":
        """Return a copy carrying ``weight``."""
        return replace(self, weight_percentage=to_decimal(weight))


@dataclass(frozen=True)
class Basket:
    """Weighted set of constituents.

    Attributes:
        constituents: Constituents in display order
        name: Display name
    """

    constituents: Tuple[Constituent, ...] = field(default_factory=tuple)
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "constituents", tuple(self.constituents))

    @classmethod
    def from_weights(
        cls,
        entries: Iterable[Tuple[str, str, Number]],
        name: str = "",
    ) -> "Basket":
        """Build a basket from ``(exchange, symbol, weight)`` triples.

        Example:
            >>> Basket.from_weights([("NSE", "TCS", 60), ("NSE", "INFY", 40)])
        """
        return cls(
            constituents=tuple(
                Constituent(symbol=symbol, exchange=exchange, weight_percentage=weight)
                for exchange, symbol, weight in entries
            ),
            name=name,
        )

    def __len__(self) -> int:
        return len(self.constituents)

    def __iter__(self):
        return iter(self.constituents)

    def __getitem__(self, index: int) -> Constituent:
        return self.constituents[index]

    @property
    def weights(self) -> List[Decimal]:
        return [c.weight_percentage for c in self.constituents]

    @property
    def total_weight(self) -> Decimal:
        return sum(self.weights, ZERO)

    @property
    def keys(self) -> List[InstrumentKey]:
        return [c.key for c in self.constituents]

    def index_of(self, exchange: str, symbol: str) -> Optional[int]:
        """Position of a constituent, or None if absent."""
        key = instrument_key(exchange, symbol)
        for i, constituent in enumerate(self.constituents):
            if constituent.key == key:
                return i
        return None

    def with_weights(self, weights: Iterable[Decimal]) -> "Basket":
        """Return a copy with new weights, same order and symbols."""
        weights = list(weights)
        if len(weights) != len(self.constituents):
            raise ValueError(
                f"expected {len(self.constituents)} weights, got {len(weights)}"
            )
        return replace(
            self,
            constituents=tuple(
                c.with_weight(w) for c, w in zip(self.constituents, weights)
            ),
        )

    def with_constituents(self, constituents: Iterable[Constituent]) -> "Basket":
        return replace(self, constituents=tuple(constituents))

    def is_balanced(self, tolerance: Decimal = WEIGHT_TOLERANCE) -> bool:
        """True when the weights sum to 100 within ``tolerance``."""
        return abs(self.total_weight - HUNDRED) <= tolerance


def validate_basket(
    basket: Basket,
    min_weight: Decimal = MIN_WEIGHT,
    max_constituents: int = MAX_CONSTITUENTS,
    tolerance: Decimal = WEIGHT_TOLERANCE,
) -> Optional[BasketValidationError]:
    """Save-time validation of a basket.

    Returns:
        None when the basket may be persisted or invested in, otherwise the
        BasketValidationError describing the first problem found.
    """
    count = len(basket)
    if count == 0:
        return BasketValidationError("Basket must contain at least one constituent")
    if count > max_constituents:
        return BasketValidationError(
            f"Basket has {count} constituents, maximum is {max_constituents}"
        )

    seen = set()
    for constituent in basket:
        if constituent.key in seen:
            return BasketValidationError(
                f"Duplicate constituent {constituent.exchange}:{constituent.symbol}"
            )
        seen.add(constituent.key)

        weight = constituent.weight_percentage
        if weight < min_weight or weight > HUNDRED:
            return BasketValidationError(
                f"Weight of {constituent.exchange}:{constituent.symbol} must be in "
                f"[{min_weight}, 100], got {weight}"
            )

    if not basket.is_balanced(tolerance):
        return BasketValidationError(
            f"Constituent weights must sum to 100, got {basket.total_weight}"
        )

    return None
