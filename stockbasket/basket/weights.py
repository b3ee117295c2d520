"""Weight normalization for basket edits.

Every edit keeps the basket invariant: weights are 2-decimal percentages in
[min_weight, 100] that sum to exactly 100.00. Rounding residue left over after
rescaling is handed to a single constituent:

- add / remove: the first constituent
- adjust: the largest constituent (first one on ties)
- equal weights: the last constituent

Rejected edits return the original basket together with the error.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from stockbasket.basket.base import (
    MAX_CONSTITUENTS,
    MIN_WEIGHT,
    WEIGHT_TOLERANCE,
    Basket,
    Constituent,
    validate_basket,
)
from stockbasket.utils.config import EngineSettings
from stockbasket.utils.exceptions import BasketValidationError, InvariantViolation
from stockbasket.utils.logging import get_logger, log_with_context
from stockbasket.utils.money import HUNDRED, ZERO, Number, quantize_weight, to_decimal

logger = get_logger(__name__)


@dataclass(frozen=True)
class BasketEdit:
    """Outcome of a basket edit.

    Attributes:
        basket: The edited basket, or the unchanged input when rejected
        error: Why the edit was rejected, None on success
    """

    basket: Basket
    error: Optional[BasketValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class WeightNormalizer:
    """Applies add/remove/adjust/equalize edits while keeping weights valid.

    Configuration Parameters:
        min_weight: Floor for every constituent weight (default 0.5)
        max_constituents: Largest allowed basket (default 20)

    Example:
        >>> normalizer = WeightNormalizer()
        >>> basket = Basket.from_weights([("NSE", "TCS", 100)])
        >>> edit = normalizer.add_constituent(basket, Constituent("INFY", "NSE"))
        >>> [str(w) for w in edit.basket.weights]
        ['50.00', '50.00']
    """

    def __init__(self, config: Optional[Dict] = None):
        """Initialize normalizer with configuration.

        Args:
            config: Configuration dictionary. Uses defaults if not provided.
        """
        config = config or {}

        self.min_weight = to_decimal(config.get("min_weight", MIN_WEIGHT))
        self.max_constituents = int(config.get("max_constituents", MAX_CONSTITUENTS))
        self.tolerance = to_decimal(config.get("weight_tolerance", WEIGHT_TOLERANCE))

        self._validate_config()

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "WeightNormalizer":
        return cls(
            {
                "min_weight": settings.min_weight,
                "max_constituents": settings.max_constituents,
                "weight_tolerance": settings.weight_tolerance,
            }
        )

    def _validate_config(self) -> None:
        """Validate configuration parameters."""
        if not ZERO < self.min_weight < HUNDRED:
            raise ValueError(f"min_weight must be in (0, 100), got {self.min_weight}")
        if self.max_constituents < 1:
            raise ValueError(
                f"max_constituents must be >= 1, got {self.max_constituents}"
            )
        if self.min_weight * self.max_constituents > HUNDRED:
            raise ValueError(
                "min_weight * max_constituents must not exceed 100, got "
                f"{self.min_weight} * {self.max_constituents}"
            )

    def add_constituent(self, basket: Basket, new: Constituent) -> BasketEdit:
        """Append a constituent at weight 100/(n+1), scaling the others down.

        Args:
            basket: Current basket
            new: Constituent to add (its weight is ignored)

        Returns:
            BasketEdit with the new basket, or the original and an error
        """
        count = len(basket)
        if count + 1 > self.max_constituents:
            return self._reject(
                basket,
                f"Basket already has {count} constituents, "
                f"maximum is {self.max_constituents}",
            )
        if basket.index_of(new.exchange, new.symbol) is not None:
            return self._reject(
                basket, f"{new.exchange}:{new.symbol} is already in the basket"
            )

        new_weight = quantize_weight(HUNDRED / (count + 1))
        weights = [
            max(quantize_weight(w), self.min_weight)
            for w in self._rescale(basket.weights, HUNDRED - new_weight)
        ]
        weights.append(new_weight)
        self._absorb_residual(weights, preferred=0)

        edited = basket.with_constituents(
            list(basket.constituents) + [new]
        ).with_weights(weights)
        self._check_invariants(edited)

        log_with_context(
            logger, "debug", "Constituent added",
            symbol=new.symbol, exchange=new.exchange, weight=new_weight,
            size=len(edited),
        )
        return BasketEdit(basket=edited)

    def remove_constituent(self, basket: Basket, index: int) -> BasketEdit:
        """Remove the constituent at ``index`` and scale the rest back to 100.

        Removing the last constituent yields a valid empty basket; callers
        must not submit it.
        """
        if not 0 <= index < len(basket):
            return self._reject(
                basket, f"Index {index} out of range for basket of size {len(basket)}"
            )

        removed = basket[index]
        remaining = [c for i, c in enumerate(basket.constituents) if i != index]
        if not remaining:
            logger.debug("Last constituent removed, basket is empty")
            return BasketEdit(basket=basket.with_constituents([]))

        weights = [
            max(quantize_weight(w), self.min_weight)
            for w in self._rescale([c.weight_percentage for c in remaining], HUNDRED)
        ]
        self._absorb_residual(weights, preferred=0)

        edited = basket.with_constituents(remaining).with_weights(weights)
        self._check_invariants(edited)

        log_with_context(
            logger, "debug", "Constituent removed",
            symbol=removed.symbol, exchange=removed.exchange, size=len(edited),
        )
        return BasketEdit(basket=edited)

    def adjust_weight(self, basket: Basket, index: int, new_weight: Number) -> BasketEdit:
        """Set one constituent's weight and redistribute the difference.

        The requested weight is clamped to [min_weight, 100 - min_weight*(n-1)].
        The other constituents absorb ``-delta`` in proportion to their share of
        the non-target total (equal split if that total is 0) and are floored
        at min_weight. Any residual goes to the largest constituent.
        """
        count = len(basket)
        if count == 0:
            return self._reject(basket, "Cannot adjust weights of an empty basket")
        if not 0 <= index < count:
            return self._reject(
                basket, f"Index {index} out of range for basket of size {count}"
            )

        requested = to_decimal(new_weight)
        if not requested.is_finite():
            return self._reject(basket, f"Weight must be a finite number, got {new_weight}")

        # Single stock is pinned at 100
        if count == 1:
            return BasketEdit(basket=basket.with_weights([HUNDRED]))

        ceiling = HUNDRED - self.min_weight * (count - 1)
        target = quantize_weight(min(max(requested, self.min_weight), ceiling))

        weights = [quantize_weight(w) for w in basket.weights]
        delta = target - weights[index]
        other_total = sum((w for i, w in enumerate(weights) if i != index), ZERO)
        equal_share = (HUNDRED - target) / (count - 1)

        for i, weight in enumerate(weights):
            if i == index:
                continue
            if other_total > ZERO:
                adjusted = weight - delta * weight / other_total
            else:
                adjusted = equal_share
            weights[i] = max(quantize_weight(adjusted), self.min_weight)

        weights[index] = target
        self._absorb_residual(weights, preferred=None)

        edited = basket.with_weights(weights)
        self._check_invariants(edited)

        log_with_context(
            logger, "debug", "Weight adjusted",
            symbol=basket[index].symbol, requested=requested, applied=weights[index],
        )
        return BasketEdit(basket=edited)

    def apply_equal_weights(self, basket: Basket) -> BasketEdit:
        """Give every constituent 100/n; the last one takes the rounding residual."""
        count = len(basket)
        if count == 0:
            return self._reject(basket, "Cannot equalize an empty basket")

        share = quantize_weight(HUNDRED / count)
        weights = [share] * count
        weights[-1] += HUNDRED - share * count

        edited = basket.with_weights(weights)
        self._check_invariants(edited)
        return BasketEdit(basket=edited)

    def validate(self, basket: Basket) -> Optional[BasketValidationError]:
        """Save-time validation using this normalizer's limits."""
        return validate_basket(
            basket,
            min_weight=self.min_weight,
            max_constituents=self.max_constituents,
            tolerance=self.tolerance,
        )

    @staticmethod
    def _rescale(weights: List[Decimal], target_total: Decimal) -> List[Decimal]:
        """Scale weights proportionally so they sum to ``target_total``."""
        if not weights:
            return []
        total = sum(weights, ZERO)
        if total <= ZERO:
            return [target_total / len(weights)] * len(weights)
        return [w * target_total / total for w in weights]

    def _absorb_residual(self, weights: List[Decimal], preferred: Optional[int]) -> None:
        """Add ``100 - sum(weights)`` to one entry so the sum is exact.

        ``preferred`` receives the residual when it stays within bounds;
        otherwise (or when None) the largest weight takes it.
        """
        residual = HUNDRED - sum(weights, ZERO)
        if residual == ZERO:
            return

        index = preferred
        if index is None or not self.min_weight <= weights[index] + residual <= HUNDRED:
            index = _largest_index(weights)

        weights[index] += residual

    def _check_invariants(self, basket: Basket) -> None:
        """Raise InvariantViolation if normalization produced an invalid basket."""
        for constituent in basket:
            weight = constituent.weight_percentage
            if weight < self.min_weight or weight > HUNDRED:
                self._violation(
                    f"Weight {weight} of {constituent.symbol} outside "
                    f"[{self.min_weight}, 100] after normalization"
                )
        if len(basket) and not basket.is_balanced(self.tolerance):
            self._violation(
                f"Weights sum to {basket.total_weight} after normalization"
            )

    @staticmethod
    def _violation(message: str) -> None:
        logger.error(message)
        raise InvariantViolation(message)

    @staticmethod
    def _reject(basket: Basket, message: str) -> BasketEdit:
        logger.info("Basket edit rejected: %s", message)
        return BasketEdit(basket=basket, error=BasketValidationError(message))


def _largest_index(weights: List[Decimal]) -> int:
    """Index of the largest weight, first occurrence on ties."""
    best = 0
    for i, weight in enumerate(weights):
        if weight > weights[best]:
            best = i
    return best
