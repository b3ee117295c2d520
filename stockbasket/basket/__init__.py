"""Basket Layer.

Weighted stock baskets and the edits that keep their weights valid.

Components:
- Constituent: One stock and its target weight
- Basket: Immutable ordered set of constituents
- WeightNormalizer: Add/remove/adjust/equalize while preserving the 100% sum
- validate_basket: Save-time check
"""

from stockbasket.basket.base import (
    MAX_CONSTITUENTS,
    MIN_WEIGHT,
    WEIGHT_TOLERANCE,
    Basket,
    Constituent,
    InstrumentKey,
    instrument_key,
    validate_basket,
)
from stockbasket.basket.weights import BasketEdit, WeightNormalizer

__all__ = [
    "Basket",
    "BasketEdit",
    "Constituent",
    "InstrumentKey",
    "WeightNormalizer",
    "instrument_key",
    "validate_basket",
    "MIN_WEIGHT",
    "MAX_CONSTITUENTS",
    "WEIGHT_TOLERANCE",
]
