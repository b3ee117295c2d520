"""Data Layer - price and holdings sources for the planners."""

from stockbasket.data.base import HoldingsStore, PriceProvider
from stockbasket.data.static_provider import InMemoryHoldingsStore, StaticPriceProvider

__all__ = [
    # Abstract interfaces
    "PriceProvider",
    "HoldingsStore",
    # In-memory implementations
    "StaticPriceProvider",
    "InMemoryHoldingsStore",
]
