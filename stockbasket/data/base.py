"""Abstract interfaces for price and holdings data.

The engine never talks to a broker directly. Concrete providers (broker LTP
API, a cache, a static test fixture) implement these interfaces and hand the
planners immutable snapshots.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Tuple

from stockbasket.portfolio.base import Holding, PriceSnapshot


class PriceProvider(ABC):
    """Abstract interface for last-traded-price sources.

    Example:
        >>> class MyProvider(PriceProvider):
        ...     async def get_prices(self, instruments):
        ...         quotes = await broker.ltp([f"{e}:{s}" for e, s in instruments])
        ...         return PriceSnapshot.from_quotes(quotes)
    """

    @abstractmethod
    async def get_prices(self, instruments: Iterable[Tuple[str, str]]) -> PriceSnapshot:
        """Fetch last traded prices for a set of instruments.

        Args:
            instruments: (exchange, symbol) pairs

        Returns:
            PriceSnapshot. Instruments the source does not know are omitted,
            not reported as errors.

        Raises:
            PriceProviderError: If the source cannot be reached at all
        """
        pass


class HoldingsStore(ABC):
    """Abstract interface for reading an investment's current holdings."""

    @abstractmethod
    def current_holdings(self, investment_id: str) -> List[Holding]:
        """Return the holdings owned by ``investment_id``.

        Unknown investments yield an empty list.
        """
        pass
