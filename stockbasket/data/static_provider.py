"""In-memory price and holdings sources.

Used by the CLI (prices and holdings come from a YAML file) and by tests.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from stockbasket.basket.base import instrument_key
from stockbasket.data.base import HoldingsStore, PriceProvider
from stockbasket.portfolio.base import Holding, PriceSnapshot
from stockbasket.utils.exceptions import PriceProviderError
from stockbasket.utils.logging import get_logger

logger = get_logger(__name__)


class StaticPriceProvider(PriceProvider):
    """Serves prices from a fixed table.

    Example:
        >>> provider = StaticPriceProvider({"NSE:TCS": 3500, "NSE:INFY": 1500})
        >>> snapshot = asyncio.run(provider.get_prices([("NSE", "TCS")]))
        >>> snapshot.get_price("NSE", "TCS")
        Decimal('3500')
    """

    def __init__(self, prices: Optional[Mapping[Any, Any]] = None):
        self._snapshot = PriceSnapshot(prices or {})
        self._available = True
        self.calls = 0

    def set_prices(self, prices: Mapping[Any, Any]) -> None:
        """Replace the price table."""
        self._snapshot = PriceSnapshot(prices)

    def set_available(self, available: bool) -> None:
        """Simulate an outage: while unavailable every call raises."""
        self._available = available

    async def get_prices(self, instruments: Iterable[Tuple[str, str]]) -> PriceSnapshot:
        self.calls += 1
        if not self._available:
            raise PriceProviderError("Price source unavailable")

        found: Dict[Tuple[str, str], Any] = {}
        missing = []
        for exchange, symbol in instruments:
            key = instrument_key(exchange, symbol)
            if key in self._snapshot:
                found[key] = self._snapshot[key]
            else:
                missing.append(f"{key[0]}:{key[1]}")

        if missing:
            logger.debug("No price for %s", ", ".join(missing))
        return PriceSnapshot(found)


class InMemoryHoldingsStore(HoldingsStore):
    """Holdings kept in a dict keyed by investment id."""

    def __init__(self, holdings: Optional[Mapping[str, Iterable[Holding]]] = None):
        self._holdings: Dict[str, List[Holding]] = {
            investment_id: list(items) for investment_id, items in (holdings or {}).items()
        }

    def current_holdings(self, investment_id: str) -> List[Holding]:
        return list(self._holdings.get(investment_id, []))

    def save_holdings(self, investment_id: str, holdings: Iterable[Holding]) -> None:
        """Replace the holdings of ``investment_id``; empty holdings remove it."""
        holdings = [h for h in holdings if h.quantity > 0]
        if holdings:
            self._holdings[investment_id] = holdings
        else:
            self._holdings.pop(investment_id, None)
