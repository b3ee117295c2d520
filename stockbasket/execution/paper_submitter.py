"""Paper order submitter for simulation and tests.

Accepts every order immediately and keeps a log of what was submitted.
Symbols can be configured to be rejected to exercise partial-failure paths.
"""

import uuid
from typing import Dict, Iterable, List, Optional

from stockbasket.execution.base import OrderSubmitter, SubmissionResult, SubmissionStatus
from stockbasket.portfolio.base import Order
from stockbasket.utils.exceptions import OrderSubmissionError
from stockbasket.utils.logging import get_logger

logger = get_logger(__name__)


class PaperOrderSubmitter(OrderSubmitter):
    """Simulated broker.

    Configuration:
        reject_symbols: Symbols whose orders are rejected (default none)

    Example:
        >>> submitter = PaperOrderSubmitter({"reject_symbols": ["WIPRO"]})
        >>> results = asyncio.run(submitter.submit(orders))
        >>> [r.status.value for r in results]
        ['ACCEPTED', 'REJECTED']
    """

    def __init__(self, config: Optional[Dict] = None):
        """Initialize paper submitter.

        Args:
            config: Configuration dictionary
        """
        config = config or {}

        self.reject_symbols = {s.upper() for s in config.get("reject_symbols", [])}

        # State
        self._submitted: List[SubmissionResult] = []
        self._connected = True

        logger.debug(
            "PaperOrderSubmitter initialized: reject_symbols=%s",
            sorted(self.reject_symbols),
        )

    def set_connected(self, connected: bool) -> None:
        """Simulate a broker outage: while disconnected submit() raises."""
        self._connected = connected

    async def submit(self, orders: Iterable[Order]) -> List[SubmissionResult]:
        """Accept each order unless its symbol is configured for rejection."""
        if not self._connected:
            raise OrderSubmissionError("Paper broker disconnected")

        results = []
        for order in orders:
            if order.symbol.upper() in self.reject_symbols:
                result = SubmissionResult(
                    order=order,
                    status=SubmissionStatus.REJECTED,
                    message=f"Symbol {order.symbol} not tradable",
                )
                logger.warning("Order rejected: %s", result.message)
            else:
                result = SubmissionResult(
                    order=order,
                    status=SubmissionStatus.ACCEPTED,
                    broker_order_id=str(uuid.uuid4())[:8],
                )
                logger.info(
                    "%s %d %s:%s accepted (%s)",
                    order.side.value,
                    order.quantity,
                    order.exchange,
                    order.symbol,
                    result.broker_order_id,
                )
            results.append(result)

        self._submitted.extend(results)
        return results

    def get_submissions(self) -> List[SubmissionResult]:
        """All results returned so far."""
        return self._submitted.copy()

    def reset(self) -> None:
        """Forget previous submissions."""
        self._submitted.clear()
        self._connected = True
