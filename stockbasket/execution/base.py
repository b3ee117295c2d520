"""Abstract base class for order submission.

The planners produce broker-agnostic Orders. An OrderSubmitter hands them to
a broker (or a simulation) and reports, per order, whether it was accepted.
Acceptance is not a fill: holdings only change when fills are confirmed and
applied with ``stockbasket.portfolio.investment.apply_fills``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from stockbasket.portfolio.base import Order
from stockbasket.portfolio.investment import Fill


class SubmissionStatus(Enum):
    """Broker response to a submitted order."""

    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of submitting one order.

    Attributes:
        order: The order that was submitted
        status: ACCEPTED or REJECTED
        broker_order_id: Broker reference, None when rejected
        message: Rejection reason or broker note
        submitted_at: When the broker answered
    """

    order: Order
    status: SubmissionStatus
    broker_order_id: Optional[str] = None
    message: str = ""
    submitted_at: datetime = field(default_factory=datetime.now)

    @property
    def accepted(self) -> bool:
        return self.status == SubmissionStatus.ACCEPTED


class OrderSubmitter(ABC):
    """Abstract interface for sending orders to a broker.

    Example:
        >>> submitter = PaperOrderSubmitter()
        >>> results = asyncio.run(submitter.submit(plan.orders))
        >>> for result in results:
        ...     print(f"{result.order.symbol}: {result.status.value}")
    """

    @abstractmethod
    async def submit(self, orders: Iterable[Order]) -> List[SubmissionResult]:
        """Submit a batch of orders.

        Args:
            orders: Orders in the sequence they should be placed

        Returns:
            One SubmissionResult per order, in the same sequence. Individual
            rejections are reported here, not raised.

        Raises:
            OrderSubmissionError: If the broker cannot be reached at all
        """
        pass


def fills_from_results(results: Iterable[SubmissionResult]) -> List[Fill]:
    """Treat accepted orders as filled at their planned price.

    Suitable for paper trading only; a live broker must report real fills.
    """
    fills = []
    for result in results:
        if not result.accepted:
            continue
        order = result.order
        fills.append(
            Fill(
                symbol=order.symbol,
                exchange=order.exchange,
                side=order.side,
                quantity=order.quantity,
                price=order.estimated_value / order.quantity,
            )
        )
    return fills
