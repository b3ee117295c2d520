"""High-level async API for basket investments.

This module wires the planners to the external collaborators: prices come
from a PriceProvider, orders go to an OrderSubmitter, and accepted orders are
booked into the investment. Operations on the same investment are serialized;
different investments proceed concurrently.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import AsyncIterator, Dict, Iterable, List, Optional, Tuple, Union

from stockbasket.basket.base import Basket, InstrumentKey
from stockbasket.basket.weights import WeightNormalizer
from stockbasket.data.base import HoldingsStore, PriceProvider
from stockbasket.execution.base import OrderSubmitter, SubmissionResult, fills_from_results
from stockbasket.portfolio.allocation import BuyPlan, plan_buy
from stockbasket.portfolio.base import Holding, PriceSnapshot
from stockbasket.portfolio.exit import SellPlan, plan_sell
from stockbasket.portfolio.investment import (
    Investment,
    InvestmentStatus,
    InvestmentValuation,
    apply_fills,
    mark_to_market,
    revalue,
    sync_holdings,
)
from stockbasket.portfolio.minimum import check_investment_amount, min_investment
from stockbasket.portfolio.rebalance import RebalancePlan, RebalancePlanner
from stockbasket.portfolio.summary import (
    AggregatedHolding,
    PortfolioSummary,
    aggregate_holdings,
    summarize,
)
from stockbasket.sip.models import SIPOutcome, SIPResult, SIPSchedule
from stockbasket.sip.scheduler import SIPScheduler
from stockbasket.utils.config import EngineSettings
from stockbasket.utils.exceptions import SIPValidationError, StockBasketError, ValidationError
from stockbasket.utils.logging import get_logger, log_with_context
from stockbasket.utils.money import HUNDRED, Number

logger = get_logger(__name__)

Plan = Union[BuyPlan, RebalancePlan, SellPlan]


@dataclass(frozen=True)
class ExecutionReport:
    """What happened to a buy, rebalance or sell request.

    Attributes:
        plan: The plan that was built (None when rejected before planning)
        results: One SubmissionResult per submitted order (empty on dry runs)
        investment: The investment after accepted orders were booked
        error: Why the request was rejected, None on success
        dry_run: True when the plan was built but nothing was submitted
    """

    plan: Optional[Plan]
    results: Tuple[SubmissionResult, ...] = field(default_factory=tuple)
    investment: Optional[Investment] = None
    error: Optional[StockBasketError] = None
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def accepted(self) -> List[SubmissionResult]:
        return [r for r in self.results if r.accepted]

    @property
    def rejected(self) -> List[SubmissionResult]:
        return [r for r in self.results if not r.accepted]


class BasketAPI:
    """Async facade for investing in, rebalancing and exiting baskets.

    Collaborator failures (PriceProviderError, OrderSubmissionError) are
    raised to the caller; validation problems come back in the report.

    Example:
        >>> api = BasketAPI(
        ...     StaticPriceProvider({"NSE:TCS": 3500, "NSE:INFY": 1500}),
        ...     PaperOrderSubmitter(),
        ... )
        >>> basket = Basket.from_weights([("NSE", "TCS", 50), ("NSE", "INFY", 50)])
        >>> report = asyncio.run(api.buy("inv-1", basket, 10000))
        >>> [(r.order.symbol, r.order.quantity) for r in report.accepted]
        [('TCS', 1), ('INFY', 3)]
    """

    def __init__(
        self,
        price_provider: PriceProvider,
        submitter: OrderSubmitter,
        settings: Optional[EngineSettings] = None,
        holdings_store: Optional[HoldingsStore] = None,
    ):
        """Initialize BasketAPI.

        Args:
            price_provider: Source of last traded prices
            submitter: Where orders are sent
            settings: Engine parameters (defaults if not provided)
            holdings_store: Broker view of holdings; when given, rebalance
                            and sell sync the investment with it first
        """
        self.price_provider = price_provider
        self.submitter = submitter
        self.settings = settings or EngineSettings()
        self.holdings_store = holdings_store

        self.normalizer = WeightNormalizer.from_settings(self.settings)
        self.rebalancer = RebalancePlanner.from_settings(self.settings)
        self.sip_scheduler = SIPScheduler.from_settings(self.settings)

        self._investments: Dict[str, Investment] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._sip_runs: Dict[str, SIPSchedule] = {}

        logger.debug(
            "BasketAPI initialized with %s and %s",
            type(price_provider).__name__,
            type(submitter).__name__,
        )

    def get_investment(self, investment_id: str) -> Optional[Investment]:
        return self._investments.get(investment_id)

    async def get_min_investment(self, basket: Basket) -> Decimal:
        """Minimum cash needed to buy every constituent of ``basket``."""
        prices = await self._fetch_prices(basket.keys)
        return min_investment(basket, prices, self.settings.min_investment_rounding)

    async def buy(
        self,
        investment_id: str,
        basket: Basket,
        amount: Number,
        dry_run: bool = False,
    ) -> ExecutionReport:
        """Invest ``amount`` in ``basket``, creating the investment if needed.

        Args:
            investment_id: Investment to book the purchase into
            basket: Target basket
            amount: Cash to invest
            dry_run: Build the plan without submitting

        Returns:
            ExecutionReport; rejected when the basket is invalid, the amount
            is below the minimum investment, or no whole share is affordable
        """
        async with self._serialized(investment_id):
            return await self._buy(investment_id, basket, amount, dry_run)

    async def rebalance(
        self,
        investment_id: str,
        basket: Basket,
        threshold_percent: Optional[Number] = None,
        dry_run: bool = False,
    ) -> ExecutionReport:
        """Bring an investment back to the basket's target weights.

        Holdings that are not in ``basket`` are left untouched.
        """
        error = self.normalizer.validate(basket)
        if error is not None:
            return self._rejected(investment_id, "rebalance", error)

        async with self._serialized(investment_id):
            current = self._investments.get(investment_id)
            if current is None:
                return self._unknown(investment_id, "rebalance")
            current = self._synced(investment_id, current)

            instruments = list(basket.keys) + [h.key for h in current.holdings]
            prices = await self._fetch_prices(instruments)

            plan = self.rebalancer.plan_rebalance(
                current.holdings, basket, prices, threshold_percent
            )
            report = await self._submit_and_book(investment_id, current, plan, prices, dry_run)

            if plan.rebalance_needed and not dry_run and report.investment is not None:
                stamped = replace(
                    report.investment,
                    last_rebalanced_at=datetime.now(self.settings.timezone),
                )
                self._investments[investment_id] = stamped
                report = replace(report, investment=stamped)
            return report

    async def sell(
        self,
        investment_id: str,
        percentage: Number = HUNDRED,
        dry_run: bool = False,
    ) -> ExecutionReport:
        """Sell ``percentage`` percent of every holding of an investment."""
        async with self._serialized(investment_id):
            current = self._investments.get(investment_id)
            if current is None:
                return self._unknown(investment_id, "sell")
            current = self._synced(investment_id, current)

            prices = await self._fetch_prices(h.key for h in current.holdings)
            plan = plan_sell(current.holdings, percentage, prices)
            if plan.error is not None:
                return self._rejected(investment_id, "sell", plan.error, plan=plan)

            report = await self._submit_and_book(investment_id, current, plan, prices, dry_run)

            sold = report.investment
            if report.accepted and sold is not None and sold.status == InvestmentStatus.ACTIVE:
                sold = replace(sold, status=InvestmentStatus.PARTIAL)
                self._investments[investment_id] = sold
                report = replace(report, investment=sold)
            return report

    async def valuation(self, investment_id: str) -> Optional[InvestmentValuation]:
        """Mark an investment to market; None for unknown investments."""
        current = self._investments.get(investment_id)
        if current is None:
            return None
        prices = await self._fetch_prices(h.key for h in current.holdings)
        return revalue(current, prices)

    async def portfolio_summary(self) -> PortfolioSummary:
        """Totals over every open investment, at current prices."""
        prices = await self._fetch_prices(self._held_instruments())
        return summarize(self._investments, prices)

    async def portfolio_holdings(self) -> List[AggregatedHolding]:
        """Holdings of all open investments merged per instrument."""
        prices = await self._fetch_prices(self._held_instruments())
        return aggregate_holdings(self._investments, prices)

    async def run_sip(
        self,
        investment_id: str,
        basket: Basket,
        schedule: SIPSchedule,
        today: date,
        sip_id: Optional[str] = None,
    ) -> Tuple[SIPResult, Optional[ExecutionReport]]:
        """Execute a SIP installment if it is due.

        The due check, the buy and the schedule update happen under the
        investment's lock. The last executed schedule is kept per SIP, so a
        second trigger on the same day (even one holding a stale schedule)
        returns ALREADY_EXECUTED_TODAY. The schedule only advances when the
        installment's buy succeeded, so a failed buy can be retried the same
        day.

        Args:
            investment_id: Investment the installment is booked into
            basket: Target basket
            schedule: Schedule as known to the caller
            today: Trigger date
            sip_id: Identifies the SIP (defaults to ``investment_id``)

        Returns:
            (SIPResult, ExecutionReport or None when nothing was bought)
        """
        key = sip_id or investment_id
        async with self._serialized(investment_id):
            latest = self._sip_runs.get(key)
            if latest is not None and latest.last_execution_date == today:
                schedule = latest

            result = self.sip_scheduler.execute(schedule, today)
            if result.outcome != SIPOutcome.EXECUTED:
                return result, None

            report = await self._buy(investment_id, basket, schedule.amount, dry_run=False)
            if not report.ok:
                error = SIPValidationError(f"SIP installment failed: {report.error}")
                logger.warning("%s", error)
                rejected = SIPResult(schedule=schedule, outcome=SIPOutcome.REJECTED, error=error)
                return rejected, report

            self._sip_runs[key] = result.schedule
            return result, report

    async def _buy(
        self,
        investment_id: str,
        basket: Basket,
        amount: Number,
        dry_run: bool,
    ) -> ExecutionReport:
        # Caller holds the investment's lock.
        error = self.normalizer.validate(basket)
        if error is not None:
            return self._rejected(investment_id, "buy", error)

        prices = await self._fetch_prices(basket.keys)

        error = check_investment_amount(
            basket, prices, amount, self.settings.min_investment_rounding
        )
        if error is not None:
            return self._rejected(investment_id, "buy", error)

        plan = plan_buy(basket, prices, amount)
        if plan.is_empty:
            return self._rejected(
                investment_id, "buy",
                ValidationError(f"Amount {amount} does not buy a single share"),
                plan=plan,
            )

        current = self._investments.get(investment_id) or Investment(
            basket_ref=basket.name or investment_id
        )
        return await self._submit_and_book(investment_id, current, plan, prices, dry_run)

    @asynccontextmanager
    async def _serialized(self, investment_id: str) -> AsyncIterator[None]:
        """Hold the investment's lock; the lock is dropped once nobody uses it."""
        lock = self._locks.setdefault(investment_id, asyncio.Lock())
        self._lock_users[investment_id] = self._lock_users.get(investment_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[investment_id] -= 1
            if self._lock_users[investment_id] == 0:
                del self._lock_users[investment_id]
                del self._locks[investment_id]

    def _held_instruments(self) -> List[InstrumentKey]:
        return [
            h.key
            for investment in self._investments.values()
            if investment.status != InvestmentStatus.SOLD
            for h in investment.holdings
        ]

    async def _fetch_prices(self, instruments: Iterable[InstrumentKey]) -> PriceSnapshot:
        unique = list(dict.fromkeys(instruments))
        if not unique:
            return PriceSnapshot()
        return await self.price_provider.get_prices(unique)

    async def _submit_and_book(
        self,
        investment_id: str,
        current: Investment,
        plan: Plan,
        prices: PriceSnapshot,
        dry_run: bool,
    ) -> ExecutionReport:
        if dry_run or not plan.orders:
            return ExecutionReport(plan=plan, investment=current, dry_run=dry_run)

        results = await self.submitter.submit(plan.orders)
        fills = fills_from_results(results)
        if not fills and investment_id not in self._investments:
            logger.warning("No order accepted, investment %s not created", investment_id)
            return ExecutionReport(plan=plan, results=tuple(results), investment=None)

        updated = mark_to_market(apply_fills(current, fills), prices)
        self._investments[investment_id] = updated

        log_with_context(
            logger, "info", "Orders submitted",
            investment=investment_id, orders=len(results),
            accepted=sum(1 for r in results if r.accepted),
            status=updated.status.value,
        )
        return ExecutionReport(plan=plan, results=tuple(results), investment=updated)

    def _synced(self, investment_id: str, current: Investment) -> Investment:
        if self.holdings_store is None:
            return current
        broker_view: List[Holding] = self.holdings_store.current_holdings(investment_id)
        synced = sync_holdings(current, broker_view)
        self._investments[investment_id] = synced
        return synced

    def _unknown(self, investment_id: str, operation: str) -> ExecutionReport:
        return self._rejected(
            investment_id, operation,
            ValidationError(f"Unknown investment: {investment_id}"),
        )

    def _rejected(
        self,
        investment_id: str,
        operation: str,
        error: StockBasketError,
        plan: Optional[Plan] = None,
    ) -> ExecutionReport:
        log_with_context(
            logger, "info", f"{operation.capitalize()} rejected",
            investment=investment_id, reason=error,
        )
        return ExecutionReport(
            plan=plan, investment=self._investments.get(investment_id), error=error
        )
