"""Portfolio Layer.

Turns a basket, a price snapshot and cash or holdings into broker-agnostic
orders, and keeps the books of an investment once fills are confirmed.

Components:
- PriceSnapshot, Order, Holding: Value types shared by the planners
- min_investment: Smallest cash amount that buys every constituent
- plan_buy: Cash to whole-share BUY orders
- RebalancePlanner: Drift-based corrective orders
- plan_sell: Partial or full exit
- Investment: Holdings bookkeeping and valuation
- summarize, aggregate_holdings: Totals and per-stock view across investments
- Alert: Price, P&L and rebalance-drift alerts
"""

from stockbasket.portfolio.alerts import (
    Alert,
    AlertCondition,
    AlertResult,
    AlertType,
    check_alerts,
    evaluate_alert,
)
from stockbasket.portfolio.allocation import BuyPlan, plan_buy
from stockbasket.portfolio.base import (
    DataGap,
    Holding,
    Order,
    OrderSide,
    OrderType,
    PriceSnapshot,
    make_order,
)
from stockbasket.portfolio.exit import SellPlan, plan_sell
from stockbasket.portfolio.investment import (
    Fill,
    Investment,
    InvestmentStatus,
    InvestmentValuation,
    apply_fills,
    mark_to_market,
    percentage_change,
    revalue,
    sync_holdings,
)
from stockbasket.portfolio.minimum import check_investment_amount, min_investment
from stockbasket.portfolio.rebalance import (
    RebalanceAction,
    RebalancePlan,
    RebalancePlanner,
    RebalanceRecommendation,
    plan_rebalance,
)
from stockbasket.portfolio.summary import (
    AggregatedHolding,
    PortfolioSummary,
    aggregate_holdings,
    summarize,
)

__all__ = [
    # Value types
    "DataGap",
    "Holding",
    "Order",
    "OrderSide",
    "OrderType",
    "PriceSnapshot",
    "make_order",
    # Planners
    "BuyPlan",
    "plan_buy",
    "RebalanceAction",
    "RebalancePlan",
    "RebalancePlanner",
    "RebalanceRecommendation",
    "plan_rebalance",
    "SellPlan",
    "plan_sell",
    "check_investment_amount",
    "min_investment",
    # Bookkeeping
    "Fill",
    "Investment",
    "InvestmentStatus",
    "InvestmentValuation",
    "apply_fills",
    "mark_to_market",
    "percentage_change",
    "revalue",
    "sync_holdings",
    # Portfolio views
    "AggregatedHolding",
    "PortfolioSummary",
    "aggregate_holdings",
    "summarize",
    # Alerts
    "Alert",
    "AlertCondition",
    "AlertResult",
    "AlertType",
    "check_alerts",
    "evaluate_alert",
]
