"""Alert evaluation.

Alerts watch one number and compare it with a threshold:

- PRICE: last traded price of one instrument
- PNL: P&L percentage of one investment
- REBALANCE: largest absolute weight deviation in an investment's
  rebalance plan

Evaluation is pure. Delivery (email, push) and persistence belong to the
caller, which passes the value seen at the previous check as ``last_value``
so CROSSES can tell that the threshold was crossed.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Mapping, Optional

from stockbasket.portfolio.base import PriceSnapshot
from stockbasket.portfolio.investment import InvestmentValuation
from stockbasket.portfolio.rebalance import RebalancePlan
from stockbasket.utils.logging import get_logger, log_with_context
from stockbasket.utils.money import to_decimal

logger = get_logger(__name__)


class AlertType(Enum):
    """What an alert watches."""

    PRICE = "price"
    REBALANCE = "rebalance"
    PNL = "pnl"


class AlertCondition(Enum):
    """How the watched value is compared with the threshold."""

    ABOVE = "above"  # value >= threshold
    BELOW = "below"  # value <= threshold
    CROSSES = "crosses"
    DEVIATION_EXCEEDS = "deviation_exceeds"  # |value| > threshold


@dataclass(frozen=True)
class Alert:
    """A condition on a price, P&L percentage or rebalance deviation.

    Attributes:
        alert_type: PRICE, REBALANCE or PNL
        condition: Comparison with the threshold
        threshold: Threshold value (price, or percent)
        exchange: Exchange code, required for PRICE alerts
        symbol: Trading symbol, required for PRICE alerts
        target_id: Investment id, required for REBALANCE and PNL alerts
        last_value: Value seen at the previous check, used by CROSSES
    """

    alert_type: AlertType
    condition: AlertCondition
    threshold: Decimal
    exchange: Optional[str] = None
    symbol: Optional[str] = None
    target_id: Optional[str] = None
    last_value: Optional[Decimal] = None

    def __post_init__(self):
        object.__setattr__(self, "alert_type", AlertType(self.alert_type))
        object.__setattr__(self, "condition", AlertCondition(self.condition))
        object.__setattr__(self, "threshold", to_decimal(self.threshold))
        if self.last_value is not None:
            object.__setattr__(self, "last_value", to_decimal(self.last_value))

        if self.alert_type == AlertType.PRICE:
            if not self.exchange or not self.symbol:
                raise ValueError("Price alerts require exchange and symbol")
        elif not self.target_id:
            raise ValueError(f"{self.alert_type.value} alerts require target_id")


@dataclass(frozen=True)
class AlertResult:
    """Outcome of checking one alert.

    Attributes:
        alert: The alert that was checked
        triggered: True when the condition holds
        current_value: Watched value, None when it could not be determined
        message: Human-readable description of the outcome
    """

    alert: Alert
    triggered: bool
    current_value: Optional[Decimal]
    message: str


def _condition_met(condition: AlertCondition, value: Decimal, threshold: Decimal,
                   last_value: Optional[Decimal]) -> bool:
    if condition == AlertCondition.ABOVE:
        return value >= threshold
    if condition == AlertCondition.BELOW:
        return value <= threshold
    if condition == AlertCondition.DEVIATION_EXCEEDS:
        return abs(value) > threshold
    # CROSSES needs a previous observation
    if last_value is None:
        return False
    if value == threshold:
        return last_value != threshold
    return (last_value < threshold) != (value < threshold)


def _watched_value(
    alert: Alert,
    prices: PriceSnapshot,
    valuations: Mapping[str, InvestmentValuation],
    plans: Mapping[str, RebalancePlan],
) -> Optional[Decimal]:
    if alert.alert_type == AlertType.PRICE:
        return prices.get_price(alert.exchange, alert.symbol)

    if alert.alert_type == AlertType.PNL:
        valuation = valuations.get(alert.target_id)
        return None if valuation is None else valuation.pnl_percentage

    plan = plans.get(alert.target_id)
    if plan is None or not plan.recommendations:
        return None
    return max(abs(r.deviation) for r in plan.recommendations)


def evaluate_alert(
    alert: Alert,
    prices: Optional[PriceSnapshot] = None,
    valuations: Optional[Mapping[str, InvestmentValuation]] = None,
    plans: Optional[Mapping[str, RebalancePlan]] = None,
) -> AlertResult:
    """Check one alert against current data.

    An alert whose value cannot be determined (no price, no valuation or
    plan for the target) is reported as not triggered.

    Example:
        >>> alert = Alert(AlertType.PRICE, AlertCondition.ABOVE, 3600,
        ...               exchange="NSE", symbol="TCS")
        >>> evaluate_alert(alert, PriceSnapshot({"NSE:TCS": 3650})).triggered
        True
    """
    value = _watched_value(alert, prices or PriceSnapshot(), valuations or {}, plans or {})
    target = (
        f"{alert.exchange}:{alert.symbol}" if alert.alert_type == AlertType.PRICE
        else alert.target_id
    )

    if value is None:
        log_with_context(
            logger, "warning", "Alert value unavailable",
            alert_type=alert.alert_type.value, target=target,
        )
        return AlertResult(alert, False, None, f"No {alert.alert_type.value} data for {target}")

    triggered = _condition_met(alert.condition, value, alert.threshold, alert.last_value)
    message = (
        f"{alert.alert_type.value} of {target} is {value}, "
        f"{alert.condition.value} {alert.threshold}"
    )
    if triggered:
        log_with_context(
            logger, "info", "Alert triggered",
            alert_type=alert.alert_type.value, target=target, value=value,
            condition=alert.condition.value, threshold=alert.threshold,
        )
    return AlertResult(alert, triggered, value, message)


def check_alerts(
    alerts: Iterable[Alert],
    prices: Optional[PriceSnapshot] = None,
    valuations: Optional[Mapping[str, InvestmentValuation]] = None,
    plans: Optional[Mapping[str, RebalancePlan]] = None,
) -> List[AlertResult]:
    """Evaluate every alert; results keep the input order."""
    return [evaluate_alert(alert, prices, valuations, plans) for alert in alerts]
