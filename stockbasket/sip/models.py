"""SIP schedule data structures."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from stockbasket.utils.exceptions import SIPError
from stockbasket.utils.money import ZERO, to_decimal


class Frequency(Enum):
    """How often a SIP installment runs."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SIPStatus(Enum):
    """SIP lifecycle states."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"  # Terminal
    COMPLETED = "COMPLETED"  # Terminal, end date passed

    @property
    def is_terminal(self) -> bool:
        return self in (SIPStatus.CANCELLED, SIPStatus.COMPLETED)


class SIPOutcome(Enum):
    """Result of a scheduler operation."""

    CREATED = "created"
    UPDATED = "updated"
    EXECUTED = "executed"
    ALREADY_EXECUTED_TODAY = "already_executed_today"
    NOT_DUE = "not_due"
    NOT_ACTIVE = "not_active"
    COMPLETED = "completed"
    PAUSED = "paused"
    RESUMED = "resumed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


@dataclass(frozen=True)
class SIPSchedule:
    """A recurring investment into a basket.

    Attributes:
        amount: Cash invested per installment
        frequency: DAILY, WEEKLY or MONTHLY
        start_date: First day the SIP may run
        next_execution_date: Next day an installment is due
        day_of_week: Weekly anchor, Monday=0 ... Sunday=6 (default Monday)
        day_of_month: Monthly anchor, 1-31 (default 1); clamped to month length
        end_date: Last day an installment may run, None for open-ended
        status: Lifecycle state
        completed_installments: Installments executed so far
        total_invested: Sum of executed installment amounts
        last_execution_date: Day of the most recent execution, used to
                             refuse a second execution on the same day
        basket_ref: Identifier or name of the basket
    """

    amount: Decimal
    frequency: Frequency
    start_date: date
    next_execution_date: date
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    end_date: Optional[date] = None
    status: SIPStatus = SIPStatus.ACTIVE
    completed_installments: int = 0
    total_invested: Decimal = ZERO
    last_execution_date: Optional[date] = None
    basket_ref: str = ""

    def __post_init__(self):
        """Validate schedule fields."""
        object.__setattr__(self, "amount", to_decimal(self.amount))
        object.__setattr__(self, "total_invested", to_decimal(self.total_invested))
        if self.day_of_week is not None and not 0 <= self.day_of_week <= 6:
            raise SIPError(f"day_of_week must be in [0, 6], got {self.day_of_week}")
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            raise SIPError(f"day_of_month must be in [1, 31], got {self.day_of_month}")
        if self.completed_installments < 0:
            raise SIPError(
                f"completed_installments must be >= 0, got {self.completed_installments}"
            )

    def is_due(self, today: date) -> bool:
        """True when an installment should run on ``today``."""
        return (
            self.status == SIPStatus.ACTIVE
            and today >= self.next_execution_date
            and (self.end_date is None or self.end_date >= today)
            and self.last_execution_date != today
        )


@dataclass(frozen=True)
class SIPResult:
    """Outcome of a scheduler operation.

    Attributes:
        schedule: Updated schedule, or the unchanged input when nothing happened
        outcome: What happened
        error: Validation or state error for REJECTED outcomes
    """

    schedule: Optional[SIPSchedule]
    outcome: SIPOutcome
    error: Optional[SIPError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
