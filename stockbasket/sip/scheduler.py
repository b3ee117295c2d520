"""SIP scheduling: next-date arithmetic and the schedule state machine.

State machine:
    ACTIVE -> PAUSED -> ACTIVE   (resume recomputes the next date from today)
    ACTIVE | PAUSED -> CANCELLED (terminal)
    ACTIVE -> COMPLETED          (terminal, once the end date has passed)

Triggering is someone else's job (cron, APScheduler, a queue consumer). This
module only decides whether an installment runs and what the schedule looks
like afterwards. ``execute`` is idempotent per day so a retried trigger never
invests twice.
"""

import calendar
from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

import pytz

from stockbasket.sip.models import Frequency, SIPOutcome, SIPResult, SIPSchedule, SIPStatus
from stockbasket.utils.config import EngineSettings
from stockbasket.utils.exceptions import SIPStateError, SIPValidationError
from stockbasket.utils.logging import get_logger, log_with_context
from stockbasket.utils.money import Number, to_decimal

logger = get_logger(__name__)

DEFAULT_MIN_AMOUNT = Decimal("500")
DEFAULT_DAY_OF_WEEK = 0  # Monday
DEFAULT_DAY_OF_MONTH = 1
MARKET_TIMEZONE = "Asia/Kolkata"

_UNCHANGED: Any = object()


def market_today(timezone: str = MARKET_TIMEZONE) -> date:
    """Current calendar date in the market's timezone."""
    return datetime.now(pytz.timezone(timezone)).date()


def next_execution_date(
    frequency: Union[Frequency, str],
    from_date: date,
    day_of_week: Optional[int] = None,
    day_of_month: Optional[int] = None,
) -> date:
    """Date of the installment following ``from_date``.

    - DAILY: the next day
    - WEEKLY: the next ``day_of_week`` strictly after ``from_date``
    - MONTHLY: ``day_of_month`` of the following month, clamped to its length

    Example:
        >>> next_execution_date(Frequency.MONTHLY, date(2025, 1, 31), day_of_month=31)
        datetime.date(2025, 2, 28)
    """
    frequency = Frequency(frequency) if isinstance(frequency, str) else frequency

    if frequency == Frequency.DAILY:
        return from_date + timedelta(days=1)

    if frequency == Frequency.WEEKLY:
        target = DEFAULT_DAY_OF_WEEK if day_of_week is None else day_of_week
        days_until = (target - from_date.weekday()) % 7
        if days_until == 0:
            days_until = 7
        return from_date + timedelta(days=days_until)

    anchor = DEFAULT_DAY_OF_MONTH if day_of_month is None else day_of_month
    year = from_date.year + from_date.month // 12
    month = from_date.month % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor, last_day))


class SIPScheduler:
    """Creates, executes and transitions SIP schedules.

    Configuration Parameters:
        min_amount: Smallest installment amount (default 500)

    Example:
        >>> scheduler = SIPScheduler()
        >>> created = scheduler.create(1000, "monthly", date(2025, 1, 31),
        ...                            today=date(2025, 1, 1), day_of_month=31)
        >>> result = scheduler.execute(created.schedule, date(2025, 1, 31))
        >>> result.schedule.next_execution_date
        datetime.date(2025, 2, 28)
    """

    def __init__(self, config: Optional[Dict] = None):
        config = config or {}
        self.min_amount = to_decimal(config.get("min_amount", DEFAULT_MIN_AMOUNT))
        if self.min_amount < 0:
            raise ValueError(f"min_amount must be >= 0, got {self.min_amount}")

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "SIPScheduler":
        return cls({"min_amount": settings.min_sip_amount})

    def create(
        self,
        amount: Number,
        frequency: Union[Frequency, str],
        start_date: date,
        today: date,
        day_of_week: Optional[int] = None,
        day_of_month: Optional[int] = None,
        end_date: Optional[date] = None,
        basket_ref: str = "",
    ) -> SIPResult:
        """Create an ACTIVE schedule.

        The first installment is due on ``start_date`` if it lies in the
        future, otherwise on the next scheduled date after ``today``.
        """
        error = self._validate(amount, frequency, day_of_week, day_of_month)
        if error is None and end_date is not None and end_date < start_date:
            error = SIPValidationError(
                f"end_date {end_date} is before start_date {start_date}"
            )
        if error is not None:
            return self._reject(None, error)

        frequency = _frequency(frequency)
        if start_date > today:
            first = start_date
        else:
            first = next_execution_date(frequency, today, day_of_week, day_of_month)

        schedule = SIPSchedule(
            amount=to_decimal(amount),
            frequency=frequency,
            start_date=start_date,
            next_execution_date=first,
            day_of_week=day_of_week,
            day_of_month=day_of_month,
            end_date=end_date,
            basket_ref=basket_ref,
        )
        log_with_context(
            logger, "info", "SIP created",
            basket=basket_ref, amount=schedule.amount,
            frequency=frequency.value, next_execution_date=first,
        )
        return SIPResult(schedule=schedule, outcome=SIPOutcome.CREATED)

    def execute(self, schedule: SIPSchedule, today: date) -> SIPResult:
        """Run one installment if the schedule is due on ``today``.

        Outcomes:
            EXECUTED: installment recorded, next date advanced
            ALREADY_EXECUTED_TODAY: an installment already ran today; no change
            COMPLETED: the end date has passed; schedule is now COMPLETED
            NOT_DUE: next_execution_date is in the future; no change
            NOT_ACTIVE: schedule is paused or terminal; no change
        """
        if schedule.status != SIPStatus.ACTIVE:
            return SIPResult(schedule=schedule, outcome=SIPOutcome.NOT_ACTIVE)

        if schedule.last_execution_date == today:
            log_with_context(
                logger, "info", "SIP already executed today",
                basket=schedule.basket_ref, today=today,
            )
            return SIPResult(schedule=schedule, outcome=SIPOutcome.ALREADY_EXECUTED_TODAY)

        if schedule.end_date is not None and schedule.end_date < today:
            completed = replace(schedule, status=SIPStatus.COMPLETED)
            log_with_context(
                logger, "info", "SIP completed",
                basket=schedule.basket_ref, end_date=schedule.end_date,
                installments=schedule.completed_installments,
            )
            return SIPResult(schedule=completed, outcome=SIPOutcome.COMPLETED)

        if today < schedule.next_execution_date:
            return SIPResult(schedule=schedule, outcome=SIPOutcome.NOT_DUE)

        executed = replace(
            schedule,
            completed_installments=schedule.completed_installments + 1,
            total_invested=schedule.total_invested + schedule.amount,
            next_execution_date=next_execution_date(
                schedule.frequency, today, schedule.day_of_week, schedule.day_of_month
            ),
            last_execution_date=today,
        )
        log_with_context(
            logger, "info", "SIP installment executed",
            basket=schedule.basket_ref, amount=schedule.amount,
            installment=executed.completed_installments,
            next_execution_date=executed.next_execution_date,
        )
        return SIPResult(schedule=executed, outcome=SIPOutcome.EXECUTED)

    def pause(self, schedule: SIPSchedule) -> SIPResult:
        if schedule.status != SIPStatus.ACTIVE:
            return self._reject(
                schedule,
                SIPStateError(f"Only ACTIVE SIPs can be paused, status is {schedule.status.value}"),
            )
        return SIPResult(
            schedule=replace(schedule, status=SIPStatus.PAUSED), outcome=SIPOutcome.PAUSED
        )

    def resume(self, schedule: SIPSchedule, today: date) -> SIPResult:
        """Reactivate a paused SIP; the next date is computed from ``today``."""
        if schedule.status != SIPStatus.PAUSED:
            return self._reject(
                schedule,
                SIPStateError(
                    f"Only PAUSED SIPs can be resumed, status is {schedule.status.value}"
                ),
            )
        resumed = replace(
            schedule,
            status=SIPStatus.ACTIVE,
            next_execution_date=next_execution_date(
                schedule.frequency, today, schedule.day_of_week, schedule.day_of_month
            ),
        )
        return SIPResult(schedule=resumed, outcome=SIPOutcome.RESUMED)

    def cancel(self, schedule: SIPSchedule) -> SIPResult:
        if schedule.status.is_terminal:
            return self._reject(
                schedule,
                SIPStateError(f"SIP is already {schedule.status.value}"),
            )
        return SIPResult(
            schedule=replace(schedule, status=SIPStatus.CANCELLED),
            outcome=SIPOutcome.CANCELLED,
        )

    def update(
        self,
        schedule: SIPSchedule,
        today: date,
        amount: Optional[Number] = None,
        frequency: Optional[Union[Frequency, str]] = None,
        day_of_week: Optional[int] = None,
        day_of_month: Optional[int] = None,
        end_date: Any = _UNCHANGED,
    ) -> SIPResult:
        """Change installment parameters of a non-terminal SIP.

        Changing the frequency recomputes the next execution date from
        ``today``; other changes keep the current next date. Passing
        ``end_date=None`` removes the end date; leaving it out keeps it.
        """
        if schedule.status.is_terminal:
            return self._reject(
                schedule,
                SIPStateError(f"Cannot update a {schedule.status.value} SIP"),
            )

        new_amount = schedule.amount if amount is None else amount
        new_frequency = schedule.frequency if frequency is None else frequency
        new_dow = schedule.day_of_week if day_of_week is None else day_of_week
        new_dom = schedule.day_of_month if day_of_month is None else day_of_month
        new_end = schedule.end_date if end_date is _UNCHANGED else end_date

        error = self._validate(new_amount, new_frequency, new_dow, new_dom)
        if error is None and new_end is not None and new_end < schedule.start_date:
            error = SIPValidationError(
                f"end_date {new_end} is before start_date {schedule.start_date}"
            )
        if error is not None:
            return self._reject(schedule, error)

        new_frequency = _frequency(new_frequency)
        next_date = schedule.next_execution_date
        if frequency is not None:
            next_date = next_execution_date(new_frequency, today, new_dow, new_dom)

        updated = replace(
            schedule,
            amount=to_decimal(new_amount),
            frequency=new_frequency,
            day_of_week=new_dow,
            day_of_month=new_dom,
            end_date=new_end,
            next_execution_date=next_date,
        )
        return SIPResult(schedule=updated, outcome=SIPOutcome.UPDATED)

    @staticmethod
    def due(schedules: Iterable[SIPSchedule], today: date) -> List[SIPSchedule]:
        """Schedules with an installment pending on ``today``."""
        return [s for s in schedules if s.is_due(today)]

    def _validate(
        self,
        amount: Number,
        frequency: Union[Frequency, str],
        day_of_week: Optional[int],
        day_of_month: Optional[int],
    ) -> Optional[SIPValidationError]:
        try:
            _frequency(frequency)
        except ValueError:
            return SIPValidationError(f"Unknown SIP frequency: {frequency!r}")
        if to_decimal(amount) < self.min_amount:
            return SIPValidationError(
                f"Minimum SIP amount is {self.min_amount}, got {amount}"
            )
        if day_of_week is not None and not 0 <= day_of_week <= 6:
            return SIPValidationError(f"day_of_week must be in [0, 6], got {day_of_week}")
        if day_of_month is not None and not 1 <= day_of_month <= 31:
            return SIPValidationError(f"day_of_month must be in [1, 31], got {day_of_month}")
        return None

    @staticmethod
    def _reject(schedule: Optional[SIPSchedule], error) -> SIPResult:
        logger.info("SIP operation rejected: %s", error)
        return SIPResult(schedule=schedule, outcome=SIPOutcome.REJECTED, error=error)


def _frequency(value: Union[Frequency, str]) -> Frequency:
    if isinstance(value, Frequency):
        return value
    return Frequency(str(value).lower())
