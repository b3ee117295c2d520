"""Unit tests for SIP scheduling."""

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from stockbasket.sip.models import Frequency, SIPOutcome, SIPSchedule, SIPStatus
from stockbasket.sip.scheduler import SIPScheduler, market_today, next_execution_date
from stockbasket.utils.config import EngineSettings
from stockbasket.utils.exceptions import SIPError, SIPStateError, SIPValidationError


@pytest.fixture
def scheduler() -> SIPScheduler:
    return SIPScheduler()


@pytest.fixture
def monthly(scheduler: SIPScheduler) -> SIPSchedule:
    """Monthly SIP on the 31st, first due 2025-01-31."""
    result = scheduler.create(
        1000, "monthly", date(2025, 1, 31), today=date(2025, 1, 1), day_of_month=31
    )
    return result.schedule


class TestNextExecutionDate:
    """Test cases for next_execution_date."""

    def test_daily(self) -> None:
        assert next_execution_date(Frequency.DAILY, date(2025, 2, 28)) == date(2025, 3, 1)

    def test_weekly_same_weekday_moves_a_week(self) -> None:
        """Test a Monday anchor from a Monday lands on the following Monday."""
        assert next_execution_date("weekly", date(2025, 1, 6), day_of_week=0) == date(2025, 1, 13)

    def test_weekly_later_in_week(self) -> None:
        """Test Wednesday to Friday."""
        assert next_execution_date("weekly", date(2025, 1, 1), day_of_week=4) == date(2025, 1, 3)

    def test_weekly_defaults_to_monday(self) -> None:
        assert next_execution_date(Frequency.WEEKLY, date(2025, 1, 1)) == date(2025, 1, 6)

    @pytest.mark.parametrize(
        "from_date, expected",
        [
            (date(2025, 1, 31), date(2025, 2, 28)),
            (date(2024, 1, 31), date(2024, 2, 29)),
            (date(2025, 2, 28), date(2025, 3, 31)),
            (date(2025, 3, 31), date(2025, 4, 30)),
        ],
    )
    def test_monthly_clamps_to_month_end(self, from_date: date, expected: date) -> None:
        """Test day 31 falls back to the last day of shorter months."""
        assert next_execution_date(Frequency.MONTHLY, from_date, day_of_month=31) == expected

    def test_monthly_year_rollover(self) -> None:
        assert next_execution_date(Frequency.MONTHLY, date(2025, 12, 15)) == date(2026, 1, 1)

    def test_market_today_is_a_date(self) -> None:
        assert isinstance(market_today(), date)


class TestCreate:
    """Test cases for SIPScheduler.create."""

    def test_future_start_date_is_first_installment(self, monthly: SIPSchedule) -> None:
        assert monthly.next_execution_date == date(2025, 1, 31)
        assert monthly.status == SIPStatus.ACTIVE
        assert monthly.amount == Decimal("1000")
        assert monthly.frequency == Frequency.MONTHLY

    def test_past_start_date_uses_next_date_after_today(self, scheduler: SIPScheduler) -> None:
        """Test a start date in the past schedules from today."""
        result = scheduler.create(
            500, Frequency.WEEKLY, date(2025, 1, 1), today=date(2025, 1, 10), day_of_week=0
        )

        assert result.outcome == SIPOutcome.CREATED
        assert result.schedule.next_execution_date == date(2025, 1, 13)

    def test_amount_below_minimum(
        self, scheduler: SIPScheduler, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.INFO, logger="stockbasket.sip.scheduler"):
            result = scheduler.create(100, "daily", date(2025, 1, 1), today=date(2025, 1, 1))

        assert result.outcome == SIPOutcome.REJECTED
        assert result.schedule is None
        assert isinstance(result.error, SIPValidationError)
        assert "Minimum SIP amount" in caplog.text

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"frequency": "yearly"},
            {"day_of_week": 7},
            {"day_of_month": 0},
            {"end_date": date(2024, 12, 31)},
        ],
    )
    def test_invalid_inputs_rejected(self, scheduler: SIPScheduler, kwargs: dict) -> None:
        params = {"frequency": "monthly"}
        params.update(kwargs)

        result = scheduler.create(
            1000, start_date=date(2025, 1, 1), today=date(2025, 1, 1), **params
        )

        assert result.outcome == SIPOutcome.REJECTED
        assert isinstance(result.error, SIPValidationError)

    def test_min_amount_from_settings(self) -> None:
        scheduler = SIPScheduler.from_settings(EngineSettings(min_sip_amount=Decimal("100")))

        result = scheduler.create(100, "daily", date(2025, 1, 1), today=date(2025, 1, 1))

        assert result.ok


class TestExecute:
    """Test cases for SIPScheduler.execute."""

    def test_executes_when_due(self, scheduler: SIPScheduler, monthly: SIPSchedule) -> None:
        result = scheduler.execute(monthly, date(2025, 1, 31))

        assert result.outcome == SIPOutcome.EXECUTED
        assert result.schedule.completed_installments == 1
        assert result.schedule.total_invested == Decimal("1000")
        assert result.schedule.next_execution_date == date(2025, 2, 28)
        assert result.schedule.last_execution_date == date(2025, 1, 31)

    def test_second_execution_same_day_is_refused(
        self, scheduler: SIPScheduler, monthly: SIPSchedule
    ) -> None:
        """Test a retried trigger never invests twice on one day."""
        executed = scheduler.execute(monthly, date(2025, 1, 31)).schedule

        again = scheduler.execute(executed, date(2025, 1, 31))

        assert again.outcome == SIPOutcome.ALREADY_EXECUTED_TODAY
        assert again.schedule.completed_installments == 1
        assert again.schedule is executed

    def test_not_due(self, scheduler: SIPScheduler, monthly: SIPSchedule) -> None:
        result = scheduler.execute(monthly, date(2025, 1, 15))

        assert result.outcome == SIPOutcome.NOT_DUE
        assert result.schedule is monthly

    def test_missed_date_catches_up_once(
        self, scheduler: SIPScheduler, monthly: SIPSchedule
    ) -> None:
        """Test a late trigger runs once and schedules from the run date."""
        result = scheduler.execute(monthly, date(2025, 3, 5))

        assert result.outcome == SIPOutcome.EXECUTED
        assert result.schedule.completed_installments == 1
        assert result.schedule.next_execution_date == date(2025, 4, 30)

    def test_paused_is_not_active(self, scheduler: SIPScheduler, monthly: SIPSchedule) -> None:
        paused = scheduler.pause(monthly).schedule

        result = scheduler.execute(paused, date(2025, 1, 31))

        assert result.outcome == SIPOutcome.NOT_ACTIVE

    def test_end_date_passed_completes(
        self, scheduler: SIPScheduler, monthly: SIPSchedule
    ) -> None:
        ending = replace(monthly, end_date=date(2025, 3, 1))

        result = scheduler.execute(ending, date(2025, 3, 5))

        assert result.outcome == SIPOutcome.COMPLETED
        assert result.schedule.status == SIPStatus.COMPLETED
        assert result.schedule.completed_installments == 0

    def test_runs_on_end_date(self, scheduler: SIPScheduler, monthly: SIPSchedule) -> None:
        ending = replace(monthly, end_date=date(2025, 1, 31))

        assert scheduler.execute(ending, date(2025, 1, 31)).outcome == SIPOutcome.EXECUTED


class TestTransitions:
    """Test cases for pause, resume, cancel and update."""

    def test_pause_and_resume(self, scheduler: SIPScheduler, monthly: SIPSchedule) -> None:
        """Test resume recomputes the next date from today."""
        paused = scheduler.pause(monthly)
        assert paused.outcome == SIPOutcome.PAUSED
        assert paused.schedule.status == SIPStatus.PAUSED

        resumed = scheduler.resume(paused.schedule, date(2025, 2, 10))

        assert resumed.outcome == SIPOutcome.RESUMED
        assert resumed.schedule.status == SIPStatus.ACTIVE
        assert resumed.schedule.next_execution_date == date(2025, 3, 31)

    def test_pause_requires_active(self, scheduler: SIPScheduler, monthly: SIPSchedule) -> None:
        paused = scheduler.pause(monthly).schedule

        result = scheduler.pause(paused)

        assert result.outcome == SIPOutcome.REJECTED
        assert isinstance(result.error, SIPStateError)
        assert result.schedule is paused

    def test_resume_requires_paused(self, scheduler: SIPScheduler, monthly: SIPSchedule) -> None:
        result = scheduler.resume(monthly, date(2025, 1, 2))

        assert result.outcome == SIPOutcome.REJECTED
        assert isinstance(result.error, SIPStateError)

    def test_cancel_is_terminal(self, scheduler: SIPScheduler, monthly: SIPSchedule) -> None:
        cancelled = scheduler.cancel(monthly).schedule
        assert cancelled.status == SIPStatus.CANCELLED

        assert scheduler.cancel(cancelled).outcome == SIPOutcome.REJECTED
        assert scheduler.resume(cancelled, date(2025, 2, 1)).outcome == SIPOutcome.REJECTED
        assert scheduler.execute(cancelled, date(2025, 1, 31)).outcome == SIPOutcome.NOT_ACTIVE

    def test_cancel_paused(self, scheduler: SIPScheduler, monthly: SIPSchedule) -> None:
        paused = scheduler.pause(monthly).schedule
        assert scheduler.cancel(paused).outcome == SIPOutcome.CANCELLED

    def test_update_amount_keeps_next_date(
        self, scheduler: SIPScheduler, monthly: SIPSchedule
    ) -> None:
        result = scheduler.update(monthly, date(2025, 1, 10), amount=2500)

        assert result.outcome == SIPOutcome.UPDATED
        assert result.schedule.amount == Decimal("2500")
        assert result.schedule.next_execution_date == date(2025, 1, 31)

    def test_update_frequency_recomputes(
        self, scheduler: SIPScheduler, monthly: SIPSchedule
    ) -> None:
        result = scheduler.update(
            monthly, date(2025, 1, 10), frequency="weekly", day_of_week=2
        )

        assert result.schedule.frequency == Frequency.WEEKLY
        assert result.schedule.next_execution_date == date(2025, 1, 15)

    def test_update_rejections(self, scheduler: SIPScheduler, monthly: SIPSchedule) -> None:
        low = scheduler.update(monthly, date(2025, 1, 10), amount=10)
        assert isinstance(low.error, SIPValidationError)
        assert low.schedule is monthly

        cancelled = scheduler.cancel(monthly).schedule
        terminal = scheduler.update(cancelled, date(2025, 1, 10), amount=2000)
        assert isinstance(terminal.error, SIPStateError)

    def test_update_end_date_set_and_cleared(
        self, scheduler: SIPScheduler, monthly: SIPSchedule
    ) -> None:
        """Test end_date=None removes the end date while omitting it keeps it."""
        bounded = scheduler.update(monthly, date(2025, 1, 10), end_date=date(2025, 12, 31))
        assert bounded.schedule.end_date == date(2025, 12, 31)

        kept = scheduler.update(bounded.schedule, date(2025, 1, 10), amount=2000)
        assert kept.schedule.end_date == date(2025, 12, 31)

        cleared = scheduler.update(bounded.schedule, date(2025, 1, 10), end_date=None)
        assert cleared.outcome == SIPOutcome.UPDATED
        assert cleared.schedule.end_date is None
        assert cleared.schedule.amount == bounded.schedule.amount

    def test_due(self, scheduler: SIPScheduler, monthly: SIPSchedule) -> None:
        later = replace(monthly, next_execution_date=date(2025, 6, 1))
        paused = scheduler.pause(monthly).schedule

        assert SIPScheduler.due([monthly, later, paused], date(2025, 1, 31)) == [monthly]


class TestSIPSchedule:
    """Test cases for SIPSchedule field checks."""

    def test_invalid_anchor(self) -> None:
        with pytest.raises(SIPError):
            SIPSchedule(
                amount=1000,
                frequency=Frequency.MONTHLY,
                start_date=date(2025, 1, 1),
                next_execution_date=date(2025, 1, 1),
                day_of_month=32,
            )

    def test_is_due(self, monthly: SIPSchedule) -> None:
        assert not monthly.is_due(date(2025, 1, 30))
        assert monthly.is_due(date(2025, 1, 31))
        executed = replace(monthly, last_execution_date=date(2025, 1, 31))
        assert not executed.is_due(date(2025, 1, 31))
