"""Tests for the habit frequency evaluator."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from everytasks.models import Habit, HabitFrequency
from everytasks.schedule import (
    applies_on,
    month_dates,
    start_of_day,
    week_dates,
    weekday_index,
)

# 2024-06-02 is a Sunday.
SUNDAY = date(2024, 6, 2)


def _weekly(*days: int) -> Habit:
    return Habit(title="Gym", frequency=HabitFrequency.WEEKLY, selected_weekdays=set(days))


def _monthly(day: int) -> Habit:
    return Habit(title="Budget", frequency=HabitFrequency.MONTHLY, selected_day_of_month=day)


class TestWeekdayIndex:
    def test_sunday_is_zero(self) -> None:
        assert weekday_index(SUNDAY) == 0

    def test_saturday_is_six(self) -> None:
        assert weekday_index(SUNDAY + timedelta(days=6)) == 6

    def test_datetime_accepted(self) -> None:
        assert weekday_index(datetime(2024, 6, 3, 23, 59)) == 1


class TestAppliesOn:
    def test_daily_always(self) -> None:
        habit = Habit(title="Water")
        for offset in range(40):
            assert applies_on(habit, SUNDAY + timedelta(days=offset))

    def test_weekly_mon_wed_fri(self) -> None:
        habit = _weekly(1, 3, 5)
        tuesday = date(2024, 6, 4)
        wednesday = date(2024, 6, 5)
        assert not applies_on(habit, tuesday)
        assert applies_on(habit, wednesday)

    def test_weekly_without_days_never(self) -> None:
        habit = _weekly()
        assert not any(applies_on(habit, d) for d in week_dates(SUNDAY))

    def test_monthly_matches_day(self) -> None:
        habit = _monthly(15)
        assert applies_on(habit, date(2024, 6, 15))
        assert not applies_on(habit, date(2024, 6, 14))

    def test_monthly_31_never_in_30_day_month(self) -> None:
        habit = _monthly(31)
        assert not any(applies_on(habit, d) for d in month_dates(date(2024, 6, 1)))
        assert applies_on(habit, date(2024, 7, 31))

    def test_ignores_time_of_day(self) -> None:
        habit = _weekly(3)
        assert applies_on(habit, datetime(2024, 6, 5, 0, 0))
        assert applies_on(habit, datetime(2024, 6, 5, 23, 59, 59))

    def test_pure_across_calls(self) -> None:
        habit = _weekly(1, 3, 5)
        day = date(2031, 1, 1)
        assert applies_on(habit, day) == applies_on(habit, day) == applies_on(habit, day)


class TestCalendarHelpers:
    def test_start_of_day(self) -> None:
        assert start_of_day(datetime(2024, 6, 5, 13, 1)) == date(2024, 6, 5)
        assert start_of_day(date(2024, 6, 5)) == date(2024, 6, 5)

    def test_week_dates_start_sunday(self) -> None:
        days = week_dates(date(2024, 6, 5))
        assert len(days) == 7
        assert days[0] == SUNDAY
        assert days[-1] == date(2024, 6, 8)

    def test_month_dates(self) -> None:
        assert len(month_dates(date(2024, 2, 10))) == 29
        assert len(month_dates(date(2023, 2, 10))) == 28
        assert month_dates(date(2024, 6, 30))[0] == date(2024, 6, 1)
