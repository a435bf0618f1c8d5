"""Which calendar days a habit counts on.

Everything here is a pure function of its arguments: nothing reads the
clock, so the same answers come back from statistics, the CLI and tests.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Union

from everytasks.models import Habit, HabitFrequency

DayLike = Union[date, datetime]


class HabitNotScheduledError(ValueError):
    """A completion was toggled on a day the habit does not apply to."""

    def __init__(self, habit: Habit, day: date) -> None:
        super().__init__(f'"{habit.title}" is not scheduled on {day.isoformat()}')
        self.habit = habit
        self.day = day


def start_of_day(value: DayLike) -> date:
    """Drop the time-of-day part."""
    if isinstance(value, datetime):
        return value.date()
    return value


def weekday_index(value: DayLike) -> int:
    """Weekday with Sunday as 0 and Saturday as 6."""
    return (start_of_day(value).weekday() + 1) % 7


def applies_on(habit: Habit, value: DayLike) -> bool:
    """Return True if *habit* counts on the calendar day of *value*."""
    day = start_of_day(value)
    if habit.frequency is HabitFrequency.DAILY:
        return True
    if habit.frequency is HabitFrequency.WEEKLY:
        return weekday_index(day) in habit.selected_weekdays
    # Monthly: no clamping, day 31 simply never matches a 30-day month.
    return habit.selected_day_of_month == day.day


def week_dates(value: DayLike) -> list[date]:
    """The seven days of the Sunday-started week containing *value*."""
    day = start_of_day(value)
    first = day - timedelta(days=weekday_index(day))
    return [first + timedelta(days=i) for i in range(7)]


def month_dates(value: DayLike) -> list[date]:
    """Every day of the month containing *value*."""
    day = start_of_day(value)
    _, days_in_month = calendar.monthrange(day.year, day.month)
    return [day.replace(day=n) for n in range(1, days_in_month + 1)]
