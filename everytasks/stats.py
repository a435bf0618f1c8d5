"""Streaks, completion rates and progress ratios.

All functions recompute from the full collections they are given. There is
no incremental bookkeeping: the store calls ``compute_statistics`` after
every mutation and throws the old result away.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence

from everytasks.models import FocusSession, Habit, Statistics, Todo
from everytasks.schedule import applies_on, month_dates, start_of_day, week_dates


def total_focus_time(sessions: Iterable[FocusSession]) -> float:
    """Seconds spent in completed focus sessions."""
    return sum(s.elapsed.total_seconds() for s in sessions if s.is_completed)


def completion_rate(todos: Sequence[Todo]) -> float:
    if not todos:
        return 0.0
    return sum(1 for t in todos if t.is_completed) / len(todos)


def habits_completed_on(habits: Iterable[Habit], day: date) -> list[Habit]:
    """Active habits with a completion recorded on *day*."""
    return [h for h in habits if h.is_active and h.is_completed_on(day)]


def habit_completion_rate(habits: Sequence[Habit], today: Optional[date] = None) -> float:
    """Share of habits marked done today."""
    if not habits:
        return 0.0
    day = today or date.today()
    return sum(1 for h in habits if h.is_completed_on(day)) / len(habits)


def _day_qualifies(todos: Sequence[Todo], habits: Sequence[Habit], day: date) -> bool:
    if any(t.is_completed and start_of_day(t.target_date) == day for t in todos):
        return True
    return any(h.is_completed_on(day) for h in habits)


def streak(
    todos: Sequence[Todo], habits: Sequence[Habit], today: Optional[date] = None
) -> int:
    """Consecutive days, ending today, with a finished todo or any habit done.

    A day with nothing done ends the walk; if today has nothing the streak
    is 0 even when yesterday had activity.
    """
    day = today or date.today()
    count = 0
    while _day_qualifies(todos, habits, day):
        count += 1
        day -= timedelta(days=1)
    return count


def habit_streak(habit: Habit, today: Optional[date] = None) -> int:
    """Consecutive days, ending today, on which *habit* was done."""
    day = today or date.today()
    count = 0
    while habit.is_completed_on(day):
        count += 1
        day -= timedelta(days=1)
    return count


def period_progress(habits: Iterable[Habit], dates: Iterable[date]) -> float:
    """Completed over possible habit-days, counting only days a habit applies to."""
    days = list(dates)
    possible = 0
    completed = 0
    for habit in habits:
        for day in days:
            if not applies_on(habit, day):
                continue
            possible += 1
            if habit.is_completed_on(day):
                completed += 1
    return completed / possible if possible else 0.0


def weekly_progress(habits: Iterable[Habit], today: Optional[date] = None) -> float:
    return period_progress(habits, week_dates(today or date.today()))


def monthly_progress(habits: Iterable[Habit], today: Optional[date] = None) -> float:
    return period_progress(habits, month_dates(today or date.today()))


def todos_for_date(todos: Iterable[Todo], day: date) -> list[Todo]:
    """Todos created on *day*."""
    return [t for t in todos if start_of_day(t.created_date) == day]


def completion_rate_for_date(todos: Iterable[Todo], day: date) -> float:
    return completion_rate(todos_for_date(todos, day))


def compute_statistics(
    todos: Sequence[Todo],
    habits: Sequence[Habit],
    sessions: Sequence[FocusSession],
    now: Optional[datetime] = None,
) -> Statistics:
    """Rebuild the statistics record from scratch."""
    now = now or datetime.now()
    today = now.date()
    return Statistics(
        total_todos=len(todos),
        completed_todos=sum(1 for t in todos if t.is_completed),
        total_habits=len(habits),
        completed_habits=sum(1 for h in habits if h.is_completed_on(today)),
        total_focus_sessions=len(sessions),
        total_focus_time=total_focus_time(sessions),
        streak_days=streak(todos, habits, today),
        last_updated=now,
    )
