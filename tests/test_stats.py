"""Tests for streaks, rates and progress ratios."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from everytasks.models import FocusSession, Habit, HabitFrequency, Todo
from everytasks.stats import (
    completion_rate,
    completion_rate_for_date,
    compute_statistics,
    habit_completion_rate,
    habit_streak,
    habits_completed_on,
    monthly_progress,
    period_progress,
    streak,
    total_focus_time,
    weekly_progress,
)

TODAY = date(2024, 6, 5)  # a Wednesday


def _done_todo(day: date) -> Todo:
    when = datetime.combine(day, datetime.min.time()).replace(hour=10)
    return Todo(title="t", target_date=when, is_completed=True, completed_date=when)


def _habit_done_on(*days: date) -> Habit:
    return Habit(title="h", completed_dates=set(days))


class TestFocusTime:
    def test_only_completed_sessions_count(self) -> None:
        start = datetime(2024, 6, 5, 9, 0)
        sessions = [
            FocusSession(
                title="a", start_time=start, end_time=start + timedelta(minutes=25), is_completed=True
            ),
            FocusSession(title="b", start_time=start),
        ]
        assert total_focus_time(sessions) == 25 * 60

    def test_empty(self) -> None:
        assert total_focus_time([]) == 0


class TestRates:
    def test_empty_todos_zero(self) -> None:
        assert completion_rate([]) == 0.0

    def test_completion_rate(self) -> None:
        todos = [_done_todo(TODAY), Todo(title="open")]
        assert completion_rate(todos) == 0.5

    def test_habit_rate_empty(self) -> None:
        assert habit_completion_rate([], TODAY) == 0.0

    def test_habit_rate(self) -> None:
        habits = [_habit_done_on(TODAY), _habit_done_on(TODAY - timedelta(days=1))]
        assert habit_completion_rate(habits, TODAY) == 0.5

    def test_habits_completed_on_skips_paused(self) -> None:
        done = _habit_done_on(TODAY)
        paused = Habit(title="p", completed_dates={TODAY}, is_active=False)
        other_day = _habit_done_on(TODAY - timedelta(days=1))
        assert habits_completed_on([done, paused, other_day], TODAY) == [done]
        assert habits_completed_on([done, paused, other_day], TODAY + timedelta(days=1)) == []

    def test_rate_for_date_uses_creation_day(self) -> None:
        created = datetime(2024, 6, 5, 8, 0)
        todos = [
            Todo(title="a", created_date=created, is_completed=True, completed_date=created),
            Todo(title="b", created_date=created),
            Todo(title="c", created_date=created - timedelta(days=1)),
        ]
        assert completion_rate_for_date(todos, TODAY) == 0.5
        assert completion_rate_for_date(todos, TODAY + timedelta(days=1)) == 0.0


class TestStreak:
    def test_nothing_today_is_zero(self) -> None:
        yesterday = TODAY - timedelta(days=1)
        assert streak([_done_todo(yesterday)], [_habit_done_on(yesterday)], TODAY) == 0

    def test_empty_store_zero(self) -> None:
        assert streak([], [], TODAY) == 0

    def test_exactly_n_days(self) -> None:
        days = [TODAY - timedelta(days=i) for i in range(4)]
        gap = TODAY - timedelta(days=5)
        todos = [_done_todo(days[0]), _done_todo(days[2]), _done_todo(gap)]
        habits = [_habit_done_on(days[1], days[3])]
        assert streak(todos, habits, TODAY) == 4

    def test_incomplete_todos_do_not_count(self) -> None:
        open_todo = Todo(title="open", target_date=datetime.combine(TODAY, datetime.min.time()))
        assert streak([open_todo], [], TODAY) == 0

    def test_habit_streak(self) -> None:
        habit = _habit_done_on(TODAY, TODAY - timedelta(days=1), TODAY - timedelta(days=3))
        assert habit_streak(habit, TODAY) == 2

    def test_habit_streak_zero_when_today_missing(self) -> None:
        habit = _habit_done_on(TODAY - timedelta(days=1))
        assert habit_streak(habit, TODAY) == 0


class TestProgress:
    def test_only_applicable_days_count(self) -> None:
        # Mon/Wed/Fri habit, done Monday only: 1 of 3 scheduled days.
        monday = TODAY - timedelta(days=2)
        habit = Habit(
            title="Gym",
            frequency=HabitFrequency.WEEKLY,
            selected_weekdays={1, 3, 5},
            completed_dates={monday},
        )
        assert weekly_progress([habit], TODAY) == 1 / 3

    def test_nothing_possible_is_zero(self) -> None:
        habit = Habit(title="x", frequency=HabitFrequency.MONTHLY, selected_day_of_month=31)
        assert monthly_progress([habit], date(2024, 6, 10)) == 0.0
        assert period_progress([], [TODAY]) == 0.0

    def test_mixed_habits(self) -> None:
        daily = _habit_done_on(TODAY)
        monthly = Habit(
            title="Budget",
            frequency=HabitFrequency.MONTHLY,
            selected_day_of_month=5,
            completed_dates={TODAY},
        )
        # daily: 1 of 7, monthly: 1 of 1 (June 5 is in this week)
        assert weekly_progress([daily, monthly], TODAY) == 2 / 8


class TestComputeStatistics:
    def test_full_recompute(self) -> None:
        now = datetime(2024, 6, 5, 18, 0)
        start = now - timedelta(hours=2)
        stats = compute_statistics(
            todos=[_done_todo(TODAY), Todo(title="open")],
            habits=[_habit_done_on(TODAY), Habit(title="idle")],
            sessions=[
                FocusSession(
                    title="f", start_time=start, end_time=start + timedelta(minutes=30), is_completed=True
                )
            ],
            now=now,
        )
        assert stats.total_todos == 2
        assert stats.completed_todos == 1
        assert stats.total_habits == 2
        assert stats.completed_habits == 1
        assert stats.total_focus_sessions == 1
        assert stats.total_focus_time == 1800
        assert stats.streak_days == 1
        assert stats.last_updated == now

    def test_empty(self) -> None:
        stats = compute_statistics([], [], [], now=datetime(2024, 6, 5))
        assert stats.total_todos == 0
        assert stats.completion_rate == 0.0
        assert stats.streak_days == 0
