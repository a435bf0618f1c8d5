"""Rich terminal formatting helpers."""

from __future__ import annotations

from datetime import date
from typing import Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from everytasks.models import FocusSession, Habit, SharedData, Statistics, Todo, TodoPriority
from everytasks.schedule import applies_on, week_dates
from everytasks.stats import habit_streak

console = Console()

_PRIORITY_STYLE: dict[TodoPriority, str] = {
    TodoPriority.LOW: "dim",
    TodoPriority.MEDIUM: "white",
    TodoPriority.HIGH: "bold cyan",
    TodoPriority.URGENT: "bold red",
}

_WEEKDAY_LETTERS = "SMTWTFS"


def short_id(entity_id: object) -> str:
    """First eight characters of an id; enough to type back on the CLI."""
    return str(entity_id)[:8]


def _check(done: bool) -> str:
    return escape("[x]") if done else "[ ]"


def print_todo_list(todos: Sequence[Todo], title: str = "Todos") -> None:
    """Print todos in a panel, one row each."""
    if not todos:
        console.print(Panel("No todos.", title=title, border_style="dim"))
        return

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("status", width=3)
    table.add_column("id", width=8)
    table.add_column("title")
    table.add_column("due", justify="right")

    for todo in todos:
        style = "green" if todo.is_completed else _PRIORITY_STYLE[todo.priority]
        table.add_row(
            _check(todo.is_completed),
            short_id(todo.id),
            todo.title,
            todo.target_date.strftime("%Y-%m-%d"),
            style=style,
        )

    console.print(Panel(table, title=title, border_style="blue"))


def _week_strip(habit: Habit, today: date) -> str:
    """One character per day this week: x done, o open, . not scheduled."""
    cells = []
    for day in week_dates(today):
        if habit.is_completed_on(day):
            cells.append("x")
        elif applies_on(habit, day):
            cells.append("o")
        else:
            cells.append(".")
    return " ".join(cells)


def print_habit_list(habits: Sequence[Habit], today: date | None = None) -> None:
    """Print habits with this week's strip and the current streak."""
    today = today or date.today()
    if not habits:
        console.print(Panel("No habits.", title="Habits", border_style="dim"))
        return

    table = Table(box=None, pad_edge=False)
    table.add_column("", width=3)
    table.add_column("id", width=8)
    table.add_column("habit")
    table.add_column(" ".join(_WEEKDAY_LETTERS))
    table.add_column("streak", justify="right")

    for habit in habits:
        style = f"#{habit.color.to_hex()[-6:]}" if habit.is_active else "dim"
        table.add_row(
            _check(habit.is_completed_on(today)),
            short_id(habit.id),
            habit.title if habit.is_active else f"{habit.title} (paused)",
            _week_strip(habit, today),
            f"{habit_streak(habit, today)}d",
            style=style,
        )

    console.print(Panel(table, title="Habits", border_style="blue"))


def print_focus_sessions(sessions: Sequence[FocusSession]) -> None:
    if not sessions:
        console.print(Panel("No focus sessions.", title="Focus", border_style="dim"))
        return

    table = Table(show_header=False, box=None, pad_edge=False)
    for session in sessions:
        if session.is_completed:
            minutes = session.elapsed.total_seconds() / 60
            state = f"{minutes:.0f} min"
        else:
            state = "running"
        table.add_row(
            _check(session.is_completed),
            short_id(session.id),
            session.title,
            session.start_time.strftime("%Y-%m-%d %H:%M"),
            state,
        )
    console.print(Panel(table, title="Focus", border_style="blue"))


def print_status(stats: Statistics, weekly: float, monthly: float) -> None:
    """Print the statistics dashboard."""
    focus_minutes = stats.total_focus_time / 60
    lines: list[str] = [
        f"Todos: {stats.completed_todos}/{stats.total_todos} done "
        f"({stats.completion_rate:.0%})",
        f"Habits done today: {stats.completed_habits}/{stats.total_habits} "
        f"({stats.habit_completion_rate:.0%})",
        f"Focus: {stats.total_focus_sessions} sessions, {focus_minutes:.0f} min",
        "",
        f"This week: {weekly:.0%} of scheduled habits",
        f"This month: {monthly:.0%} of scheduled habits",
        f"Streak: {stats.streak_days} day{'s' if stats.streak_days != 1 else ''}",
    ]
    console.print(Panel("\n".join(lines), title="Status", border_style="green"))


def print_day(
    day: date,
    todos: Sequence[Todo],
    scheduled: Sequence[Habit],
    done: Sequence[Habit],
    rate: float,
) -> None:
    """Print one calendar day: todos created that day and scheduled habits."""
    table = Table(show_header=False, box=None, pad_edge=False)
    for todo in todos:
        table.add_row(_check(todo.is_completed), short_id(todo.id), todo.title, "todo")
    done_ids = {h.id for h in done}
    for habit in scheduled:
        table.add_row(_check(habit.id in done_ids), short_id(habit.id), habit.title, "habit")
    if not todos and not scheduled:
        table.add_row("", "", "Nothing on this day.", "")
    title = (
        f"{day:%a %Y-%m-%d}: todos {rate:.0%} done, "
        f"habits {len(done)}/{len(scheduled)}"
    )
    console.print(Panel(table, title=title, border_style="green"))


def print_shared(data: SharedData) -> None:
    """Render the widget's view of the shared blob."""
    table = Table(show_header=False, box=None, pad_edge=False)
    for habit in data.habits:
        table.add_row(_check(habit.is_completed), short_id(habit.id), habit.title, "habit")
    for todo in data.todos:
        table.add_row(_check(todo.is_completed), short_id(todo.id), todo.title, "todo")
    if not data.habits and not data.todos:
        table.add_row("", "", "Nothing to show yet.", "")
    updated = data.last_updated.strftime("%H:%M")
    console.print(Panel(table, title=f"Widget (updated {updated})", border_style="magenta"))


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_info(message: str) -> None:
    """Print an informational message."""
    console.print(f"[blue]{message}[/blue]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]{message}[/yellow]")
