"""EveryTasks CLI -- todos, habits and focus sessions from the terminal.

Two apps live here: ``app`` is the primary process (``everytasks``) and owns
the store; ``widget_app`` (``everytasks-widget``) stands in for the
home-screen widget and only ever touches the shared location.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Optional, Sequence

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from everytasks import backup, display
from everytasks import config as cfg
from everytasks.kvstore import KeyValueStore
from everytasks.models import (
    Habit,
    HabitCategory,
    HabitFrequency,
    SyncPolicy,
    Todo,
    TodoCategory,
    TodoPriority,
)
from everytasks.schedule import HabitNotScheduledError, applies_on
from everytasks.stats import (
    completion_rate_for_date,
    habits_completed_on,
    monthly_progress,
    todos_for_date,
    weekly_progress,
)
from everytasks.store import EntityStore, open_store
from everytasks.widget import WidgetBridge

app = typer.Typer(
    name="everytasks",
    help="Todos, habits and focus sessions, with a home-screen widget.",
    no_args_is_help=True,
)
todo_app = typer.Typer(help="Manage todos.", no_args_is_help=True)
habit_app = typer.Typer(help="Manage recurring habits.", no_args_is_help=True)
focus_app = typer.Typer(help="Track focus sessions.", no_args_is_help=True)
app.add_typer(todo_app, name="todo")
app.add_typer(habit_app, name="habit")
app.add_typer(focus_app, name="focus")

widget_app = typer.Typer(
    name="everytasks-widget",
    help="The home-screen widget: shows and toggles the shared snapshot.",
    no_args_is_help=True,
)

_WEEKDAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Todos, habits and focus sessions, with a home-screen widget."""
    _setup_logging(verbose)


@widget_app.callback()
def widget_main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """The home-screen widget: shows and toggles the shared snapshot."""
    _setup_logging(verbose)


def _store() -> EntityStore:
    """Open the store (convenience wrapper)."""
    return open_store()


def _resolve(items: Sequence[Any], prefix: str, kind: str) -> Any:
    """Find the single item whose id starts with *prefix*, or exit."""
    matches = [item for item in items if str(item.id).startswith(prefix.lower())]
    if not matches:
        display.print_warning(f"No {kind} matches '{prefix}'.")
        raise typer.Exit(1)
    if len(matches) > 1:
        display.print_warning(f"'{prefix}' matches {len(matches)} {kind}s; type more of the id.")
        raise typer.Exit(1)
    return matches[0]


def _parse_weekdays(values: Optional[List[str]]) -> set[int]:
    days: set[int] = set()
    for raw in values or []:
        value = raw.strip().lower()
        if value.isdigit() and 0 <= int(value) <= 6:
            days.add(int(value))
        elif value[:3] in _WEEKDAY_NAMES:
            days.add(_WEEKDAY_NAMES.index(value[:3]))
        else:
            display.print_warning(f"Unknown weekday '{raw}'. Use 0-6 (0=Sunday) or sun..sat.")
            raise typer.Exit(1)
    return days


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


@app.command()
def init(
    samples: bool = typer.Option(False, "--samples", help="Add a few example todos and habits"),
) -> None:
    """Create the local store (and optionally fill it with examples)."""
    store = _store()
    if samples:
        if store.seed_sample_data():
            display.print_success("Added example todos and habits.")
        else:
            display.print_info("Store already has data; examples not added.")
    else:
        store.save()
    display.print_info(f"Data: {store.kv.directory}")


# ---------------------------------------------------------------------------
# Todos
# ---------------------------------------------------------------------------


@todo_app.command("add")
def todo_add(
    title: str = typer.Argument(..., help="What do you need to do?"),
    description: str = typer.Option("", "--description", "-d"),
    priority: TodoPriority = typer.Option(TodoPriority.MEDIUM, "--priority", "-p"),
    category: TodoCategory = typer.Option(TodoCategory.PERSONAL, "--category", "-c"),
    due: Optional[datetime] = typer.Option(
        None, "--due", formats=["%Y-%m-%d"], help="Target day (default today)"
    ),
) -> None:
    """Add a new todo."""
    try:
        todo = Todo(
            title=title,
            description=description,
            priority=priority,
            category=category,
            target_date=due or datetime.now(),
        )
    except ValidationError as exc:
        display.print_warning(f"Invalid todo: {exc.errors()[0]['msg']}")
        raise typer.Exit(1)
    store = _store()
    store.add(todo)
    display.print_success(f"Added todo {display.short_id(todo.id)}: {todo.title}")


@todo_app.command("list")
def todo_list(
    all_todos: bool = typer.Option(False, "--all", "-a", help="Include completed todos"),
) -> None:
    """List your todos, most urgent first."""
    store = _store()
    todos = store.todos if all_todos else [t for t in store.todos if not t.is_completed]
    todos = sorted(todos, key=lambda t: t.priority, reverse=True)
    display.print_todo_list(todos)


@todo_app.command("done")
def todo_done(todo_id: str = typer.Argument(..., help="Id (or prefix) of the todo")) -> None:
    """Mark a todo done, or undone if it already is."""
    store = _store()
    todo = _resolve(store.todos, todo_id, "todo")
    toggled = store.toggle_todo_completion(todo)
    if toggled.is_completed:
        display.print_success(f"Completed: {toggled.title}")
    else:
        display.print_info(f"Reopened: {toggled.title}")


@todo_app.command("rm")
def todo_rm(todo_id: str = typer.Argument(..., help="Id (or prefix) of the todo")) -> None:
    """Delete a todo."""
    store = _store()
    todo = _resolve(store.todos, todo_id, "todo")
    store.delete(todo)
    display.print_success(f"Deleted: {todo.title}")


# ---------------------------------------------------------------------------
# Habits
# ---------------------------------------------------------------------------


@habit_app.command("add")
def habit_add(
    title: str = typer.Argument(..., help="The habit to build"),
    frequency: HabitFrequency = typer.Option(HabitFrequency.DAILY, "--frequency", "-f"),
    weekday: Optional[List[str]] = typer.Option(
        None, "--weekday", "-w", help="Weekly habits: day to repeat on (repeatable)"
    ),
    day_of_month: Optional[int] = typer.Option(
        None, "--day", help="Monthly habits: day of month (1-31)"
    ),
    category: HabitCategory = typer.Option(HabitCategory.HEALTH, "--category", "-c"),
    color: str = typer.Option("F68566", "--color", help="Hex color, e.g. A4D0B4"),
    description: str = typer.Option("", "--description", "-d"),
) -> None:
    """Add a recurring habit."""
    weekdays = _parse_weekdays(weekday)
    if frequency.requires_selection:
        if frequency is HabitFrequency.WEEKLY and not weekdays:
            display.print_warning("Weekly habits need at least one --weekday.")
            raise typer.Exit(1)
        if frequency is HabitFrequency.MONTHLY and day_of_month is None:
            display.print_warning("Monthly habits need --day.")
            raise typer.Exit(1)
    try:
        habit = Habit(
            title=title,
            description=description,
            category=category,
            frequency=frequency,
            color=color,
            selected_weekdays=weekdays,
            selected_day_of_month=day_of_month,
        )
    except ValidationError as exc:
        display.print_warning(f"Invalid habit: {exc.errors()[0]['msg']}")
        raise typer.Exit(1)
    store = _store()
    store.add(habit)
    display.print_success(f"Added habit {display.short_id(habit.id)}: {habit.title}")


@habit_app.command("list")
def habit_list() -> None:
    """Show habits with this week's progress."""
    store = _store()
    display.print_habit_list(store.habits)


@habit_app.command("check")
def habit_check(
    habit_id: str = typer.Argument(..., help="Id (or prefix) of the habit"),
    on: Optional[datetime] = typer.Option(
        None, "--date", formats=["%Y-%m-%d"], help="Day to toggle (default today)"
    ),
) -> None:
    """Mark a habit done for a day, or undo it."""
    store = _store()
    habit = _resolve(store.habits, habit_id, "habit")
    day = on.date() if on else date.today()
    try:
        updated = store.complete_habit(habit, day)
    except HabitNotScheduledError as exc:
        display.print_warning(str(exc))
        raise typer.Exit(1)
    if updated.is_completed_on(day):
        display.print_success(f"Done for {day.isoformat()}: {updated.title}")
    else:
        display.print_info(f"Unchecked {day.isoformat()}: {updated.title}")


@habit_app.command("pause")
def habit_pause(habit_id: str = typer.Argument(..., help="Id (or prefix) of the habit")) -> None:
    """Stop showing a habit without deleting it."""
    store = _store()
    habit = store.set_habit_active(_resolve(store.habits, habit_id, "habit"), False)
    display.print_info(f"Paused: {habit.title}")


@habit_app.command("resume")
def habit_resume(habit_id: str = typer.Argument(..., help="Id (or prefix) of the habit")) -> None:
    """Bring a paused habit back."""
    store = _store()
    habit = store.set_habit_active(_resolve(store.habits, habit_id, "habit"), True)
    display.print_success(f"Resumed: {habit.title}")


@habit_app.command("rm")
def habit_rm(habit_id: str = typer.Argument(..., help="Id (or prefix) of the habit")) -> None:
    """Delete a habit and its history."""
    store = _store()
    habit = _resolve(store.habits, habit_id, "habit")
    store.delete(habit)
    display.print_success(f"Deleted: {habit.title}")


# ---------------------------------------------------------------------------
# Focus sessions
# ---------------------------------------------------------------------------


@focus_app.command("start")
def focus_start(
    title: str = typer.Argument(..., help="What are you focusing on?"),
    minutes: int = typer.Option(25, "--minutes", "-m", min=1, max=240, help="Planned length"),
) -> None:
    """Start a focus session."""
    store = _store()
    session = store.start_focus_session(title, duration=minutes * 60)
    display.print_success(
        f"Started {display.short_id(session.id)}: {session.title} ({minutes} min planned)"
    )


@focus_app.command("stop")
def focus_stop(
    session_id: str = typer.Argument(..., help="Id (or prefix) of the session"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n"),
) -> None:
    """Finish a running focus session."""
    store = _store()
    session = _resolve(store.focus_sessions, session_id, "session")
    if session.is_completed:
        display.print_warning(f"{session.title} is already finished.")
        raise typer.Exit(1)
    finished = store.complete_focus_session(session, notes=notes)
    minutes = finished.elapsed.total_seconds() / 60
    display.print_success(f"Focused on {finished.title} for {minutes:.0f} min.")


@focus_app.command("list")
def focus_list() -> None:
    """List focus sessions."""
    store = _store()
    display.print_focus_sessions(store.focus_sessions)


# ---------------------------------------------------------------------------
# Status, backup & sync
# ---------------------------------------------------------------------------


@app.command()
def status(
    on: Optional[datetime] = typer.Option(
        None, "--date", formats=["%Y-%m-%d"], help="Show a single day instead"
    ),
) -> None:
    """See how you are doing."""
    store = _store()
    if on is not None:
        day = on.date()
        display.print_day(
            day,
            todos=todos_for_date(store.todos, day),
            scheduled=[h for h in store.habits if h.is_active and applies_on(h, day)],
            done=habits_completed_on(store.habits, day),
            rate=completion_rate_for_date(store.todos, day),
        )
        return
    display.print_status(
        store.statistics,
        weekly=weekly_progress(store.habits),
        monthly=monthly_progress(store.habits),
    )


@app.command(name="export")
def export_cmd(
    path: Path = typer.Argument(Path("."), help="File or directory to write the backup to"),
) -> None:
    """Write a full JSON backup."""
    store = _store()
    written = backup.export_to_file(store, path)
    display.print_success(f"Backup written to {written}")


@app.command(name="import")
def import_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Backup file"),
) -> None:
    """Replace everything with the contents of a backup."""
    store = _store()
    if not backup.import_from_file(store, path):
        display.print_warning(
            f"Could not import {path}: unreadable or not a version {backup.CURRENT_VERSION} backup."
        )
        raise typer.Exit(1)
    display.print_success(
        f"Imported {len(store.todos)} todos, {len(store.habits)} habits, "
        f"{len(store.focus_sessions)} focus sessions."
    )


@app.command()
def sync() -> None:
    """Pick up widget toggles and refresh the widget."""
    store = open_store(reconcile=False)
    applied = store.reconcile_widget()
    if store.bridge is not None:
        store.bridge.project(store.todos, store.habits)
    display.print_info(f"Applied {applied} widget change{'s' if applied != 1 else ''}.")


@app.command()
def config(
    data_dir: Optional[str] = typer.Option(None, "--data-dir", help="Where to keep the store"),
    shared_dir: Optional[str] = typer.Option(
        None, "--shared-dir", help="Directory shared with the widget"
    ),
    policy: Optional[SyncPolicy] = typer.Option(
        None, "--policy", help="How widget toggles survive primary writes"
    ),
    reset: bool = typer.Option(False, "--reset", help="Reset to default directories"),
    show: bool = typer.Option(False, "--show", help="Show current config"),
) -> None:
    """Configure where data lives and how the widget syncs."""
    if data_dir:
        result = cfg.set_data_dir(data_dir)
        display.print_success(f"Data directory set to: {result.data_dir}")
    if shared_dir:
        result = cfg.set_shared_dir(shared_dir)
        display.print_success(f"Shared directory set to: {result.shared_dir}")
    if policy is not None:
        cfg.set_sync_policy(policy)
        display.print_success(f"Widget sync policy: {policy.value}")
    if reset:
        cfg.reset_paths()
        display.print_success("Reset to default directories.")
    if show:
        current = cfg.load_config()
        display.print_info(f"Data: {cfg.get_data_dir(current)}")
        display.print_info(f"Shared: {cfg.get_shared_dir(current)}")
        display.print_info(f"Sync policy: {current.sync_policy.value}")
    if not any([data_dir, shared_dir, policy, reset, show]):
        display.print_info("Use --data-dir, --shared-dir, --policy, --reset, or --show.")


# ---------------------------------------------------------------------------
# Widget process
# ---------------------------------------------------------------------------


def _bridge() -> WidgetBridge:
    current = cfg.load_config()
    return WidgetBridge(KeyValueStore(cfg.get_shared_dir(current)), policy=current.sync_policy)


@widget_app.command("show")
def widget_show() -> None:
    """Render what the widget currently shows."""
    display.print_shared(_bridge().read())


@widget_app.command("toggle-habit")
def widget_toggle_habit(
    habit_id: str = typer.Argument(..., help="Id (or prefix) of the habit"),
) -> None:
    """Tick or untick a habit for today from the widget."""
    bridge = _bridge()
    record = _resolve(bridge.read().habits, habit_id, "habit")
    bridge.toggle_habit(record.id)
    display.print_shared(bridge.read())


@widget_app.command("toggle-todo")
def widget_toggle_todo(
    todo_id: str = typer.Argument(..., help="Id (or prefix) of the todo"),
) -> None:
    """Tick or untick a todo from the widget."""
    bridge = _bridge()
    record = _resolve(bridge.read().todos, todo_id, "todo")
    bridge.toggle_todo(record.id)
    display.print_shared(bridge.read())
