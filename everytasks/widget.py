"""Bridge between the primary store and the home-screen widget process.

The two processes share nothing but one key (``sharedData``) in a shared
key-value namespace. The primary writes a projection of its state after
every mutation; the widget flips completion flags in that same blob.

With ``SyncPolicy.OVERWRITE`` the projection always replaces the blob, so a
widget toggle the primary has not seen is lost on the next primary write.
With ``SyncPolicy.MERGE`` every record carries ``modified_at``: a record the
widget touched after the source entity last changed keeps its flag, and
``pending_toggles`` reports it so the primary can adopt the change.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Iterable, NamedTuple, Optional, Sequence, TypeVar, Union
from uuid import UUID

from pydantic import ValidationError

from everytasks.kvstore import KeyValueStore
from everytasks.models import (
    Habit,
    SharedData,
    SharedHabit,
    SharedTodo,
    SyncPolicy,
    Todo,
)

log = logging.getLogger(__name__)

SHARED_DATA_KEY = "sharedData"
MAX_SHARED_TODOS = 5

ReloadHook = Callable[[SharedData], None]
_Record = TypeVar("_Record", SharedHabit, SharedTodo)


class PendingToggles(NamedTuple):
    """Entities whose widget-side flag is newer than the primary's."""

    todos: list[UUID]
    habits: list[UUID]


def _log_reload(data: SharedData) -> None:
    log.debug(
        "Widget reload requested (%d habits, %d todos)", len(data.habits), len(data.todos)
    )


def build_projection(
    todos: Iterable[Todo], habits: Iterable[Habit], now: Optional[datetime] = None
) -> SharedData:
    """Project the store into what the widget shows: active habits and five todos."""
    now = now or datetime.now()
    today = now.date()
    shared_habits = [
        SharedHabit(
            id=str(h.id),
            title=h.title,
            is_completed=h.is_completed_on(today),
            date=datetime.combine(today, datetime.min.time()),
            modified_at=h.last_modified,
        )
        for h in habits
        if h.is_active
    ]
    # sorted() is stable, so incomplete-first keeps the original order otherwise.
    ordered = sorted(todos, key=lambda t: t.is_completed)[:MAX_SHARED_TODOS]
    shared_todos = [
        SharedTodo(
            id=str(t.id),
            title=t.title,
            is_completed=t.is_completed,
            date=t.created_date,
            modified_at=t.last_modified,
        )
        for t in ordered
    ]
    return SharedData(habits=shared_habits, todos=shared_todos, last_updated=now)


def _keep_newer(
    fresh: Sequence[_Record], current: Sequence[_Record], same_day: bool = False
) -> list[_Record]:
    previous = {r.id: r for r in current}
    merged: list[_Record] = []
    for record in fresh:
        old = previous.get(record.id)
        if (
            old is not None
            and old.modified_at > record.modified_at
            and old.is_completed != record.is_completed
            and (not same_day or old.date.date() == record.date.date())
        ):
            record = record.model_copy(
                update={"is_completed": old.is_completed, "modified_at": old.modified_at}
            )
        merged.append(record)
    return merged


def merge_projection(current: SharedData, fresh: SharedData) -> SharedData:
    """Overlay widget toggles that are newer than the primary's records."""
    return fresh.model_copy(
        update={
            "habits": _keep_newer(fresh.habits, current.habits, same_day=True),
            "todos": _keep_newer(fresh.todos, current.todos),
        }
    )


class WidgetBridge:
    """Reads and writes the shared projection for both processes."""

    def __init__(
        self,
        kv: KeyValueStore,
        policy: SyncPolicy = SyncPolicy.MERGE,
        reload_hooks: Optional[list[ReloadHook]] = None,
    ) -> None:
        self.kv = kv
        self.policy = policy
        self.reload_hooks: list[ReloadHook] = (
            reload_hooks if reload_hooks is not None else [_log_reload]
        )

    # -- shared location -----------------------------------------------------

    def read(self) -> SharedData:
        """Current shared blob; an empty one if nothing usable is there yet."""
        try:
            raw = self.kv.get(SHARED_DATA_KEY)
        except (OSError, UnicodeDecodeError):
            log.warning("Could not read shared widget data", exc_info=True)
            return SharedData()
        if raw is None:
            return SharedData()
        try:
            return SharedData.model_validate_json(raw)
        except ValidationError:
            log.warning("Shared widget data is unreadable; treating it as empty.")
            return SharedData()

    def write(self, data: SharedData) -> None:
        """Store *data* and ask the widget host to redraw."""
        try:
            self.kv.set(SHARED_DATA_KEY, data.model_dump_json(by_alias=True))
        except (OSError, ValueError):
            log.error("Could not write shared widget data", exc_info=True)
            return
        for hook in self.reload_hooks:
            try:
                hook(data)
            except Exception:
                log.exception("Widget reload hook %r failed", hook)

    # -- primary side --------------------------------------------------------

    def project(
        self,
        todos: Iterable[Todo],
        habits: Iterable[Habit],
        now: Optional[datetime] = None,
    ) -> SharedData:
        """Rebuild the projection from the primary's state and write it."""
        data = build_projection(todos, habits, now)
        if self.policy is SyncPolicy.MERGE:
            data = merge_projection(self.read(), data)
        self.write(data)
        return data

    def pending_toggles(
        self,
        todos: Iterable[Todo],
        habits: Iterable[Habit],
        today: Optional[date] = None,
    ) -> PendingToggles:
        """Widget toggles the primary has not applied yet."""
        today = today or date.today()
        shared = self.read()
        by_id_todo = {str(t.id): t for t in todos}
        by_id_habit = {str(h.id): h for h in habits}

        todo_ids: list[UUID] = []
        for record in shared.todos:
            todo = by_id_todo.get(record.id)
            if todo is None:
                continue
            if record.modified_at > todo.last_modified and record.is_completed != todo.is_completed:
                todo_ids.append(todo.id)

        habit_ids: list[UUID] = []
        for record in shared.habits:
            habit = by_id_habit.get(record.id)
            if habit is None or record.date.date() != today:
                continue
            if (
                record.modified_at > habit.last_modified
                and record.is_completed != habit.is_completed_on(today)
            ):
                habit_ids.append(habit.id)
        return PendingToggles(todos=todo_ids, habits=habit_ids)

    # -- widget side ---------------------------------------------------------

    def _toggle(self, records_of: Callable[[SharedData], list], record_id: str) -> bool:
        data = self.read()
        for record in records_of(data):
            if record.id == record_id:
                now = datetime.now()
                record.is_completed = not record.is_completed
                record.modified_at = now
                data.last_updated = now
                self.write(data)
                return True
        return False

    def toggle_habit(self, habit_id: Union[str, UUID]) -> bool:
        """Flip a habit's "done today" flag in the shared blob only."""
        return self._toggle(lambda d: d.habits, str(habit_id))

    def toggle_todo(self, todo_id: Union[str, UUID]) -> bool:
        """Flip a todo's completion flag in the shared blob only."""
        return self._toggle(lambda d: d.todos, str(todo_id))
