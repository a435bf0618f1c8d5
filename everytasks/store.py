"""The entity store: canonical todos, habits, focus sessions and statistics.

Every mutation runs to completion in the same order: stamp the entity,
recompute statistics from scratch, persist all collections, refresh the
widget projection, then notify subscribers. Persistence and projection
failures are logged and never raised; the in-memory state stays as it is.
"""

from __future__ import annotations

import enum
import json
import logging
from datetime import date, datetime
from typing import Callable, Optional, Sequence, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel, TypeAdapter

from everytasks import config as cfg
from everytasks.kvstore import KeyValueStore
from everytasks.models import (
    AppConfig,
    FocusSession,
    Habit,
    HabitCategory,
    Statistics,
    SyncPolicy,
    Todo,
    TodoCategory,
    TodoPriority,
)
from everytasks.schedule import HabitNotScheduledError, applies_on, start_of_day
from everytasks.stats import compute_statistics
from everytasks.widget import WidgetBridge

log = logging.getLogger(__name__)

DATA_VERSION = "1.0"

TODOS_KEY = "todos"
HABITS_KEY = "habits"
FOCUS_SESSIONS_KEY = "focusSessions"
STATISTICS_KEY = "statistics"
VERSION_KEY = "dataVersion"

Entity = Union[Todo, Habit, FocusSession]
E = TypeVar("E", Todo, Habit, FocusSession)

_todos_adapter = TypeAdapter(list[Todo])
_habits_adapter = TypeAdapter(list[Habit])
_sessions_adapter = TypeAdapter(list[FocusSession])


class StoreAction(str, enum.Enum):
    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"
    REPLACED = "replaced"
    LOADED = "loaded"


class StoreEvent(BaseModel):
    """What changed; ``entity`` is None for whole-store events."""

    action: StoreAction
    entity: Optional[Union[Todo, Habit, FocusSession]] = None


Subscriber = Callable[[StoreEvent], None]


class EntityStore:
    """Owns the authoritative collections and their persistence."""

    def __init__(
        self,
        kv: KeyValueStore,
        bridge: Optional[WidgetBridge] = None,
        *,
        autoload: bool = True,
    ) -> None:
        self.kv = kv
        self.bridge = bridge
        self.todos: list[Todo] = []
        self.habits: list[Habit] = []
        self.focus_sessions: list[FocusSession] = []
        self.statistics = Statistics()
        self._subscribers: list[Subscriber] = []
        if autoload:
            self._read_all()

    # -----------------------------------------------------------------------
    # Change notification
    # -----------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback* for every change. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, event: StoreEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                log.exception("Store subscriber %r failed", callback)

    # -----------------------------------------------------------------------
    # Generic mutation API
    # -----------------------------------------------------------------------

    def _collection(self, entity: Entity) -> list:
        if isinstance(entity, Todo):
            return self.todos
        if isinstance(entity, Habit):
            return self.habits
        if isinstance(entity, FocusSession):
            return self.focus_sessions
        raise TypeError(f"not a store entity: {type(entity).__name__}")

    @staticmethod
    def _stamped(entity: E) -> E:
        return entity.model_copy(update={"updated_at": datetime.now()})

    @staticmethod
    def _scheduled_only(habit: Habit) -> Habit:
        """Drop completions on days the habit no longer applies to."""
        kept = {day for day in habit.completed_dates if applies_on(habit, day)}
        if len(kept) == len(habit.completed_dates):
            return habit
        log.info(
            "Dropping %d off-schedule completion(s) from %s",
            len(habit.completed_dates) - len(kept),
            habit.title,
        )
        return habit.model_copy(update={"completed_dates": kept})

    def add(self, entity: E) -> E:
        """Append *entity*. Ids are not checked for duplicates."""
        collection = self._collection(entity)
        if isinstance(entity, Habit):
            entity = self._scheduled_only(entity)
        stored = self._stamped(entity)
        collection.append(stored)
        self._commit(StoreEvent(action=StoreAction.ADDED, entity=stored))
        return stored

    def update(self, entity: E) -> bool:
        """Replace the entity with the same id. Returns False if there is none."""
        collection = self._collection(entity)
        for index, existing in enumerate(collection):
            if existing.id == entity.id:
                if isinstance(entity, Habit):
                    entity = self._scheduled_only(entity)
                stored = self._stamped(entity)
                collection[index] = stored
                self._commit(StoreEvent(action=StoreAction.UPDATED, entity=stored))
                return True
        return False

    def delete(self, entity: Entity) -> None:
        collection = self._collection(entity)
        collection[:] = [e for e in collection if e.id != entity.id]
        self._commit(StoreEvent(action=StoreAction.DELETED, entity=entity))

    def replace_all(
        self,
        todos: Sequence[Todo],
        habits: Sequence[Habit],
        focus_sessions: Sequence[FocusSession],
    ) -> None:
        """Swap every collection at once (used by import)."""
        self.todos = list(todos)
        self.habits = [self._scheduled_only(h) for h in habits]
        self.focus_sessions = list(focus_sessions)
        self._commit(StoreEvent(action=StoreAction.REPLACED))

    # -----------------------------------------------------------------------
    # Lookups
    # -----------------------------------------------------------------------

    @staticmethod
    def _find(collection: Sequence[E], entity_id: Union[UUID, str]) -> Optional[E]:
        key = str(entity_id)
        for entity in collection:
            if str(entity.id) == key:
                return entity
        return None

    def get_todo(self, todo_id: Union[UUID, str]) -> Optional[Todo]:
        return self._find(self.todos, todo_id)

    def get_habit(self, habit_id: Union[UUID, str]) -> Optional[Habit]:
        return self._find(self.habits, habit_id)

    def get_focus_session(self, session_id: Union[UUID, str]) -> Optional[FocusSession]:
        return self._find(self.focus_sessions, session_id)

    # -----------------------------------------------------------------------
    # Domain operations
    # -----------------------------------------------------------------------

    def toggle_todo_completion(self, todo: Todo) -> Todo:
        """Flip completion; completed_date follows the flag."""
        completing = not todo.is_completed
        toggled = todo.model_copy(
            update={
                "is_completed": completing,
                "completed_date": datetime.now() if completing else None,
            }
        )
        self.update(toggled)
        return self.get_todo(todo.id) or toggled

    def complete_habit(self, habit: Habit, day: Optional[Union[date, datetime]] = None) -> Habit:
        """Toggle the calendar day of *day* (default today) in the habit's completions.

        Raises HabitNotScheduledError when the habit does not apply that day.
        """
        target = start_of_day(day) if day is not None else date.today()
        if not applies_on(habit, target):
            raise HabitNotScheduledError(habit, target)
        dates = set(habit.completed_dates)
        if target in dates:
            dates.discard(target)
        else:
            dates.add(target)
        toggled = habit.model_copy(update={"completed_dates": dates})
        self.update(toggled)
        return self.get_habit(habit.id) or toggled

    def set_habit_active(self, habit: Habit, active: bool) -> Habit:
        changed = habit.model_copy(update={"is_active": active})
        self.update(changed)
        return self.get_habit(habit.id) or changed

    def start_focus_session(self, title: str, duration: float = 1500.0) -> FocusSession:
        return self.add(FocusSession(title=title, duration=duration))

    def complete_focus_session(
        self, session: FocusSession, notes: Optional[str] = None
    ) -> FocusSession:
        """Stop the clock on *session* and mark it completed."""
        update: dict[str, object] = {"end_time": datetime.now(), "is_completed": True}
        if notes is not None:
            update["notes"] = notes
        finished = session.model_copy(update=update)
        self.update(finished)
        return self.get_focus_session(session.id) or finished

    def seed_sample_data(self) -> bool:
        """Fill an empty store with a few example todos and habits."""
        if self.todos or self.habits:
            return False
        self.todos = [
            Todo(title="Drink water", description="8 glasses today", category=TodoCategory.HABIT),
            Todo(
                title="Go for a walk",
                description="30 minutes",
                priority=TodoPriority.HIGH,
                category=TodoCategory.HEALTH,
            ),
            Todo(title="Write a blog post", description="Three paragraphs is enough"),
            Todo(title="Cook dinner", priority=TodoPriority.HIGH),
            Todo(
                title="Read",
                description="30 minutes",
                priority=TodoPriority.LOW,
                category=TodoCategory.STUDY,
            ),
            Todo(title="Meditate", description="10 minutes", category=TodoCategory.HEALTH),
        ]
        self.habits = [
            Habit(title="Drink water", description="8 glasses a day"),
            Habit(title="Exercise", description="30 minute walk", category=HabitCategory.EXERCISE),
            Habit(title="Read", description="30 minutes", category=HabitCategory.STUDY),
        ]
        self._commit(StoreEvent(action=StoreAction.REPLACED))
        return True

    # -----------------------------------------------------------------------
    # Widget reconciliation
    # -----------------------------------------------------------------------

    def reconcile_widget(self) -> int:
        """Apply widget toggles newer than the primary's own records.

        Returns how many entities changed.
        """
        if self.bridge is None:
            return 0
        today = date.today()
        pending = self.bridge.pending_toggles(self.todos, self.habits, today)
        applied = 0
        for todo_id in pending.todos:
            todo = self.get_todo(todo_id)
            if todo is not None:
                self.toggle_todo_completion(todo)
                applied += 1
        for habit_id in pending.habits:
            habit = self.get_habit(habit_id)
            if habit is None:
                continue
            try:
                self.complete_habit(habit, today)
            except HabitNotScheduledError as exc:
                log.warning("Ignoring widget toggle: %s", exc)
                continue
            applied += 1
        if applied:
            log.info("Applied %d widget toggle(s)", applied)
        return applied

    # -----------------------------------------------------------------------
    # Commit, persistence
    # -----------------------------------------------------------------------

    def recompute_statistics(self) -> Statistics:
        self.statistics = compute_statistics(self.todos, self.habits, self.focus_sessions)
        return self.statistics

    def _commit(self, event: StoreEvent) -> None:
        self.recompute_statistics()
        self.save()
        if self.bridge is not None:
            self.bridge.project(self.todos, self.habits)
        self._notify(event)

    def save(self) -> None:
        """Write every collection under its own key. Failures are only logged."""
        payloads = {
            TODOS_KEY: lambda: _todos_adapter.dump_json(self.todos, by_alias=True),
            HABITS_KEY: lambda: _habits_adapter.dump_json(self.habits, by_alias=True),
            FOCUS_SESSIONS_KEY: lambda: _sessions_adapter.dump_json(
                self.focus_sessions, by_alias=True
            ),
            STATISTICS_KEY: lambda: self.statistics.model_dump_json(by_alias=True).encode(),
            VERSION_KEY: lambda: json.dumps(DATA_VERSION).encode(),
        }
        for key, encode in payloads.items():
            try:
                self.kv.set(key, encode().decode("utf-8"))
            except (OSError, ValueError):
                log.error("Could not save %s", key, exc_info=True)

    def _decode(self, key: str, decode: Callable[[str], object]) -> Optional[object]:
        try:
            raw = self.kv.get(key)
        except (OSError, UnicodeDecodeError):
            log.warning("Could not read %s", key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return decode(raw)
        except ValueError:
            # Only this collection is dropped; the others load normally.
            log.warning("Stored %s could not be decoded; starting it empty.", key)
            return None

    def load(self) -> None:
        """Re-read every collection from disk and tell subscribers."""
        self._read_all()
        self._notify(StoreEvent(action=StoreAction.LOADED))

    def _read_all(self) -> None:
        # Each collection decodes on its own. The stored statistics record is
        # only written for other readers; it is rebuilt here for today.
        todos = self._decode(TODOS_KEY, _todos_adapter.validate_json)
        habits = self._decode(HABITS_KEY, _habits_adapter.validate_json)
        sessions = self._decode(FOCUS_SESSIONS_KEY, _sessions_adapter.validate_json)
        self.todos = todos if isinstance(todos, list) else []
        self.habits = habits if isinstance(habits, list) else []
        self.focus_sessions = sessions if isinstance(sessions, list) else []
        self._migrate()
        self.recompute_statistics()

    def _migrate(self) -> None:
        """Bring the stored schema tag up to date. No data transforms exist yet."""
        stored = self._decode(VERSION_KEY, json.loads)
        if stored == DATA_VERSION:
            return
        log.info("Migrating stored data from version %s to %s", stored, DATA_VERSION)
        try:
            self.kv.set(VERSION_KEY, json.dumps(DATA_VERSION))
        except OSError:
            log.error("Could not update %s", VERSION_KEY, exc_info=True)


def open_store(config: Optional[AppConfig] = None, reconcile: bool = True) -> EntityStore:
    """Build the store and widget bridge from the user's configuration.

    Under the merge policy, toggles made from the widget since the last run
    are applied before the store is handed out.
    """
    config = config or cfg.load_config()
    bridge = WidgetBridge(KeyValueStore(cfg.get_shared_dir(config)), policy=config.sync_policy)
    store = EntityStore(KeyValueStore(cfg.get_data_dir(config)), bridge)
    if reconcile and config.sync_policy is SyncPolicy.MERGE:
        store.reconcile_widget()
    return store
