"""Pydantic models — single source of truth for all data types."""

from __future__ import annotations

import enum
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_serializer,
    model_validator,
)
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    """Base for everything persisted: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class TodoPriority(str, enum.Enum):
    """Todo urgency, ordered low < medium < high < urgent."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return list(TodoPriority).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, TodoPriority):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, TodoPriority):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, TodoPriority):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, TodoPriority):
            return NotImplemented
        return self.rank >= other.rank


class TodoCategory(str, enum.Enum):
    PERSONAL = "personal"
    WORK = "work"
    STUDY = "study"
    HEALTH = "health"
    HABIT = "habit"


class HabitCategory(str, enum.Enum):
    HEALTH = "health"
    STUDY = "study"
    PERSONAL = "personal"
    WORK = "work"
    EXERCISE = "exercise"


class HabitFrequency(str, enum.Enum):
    """How often a habit is expected to be done."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def requires_selection(self) -> bool:
        """Weekly habits need weekdays, monthly habits need a day of month."""
        return self is not HabitFrequency.DAILY


class SyncPolicy(str, enum.Enum):
    """How a projection write treats toggles made from the widget."""

    MERGE = "merge"  # newer modified_at wins per record
    OVERWRITE = "overwrite"  # primary always wins (last writer wins)


# ---------------------------------------------------------------------------
# Color
# ---------------------------------------------------------------------------

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


class Color(BaseModel):
    """An RGBA color with 8-bit channels, written as hex on the wire."""

    model_config = ConfigDict(frozen=True)

    r: int = Field(ge=0, le=255)
    g: int = Field(ge=0, le=255)
    b: int = Field(ge=0, le=255)
    a: int = Field(default=255, ge=0, le=255)

    @classmethod
    def from_hex(cls, value: str) -> Color:
        """Parse ``RGB``, ``RRGGBB`` or ``AARRGGBB`` (leading ``#`` optional)."""
        match = _HEX_RE.match(value.strip())
        if match is None:
            raise ValueError(f"not a hex color: {value!r}")
        digits = match.group(1)
        if len(digits) == 3:
            r, g, b = (int(ch, 16) * 17 for ch in digits)
            return cls(r=r, g=g, b=b)
        n = int(digits, 16)
        if len(digits) == 6:
            return cls(r=n >> 16, g=n >> 8 & 0xFF, b=n & 0xFF)
        return cls(a=n >> 24, r=n >> 16 & 0xFF, g=n >> 8 & 0xFF, b=n & 0xFF)

    def to_hex(self) -> str:
        if self.a == 255:
            return f"{self.r:02X}{self.g:02X}{self.b:02X}"
        return f"{self.a:02X}{self.r:02X}{self.g:02X}{self.b:02X}"

    @model_validator(mode="before")
    @classmethod
    def _accept_hex(cls, data: Any) -> Any:
        if isinstance(data, str):
            parsed = cls.from_hex(data)
            return {"r": parsed.r, "g": parsed.g, "b": parsed.b, "a": parsed.a}
        return data

    @model_serializer
    def _as_hex(self) -> str:
        return self.to_hex()

    def __str__(self) -> str:
        return f"#{self.to_hex()}"


DEFAULT_HABIT_COLOR = "F68566"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


def _as_day(value: Any) -> Any:
    """Truncate datetimes (or ISO datetime strings) to a calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return datetime.fromisoformat(value).date()
    return value


class Todo(_Model):
    """A one-off task with a target day."""

    id: UUID = Field(default_factory=uuid4, frozen=True)
    title: str = Field(min_length=1, max_length=500)
    description: str = ""
    is_completed: bool = False
    priority: TodoPriority = TodoPriority.MEDIUM
    category: TodoCategory = TodoCategory.PERSONAL
    target_date: datetime = Field(default_factory=datetime.now)
    created_date: datetime = Field(default_factory=datetime.now)
    completed_date: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _completion_matches_flag(self) -> Todo:
        if self.is_completed != (self.completed_date is not None):
            raise ValueError("completedDate must be set exactly when isCompleted is true")
        return self

    @property
    def last_modified(self) -> datetime:
        return self.updated_at or self.created_date


class Habit(_Model):
    """A recurring habit and the days it was done."""

    id: UUID = Field(default_factory=uuid4, frozen=True)
    title: str = Field(min_length=1, max_length=500)
    description: str = ""
    category: HabitCategory = HabitCategory.HEALTH
    frequency: HabitFrequency = HabitFrequency.DAILY
    color: Color = Field(default_factory=lambda: Color.from_hex(DEFAULT_HABIT_COLOR))
    is_active: bool = True
    created_date: datetime = Field(default_factory=datetime.now)
    completed_dates: set[date] = Field(default_factory=set)
    selected_weekdays: set[int] = Field(default_factory=set)  # 0=Sunday .. 6=Saturday
    selected_day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    updated_at: Optional[datetime] = None

    @field_validator("completed_dates", mode="before")
    @classmethod
    def _truncate_to_days(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set, frozenset)):
            return {_as_day(v) for v in value}
        return value

    @field_validator("selected_weekdays")
    @classmethod
    def _weekday_range(cls, value: set[int]) -> set[int]:
        bad = [d for d in value if not 0 <= d <= 6]
        if bad:
            raise ValueError(f"weekday indexes must be 0..6, got {sorted(bad)}")
        return value

    @model_validator(mode="after")
    def _monthly_needs_day(self) -> Habit:
        if self.frequency is HabitFrequency.MONTHLY and self.selected_day_of_month is None:
            raise ValueError("monthly habits need selectedDayOfMonth")
        return self

    @field_serializer("completed_dates", "selected_weekdays")
    def _sorted(self, value: set[Any]) -> list[Any]:
        return sorted(value)

    @property
    def last_modified(self) -> datetime:
        return self.updated_at or self.created_date

    def is_completed_on(self, day: date) -> bool:
        return day in self.completed_dates


class FocusSession(_Model):
    """A timed focus block; duration is the planned length in seconds."""

    id: UUID = Field(default_factory=uuid4, frozen=True)
    title: str = Field(min_length=1, max_length=500)
    duration: float = Field(default=1500.0, gt=0)
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    is_completed: bool = False
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _completed_has_end(self) -> FocusSession:
        if self.is_completed and self.end_time is None:
            raise ValueError("completed sessions need an endTime")
        return self

    @property
    def elapsed(self) -> timedelta:
        """Actual time spent; zero until the session is completed."""
        if not self.is_completed or self.end_time is None:
            return timedelta(0)
        return self.end_time - self.start_time


class Statistics(_Model):
    """Aggregates derived from the store. Never edited directly."""

    total_todos: int = Field(default=0, ge=0)
    completed_todos: int = Field(default=0, ge=0)
    total_habits: int = Field(default=0, ge=0)
    completed_habits: int = Field(default=0, ge=0)
    total_focus_sessions: int = Field(default=0, ge=0)
    total_focus_time: float = Field(default=0.0, ge=0)  # seconds
    streak_days: int = Field(default=0, ge=0)
    last_updated: datetime = Field(default_factory=datetime.now)

    @property
    def completion_rate(self) -> float:
        if self.total_todos == 0:
            return 0.0
        return self.completed_todos / self.total_todos

    @property
    def habit_completion_rate(self) -> float:
        if self.total_habits == 0:
            return 0.0
        return self.completed_habits / self.total_habits

    @property
    def average_focus_time(self) -> float:
        if self.total_focus_sessions == 0:
            return 0.0
        return self.total_focus_time / self.total_focus_sessions


# ---------------------------------------------------------------------------
# Widget projection
# ---------------------------------------------------------------------------


class SharedHabit(_Model):
    """Today's view of one active habit, as the widget sees it."""

    id: str
    title: str
    is_completed: bool = False
    date: datetime
    modified_at: datetime = Field(default_factory=datetime.now)


class SharedTodo(_Model):
    """One todo as the widget sees it."""

    id: str
    title: str
    is_completed: bool = False
    date: datetime
    modified_at: datetime = Field(default_factory=datetime.now)


class SharedData(_Model):
    """Root of the blob shared with the widget process."""

    habits: list[SharedHabit] = Field(default_factory=list)
    todos: list[SharedTodo] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=datetime.now)


# ---------------------------------------------------------------------------
# Backup & configuration
# ---------------------------------------------------------------------------


class ExportData(_Model):
    """Full snapshot written by export and read back by import."""

    todos: list[Todo] = Field(default_factory=list)
    habits: list[Habit] = Field(default_factory=list)
    focus_sessions: list[FocusSession] = Field(default_factory=list)
    statistics: Statistics = Field(default_factory=Statistics)
    version: str
    export_date: datetime = Field(default_factory=datetime.now)


class AppConfig(BaseModel):
    """Application configuration (persisted to ~/.config/everytasks/config.json)."""

    data_dir: Optional[str] = None  # None = ~/.local/share/everytasks/store
    shared_dir: Optional[str] = None  # None = ~/.local/share/everytasks/group.everytasks
    sync_policy: SyncPolicy = SyncPolicy.MERGE
