# src/tasktrack/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

NO_USER_FILTER = -1
DEFAULT_USER_ID = 0


class TaskPriority(StrEnum):
    """Task priority, ordered LOW < MEDIUM < HIGH < URGENT (see `rank`)."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        return _PRIORITY_ORDER.index(self)

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw.upper())
        except ValueError:
            return cls.MEDIUM


_PRIORITY_ORDER = (TaskPriority.LOW, TaskPriority.MEDIUM, TaskPriority.HIGH, TaskPriority.URGENT)


@dataclass(frozen=True, slots=True)
class Task:
    """
    A single task. Timestamps are milliseconds since epoch.

    id == 0 means "not stored yet"; the entity store assigns the real id.
    completed_at is set iff is_completed (kept by the completion toggle).
    """

    title: str
    id: int = 0
    description: str = ""
    is_completed: bool = False
    deadline: int | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    category: str = ""
    user_id: int = DEFAULT_USER_ID
    created_at: int = 0
    completed_at: int | None = None


@dataclass(frozen=True, slots=True)
class User:
    id: int
    username: str


@dataclass(frozen=True, slots=True)
class UserWithTasks:
    user: User
    tasks: tuple[Task, ...] = ()


@dataclass(frozen=True, slots=True)
class FilterPrefs:
    """
    Persisted filter state plus the current user pointer.

    filter_user_id uses NO_USER_FILTER (-1) as "no user filter"; prefer
    `has_user_filter` over comparing against the sentinel.
    """

    show_only_pending: bool = False
    filter_category: str = ""
    filter_user_id: int = NO_USER_FILTER
    current_user_id: int = DEFAULT_USER_ID

    @property
    def has_user_filter(self) -> bool:
        return self.filter_user_id != NO_USER_FILTER

    @property
    def is_filtered(self) -> bool:
        return self.show_only_pending or bool(self.filter_category) or self.has_user_filter


@dataclass(frozen=True, slots=True)
class TaskStatistics:
    total: int = 0
    completed: int = 0
    pending: int = 0
    overdue: int = 0
    due_today: int = 0
    high_priority: int = 0

    @property
    def completion_rate(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.completed / self.total


@dataclass(frozen=True, slots=True)
class EntitySnapshot:
    """One emission of the entity store: all users (id asc) with their tasks."""

    version: int
    users: tuple[UserWithTasks, ...] = field(default_factory=tuple)
