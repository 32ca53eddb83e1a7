# src/tasktrack/tasks/task_query.py

"""
Pure derivations over task collections.

Every function returns a new tuple and never mutates its input. Filters are
stable: they keep the order of the list they are given.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import tzinfo

from .task_models import FilterPrefs, Task, TaskPriority, TaskStatistics
from .time_classifier import is_due_today, is_overdue


def _deadline_key(task: Task) -> float:
    return task.deadline if task.deadline is not None else math.inf


def sort_key(task: Task) -> tuple[int, float, int]:
    """Priority desc, deadline asc (no deadline last), id asc."""
    return (-task.priority.rank, _deadline_key(task), task.id)


def sort_tasks(tasks: Iterable[Task]) -> tuple[Task, ...]:
    return tuple(sorted(tasks, key=sort_key))


def pending_tasks(tasks: Iterable[Task]) -> tuple[Task, ...]:
    return tuple(t for t in tasks if not t.is_completed)


def overdue_tasks(tasks: Iterable[Task], now: int) -> tuple[Task, ...]:
    return tuple(
        t
        for t in tasks
        if t.deadline is not None and not t.is_completed and is_overdue(t.deadline, now)
    )


def today_tasks(tasks: Iterable[Task], now: int, tz: tzinfo | None = None) -> tuple[Task, ...]:
    return tuple(
        t
        for t in tasks
        if t.deadline is not None and not t.is_completed and is_due_today(t.deadline, now, tz)
    )


def tasks_by_priority(tasks: Iterable[Task], priority: TaskPriority) -> tuple[Task, ...]:
    matching = [t for t in tasks if t.priority == priority]
    matching.sort(key=lambda t: (_deadline_key(t), t.id))
    return tuple(matching)


def compute_displayed_tasks(tasks: Iterable[Task], prefs: FilterPrefs) -> tuple[Task, ...]:
    """
    Base ordering first, then each active filter in turn (AND).

    Unknown categories or user ids simply produce an empty result.
    """
    result = sort_tasks(tasks)

    if prefs.show_only_pending:
        result = pending_tasks(result)

    if prefs.filter_category:
        result = tuple(t for t in result if t.category == prefs.filter_category)

    if prefs.has_user_filter:
        result = tuple(t for t in result if t.user_id == prefs.filter_user_id)

    return result


def list_categories(tasks: Iterable[Task]) -> tuple[str, ...]:
    return tuple(sorted({t.category for t in tasks if t.category}))


def compute_statistics(
    tasks: Iterable[Task], now: int, tz: tzinfo | None = None
) -> TaskStatistics:
    """
    Counts over the full task set (never the displayed subset).

    due_today uses the calendar-day window, not `days_until`.
    """
    items = list(tasks)
    total = len(items)
    completed = sum(1 for t in items if t.is_completed)
    return TaskStatistics(
        total=total,
        completed=completed,
        pending=total - completed,
        overdue=len(overdue_tasks(items, now)),
        due_today=len(today_tasks(items, now, tz)),
        high_priority=sum(
            1 for t in items if t.priority in (TaskPriority.HIGH, TaskPriority.URGENT)
        ),
    )
