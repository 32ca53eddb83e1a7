# tests/test_task_query.py

from __future__ import annotations

import random
from datetime import timezone

import pytest

from tasktrack.tasks.task_models import FilterPrefs, Task, TaskPriority
from tasktrack.tasks.task_query import (
    compute_displayed_tasks,
    compute_statistics,
    list_categories,
    overdue_tasks,
    pending_tasks,
    sort_tasks,
    tasks_by_priority,
    today_tasks,
)

from .conftest import DAY, HOUR, NOW

UTC = timezone.utc
CATEGORIES = ["", "work", "home", "Work"]


def _random_tasks(rng: random.Random, n: int) -> list[Task]:
    tasks = []
    for i in rng.sample(range(1, 10 * n + 1), n):
        completed = rng.random() < 0.4
        tasks.append(
            Task(
                id=i,
                title=f"t{i}",
                is_completed=completed,
                completed_at=NOW if completed else None,
                deadline=rng.choice([None, NOW + rng.randint(-3 * DAY, 3 * DAY)]),
                priority=rng.choice(list(TaskPriority)),
                category=rng.choice(CATEGORIES),
                user_id=rng.randint(0, 3),
            )
        )
    return tasks


def test_base_order_scenario() -> None:
    tasks = [
        Task(id=1, title="a", priority=TaskPriority.LOW),
        Task(id=2, title="b", priority=TaskPriority.URGENT, deadline=NOW + DAY),
        Task(id=3, title="c", priority=TaskPriority.URGENT, deadline=NOW + HOUR),
    ]
    assert [t.id for t in sort_tasks(tasks)] == [3, 2, 1]
    assert [t.id for t in compute_displayed_tasks(tasks, FilterPrefs())] == [3, 2, 1]


def test_no_deadline_sorts_last_then_id() -> None:
    tasks = [
        Task(id=5, title="x", priority=TaskPriority.HIGH),
        Task(id=4, title="y", priority=TaskPriority.HIGH),
        Task(id=9, title="z", priority=TaskPriority.HIGH, deadline=NOW + 10 * DAY),
    ]
    assert [t.id for t in sort_tasks(tasks)] == [9, 4, 5]


def test_sort_is_idempotent_and_does_not_mutate_input() -> None:
    rng = random.Random(7)
    tasks = _random_tasks(rng, 40)
    original = list(tasks)
    once = sort_tasks(tasks)
    assert sort_tasks(once) == once
    assert tasks == original

    for a, b in zip(once, once[1:]):
        assert a.priority.rank >= b.priority.rank
        if a.priority == b.priority:
            da = a.deadline if a.deadline is not None else float("inf")
            db = b.deadline if b.deadline is not None else float("inf")
            assert da <= db
            if da == db:
                assert a.id < b.id


@pytest.mark.parametrize("seed", range(25))
def test_displayed_tasks_is_conjunction_of_filters(seed: int) -> None:
    rng = random.Random(seed)
    tasks = _random_tasks(rng, rng.randint(0, 30))
    prefs = FilterPrefs(
        show_only_pending=rng.random() < 0.5,
        filter_category=rng.choice(CATEGORIES + ["missing"]),
        filter_user_id=rng.choice([-1, 0, 1, 2, 5]),
    )

    def matches(t: Task) -> bool:
        return (
            (not prefs.show_only_pending or not t.is_completed)
            and (not prefs.filter_category or t.category == prefs.filter_category)
            and (prefs.filter_user_id == -1 or t.user_id == prefs.filter_user_id)
        )

    displayed = compute_displayed_tasks(tasks, prefs)
    assert set(displayed) == {t for t in tasks if matches(t)}
    # Filtering keeps the base order.
    assert list(displayed) == [t for t in sort_tasks(tasks) if matches(t)]


def test_category_filter_is_case_sensitive() -> None:
    tasks = [Task(id=1, title="a", category="work"), Task(id=2, title="b", category="Work")]
    displayed = compute_displayed_tasks(tasks, FilterPrefs(filter_category="Work"))
    assert [t.id for t in displayed] == [2]


def test_unknown_user_filter_gives_empty_and_stats_unaffected() -> None:
    tasks = [Task(id=1, title="a", user_id=0), Task(id=2, title="b", user_id=1, is_completed=True, completed_at=NOW)]
    assert compute_displayed_tasks(tasks, FilterPrefs(filter_user_id=5)) == ()
    stats = compute_statistics(tasks, NOW, UTC)
    assert (stats.total, stats.completed, stats.pending) == (2, 1, 1)


def test_list_categories() -> None:
    tasks = [
        Task(id=1, title="a", category="work"),
        Task(id=2, title="b", category=""),
        Task(id=3, title="c", category="home"),
        Task(id=4, title="d", category="work"),
        Task(id=5, title="e", category="Zoo"),
    ]
    assert list_categories(tasks) == ("Zoo", "home", "work")
    assert list_categories([]) == ()


def test_time_views_and_priority_view() -> None:
    tasks = [
        Task(id=1, title="late", deadline=NOW - 1000),
        Task(id=2, title="late done", deadline=NOW - 1000, is_completed=True, completed_at=NOW),
        Task(id=3, title="tonight", deadline=NOW + 6 * HOUR, priority=TaskPriority.HIGH),
        Task(id=4, title="next week", deadline=NOW + 7 * DAY, priority=TaskPriority.HIGH),
        Task(id=5, title="open"),
    ]
    assert [t.id for t in overdue_tasks(tasks, NOW)] == [1]
    # Earlier today and later today both count as "today".
    assert [t.id for t in today_tasks(tasks, NOW, UTC)] == [1, 3]
    assert [t.id for t in pending_tasks(tasks)] == [1, 3, 4, 5]
    assert [t.id for t in tasks_by_priority(tasks, TaskPriority.HIGH)] == [3, 4]


def test_statistics_scenario() -> None:
    tasks = [
        Task(id=1, title="overdue", deadline=NOW - 1000, priority=TaskPriority.URGENT),
        Task(id=2, title="today", deadline=NOW + HOUR),
        Task(id=3, title="done", is_completed=True, completed_at=NOW, priority=TaskPriority.HIGH),
        Task(id=4, title="later", deadline=NOW + 5 * DAY, priority=TaskPriority.LOW),
    ]
    stats = compute_statistics(tasks, NOW, UTC)
    assert stats.total == 4
    assert stats.completed == 1
    assert stats.pending == 3
    assert stats.overdue == 1
    assert stats.due_today == 2  # the overdue one is still today's deadline
    assert stats.high_priority == 2
    assert stats.completion_rate == pytest.approx(0.25)


@pytest.mark.parametrize("seed", range(10))
def test_statistics_invariants(seed: int) -> None:
    rng = random.Random(seed)
    tasks = _random_tasks(rng, rng.randint(0, 20))
    stats = compute_statistics(tasks, NOW, UTC)
    assert stats.completed + stats.pending == stats.total
    if stats.total == 0:
        assert stats.completion_rate == 0
    else:
        assert 0.0 <= stats.completion_rate <= 1.0


def test_statistics_empty() -> None:
    stats = compute_statistics([], NOW)
    assert stats.total == 0
    assert stats.completion_rate == 0.0
