# tests/test_task_view.py

from __future__ import annotations

from datetime import timezone

import pytest

from tasktrack.core.clock import FixedClock
from tasktrack.core.ports import KEY_FILTER_CATEGORY, KEY_SHOW_ONLY_PENDING
from tasktrack.prefs.preference_store import JsonPreferenceStore
from tasktrack.tasks.task_models import EntitySnapshot, FilterPrefs, Task, User, UserWithTasks
from tasktrack.tasks.task_query import compute_displayed_tasks
from tasktrack.tasks.task_view import TaskView, derive_view_state, prefs_from_mapping

from .conftest import DAY, NOW
from .fakes import FakeEntityStore


def test_derive_view_state_joins_users_and_tasks() -> None:
    users = (
        UserWithTasks(User(0, "a"), (Task(id=1, title="x", category="work"),)),
        UserWithTasks(User(1, "b"), (Task(id=2, title="y", deadline=NOW - 1, user_id=1),)),
    )
    state = derive_view_state(users, FilterPrefs(current_user_id=1), NOW, tz=timezone.utc)
    assert state.all_users == (User(0, "a"), User(1, "b"))
    assert state.current_user == User(1, "b")
    assert [t.id for t in state.all_tasks] == [2, 1]
    assert state.categories == ("work",)
    assert [t.id for t in state.overdue_tasks] == [2]
    assert state.task_statistics.total == 2


def test_current_user_missing_is_none() -> None:
    state = derive_view_state((), FilterPrefs(current_user_id=4), NOW)
    assert state.current_user is None


def test_prefs_from_mapping_defaults() -> None:
    assert prefs_from_mapping({}) == FilterPrefs()
    assert prefs_from_mapping({KEY_SHOW_ONLY_PENDING: True}).show_only_pending is True


@pytest.mark.asyncio
async def test_listeners_never_see_torn_state(
    entity_store: FakeEntityStore, prefs_store: JsonPreferenceStore, clock: FixedClock
) -> None:
    view = TaskView(entity_store, prefs_store, clock, tz=timezone.utc)
    await view.start()
    await entity_store.insert_user(User(0, "me"))

    mismatches: list[str] = []

    def check(_value) -> None:
        state = view.state
        expected = compute_displayed_tasks(state.all_tasks, state.prefs)
        if state.displayed_tasks != expected:
            mismatches.append("displayed")

    for name in ("all_tasks", "displayed_tasks", "prefs", "categories"):
        view.subscribe(name, check)

    await entity_store.insert_task(Task(title="a", category="work"))
    await prefs_store.set(KEY_FILTER_CATEGORY, "home")
    await entity_store.insert_task(Task(title="b", category="home"))
    await prefs_store.set(KEY_SHOW_ONLY_PENDING, True)

    assert mismatches == []
    assert [t.title for t in view.state.displayed_tasks] == ["b"]


@pytest.mark.asyncio
async def test_unchanged_values_do_not_notify(
    entity_store: FakeEntityStore, prefs_store: JsonPreferenceStore, clock: FixedClock
) -> None:
    view = TaskView(entity_store, prefs_store, clock)
    await view.start()
    await entity_store.insert_user(User(0, "me"))

    categories: list[tuple[str, ...]] = []
    view.subscribe("categories", categories.append)
    await entity_store.insert_task(Task(title="a", category="work"))
    await entity_store.insert_task(Task(title="b", category="work"))

    assert categories == [("work",)]


@pytest.mark.asyncio
async def test_stale_snapshot_is_dropped(
    entity_store: FakeEntityStore, prefs_store: JsonPreferenceStore, clock: FixedClock
) -> None:
    captured: list = []

    async def subscribe(listener):
        captured.append(listener)
        listener(EntitySnapshot(version=0))
        return lambda: None

    entity_store.subscribe_users_with_tasks = subscribe  # type: ignore[method-assign]
    view = TaskView(entity_store, prefs_store, clock)
    await view.start()
    [listener] = captured

    newer = EntitySnapshot(version=5, users=(UserWithTasks(User(0, "new")),))
    older = EntitySnapshot(version=3, users=(UserWithTasks(User(0, "old")),))
    listener(newer)
    listener(older)

    assert view.state.all_users == (User(0, "new"),)
    assert view.state.entity_version == 5


@pytest.mark.asyncio
async def test_refresh_moves_time_dependent_views(
    entity_store: FakeEntityStore, prefs_store: JsonPreferenceStore, clock: FixedClock
) -> None:
    view = TaskView(entity_store, prefs_store, clock, tz=timezone.utc)
    await view.start()
    await entity_store.insert_user(User(0, "me"))
    await entity_store.insert_task(Task(title="soon", deadline=NOW + 1000))
    assert view.state.overdue_tasks == ()

    clock.advance(2000)
    assert view.state.overdue_tasks == ()  # nothing recomputes until refresh
    view.refresh()
    assert [t.title for t in view.state.overdue_tasks] == ["soon"]

    clock.advance(DAY)
    view.refresh()
    assert view.state.today_tasks == ()
    assert view.state.task_statistics.overdue == 1


@pytest.mark.asyncio
async def test_stop_detaches_from_sources(
    entity_store: FakeEntityStore, prefs_store: JsonPreferenceStore, clock: FixedClock
) -> None:
    view = TaskView(entity_store, prefs_store, clock)
    await view.start()
    view.stop()
    await entity_store.insert_user(User(0, "me"))
    assert view.state.all_users == ()


def test_subscribe_unknown_name_raises(
    entity_store: FakeEntityStore, prefs_store: JsonPreferenceStore, clock: FixedClock
) -> None:
    view = TaskView(entity_store, prefs_store, clock)
    with pytest.raises(KeyError):
        view.subscribe("nope", lambda _v: None)
