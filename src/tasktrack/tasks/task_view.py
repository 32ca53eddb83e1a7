# src/tasktrack/tasks/task_view.py

from __future__ import annotations

"""
Reactive projection of the entity store joined with the preferences.

The view keeps the latest snapshot of each source. Any emission triggers one
synchronous recomputation of every derived value into a new ViewState; the
state is swapped in completely before any listener runs, so a listener never
observes values computed from different snapshots.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields
from datetime import tzinfo
from typing import Any

from ..core.clock import Clock
from ..core.ports import (
    KEY_CURRENT_USER_ID,
    KEY_FILTER_CATEGORY,
    KEY_FILTER_USER_ID,
    KEY_SHOW_ONLY_PENDING,
    EntityStore,
    PreferenceStore,
)
from ..core.reactive import Listener, Observable, Unsubscribe
from .task_models import (
    NO_USER_FILTER,
    EntitySnapshot,
    FilterPrefs,
    Task,
    TaskStatistics,
    User,
    UserWithTasks,
)
from .task_query import (
    compute_displayed_tasks,
    compute_statistics,
    list_categories,
    overdue_tasks,
    pending_tasks,
    sort_tasks,
    today_tasks,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ViewState:
    entity_version: int = -1
    now: int = 0
    prefs: FilterPrefs = FilterPrefs()
    users_with_tasks: tuple[UserWithTasks, ...] = ()
    all_users: tuple[User, ...] = ()
    current_user: User | None = None
    all_tasks: tuple[Task, ...] = ()
    pending_tasks: tuple[Task, ...] = ()
    displayed_tasks: tuple[Task, ...] = ()
    categories: tuple[str, ...] = ()
    overdue_tasks: tuple[Task, ...] = ()
    today_tasks: tuple[Task, ...] = ()
    task_statistics: TaskStatistics = TaskStatistics()


VIEW_FIELDS = tuple(f.name for f in fields(ViewState) if f.name not in ("entity_version", "now"))


def prefs_from_mapping(values: Mapping[str, Any]) -> FilterPrefs:
    return FilterPrefs(
        show_only_pending=bool(values.get(KEY_SHOW_ONLY_PENDING, False)),
        filter_category=str(values.get(KEY_FILTER_CATEGORY, "") or ""),
        filter_user_id=int(values.get(KEY_FILTER_USER_ID, NO_USER_FILTER)),
        current_user_id=int(values.get(KEY_CURRENT_USER_ID, 0)),
    )


def derive_view_state(
    users_with_tasks: Iterable[UserWithTasks],
    prefs: FilterPrefs,
    now: int,
    *,
    entity_version: int = -1,
    tz: tzinfo | None = None,
) -> ViewState:
    """Pure: one consistent (entities, prefs, now) snapshot -> every derived value."""
    users_with_tasks = tuple(users_with_tasks)
    all_users = tuple(u.user for u in users_with_tasks)
    all_tasks = sort_tasks(t for u in users_with_tasks for t in u.tasks)

    return ViewState(
        entity_version=entity_version,
        now=now,
        prefs=prefs,
        users_with_tasks=users_with_tasks,
        all_users=all_users,
        current_user=next((u for u in all_users if u.id == prefs.current_user_id), None),
        all_tasks=all_tasks,
        pending_tasks=pending_tasks(all_tasks),
        displayed_tasks=compute_displayed_tasks(all_tasks, prefs),
        categories=list_categories(all_tasks),
        overdue_tasks=overdue_tasks(all_tasks, now),
        today_tasks=today_tasks(all_tasks, now, tz),
        task_statistics=compute_statistics(all_tasks, now, tz),
    )


class TaskView:
    def __init__(
        self,
        entity_store: EntityStore,
        prefs_store: PreferenceStore,
        clock: Clock,
        *,
        tz: tzinfo | None = None,
    ) -> None:
        self._entity_store = entity_store
        self._prefs_store = prefs_store
        self._clock = clock
        self._tz = tz

        self._users: tuple[UserWithTasks, ...] = ()
        self._entity_version = -1
        self._prefs = FilterPrefs()
        self._state = ViewState()

        self._observables: dict[str, Observable[Any]] = {
            name: Observable(getattr(self._state, name), name) for name in VIEW_FIELDS
        }
        self._unsubscribes: list[Unsubscribe] = []

    @property
    def state(self) -> ViewState:
        return self._state

    async def start(self) -> None:
        if self._unsubscribes:
            return
        unsubscribe_prefs = self._prefs_store.subscribe_all(self._on_prefs)
        try:
            unsubscribe_entities = await self._entity_store.subscribe_users_with_tasks(self._on_snapshot)
        except BaseException:
            unsubscribe_prefs()
            raise
        self._unsubscribes.extend((unsubscribe_prefs, unsubscribe_entities))
        logger.info(
            "TaskView started users=%d tasks=%d",
            len(self._state.all_users),
            len(self._state.all_tasks),
        )

    def stop(self) -> None:
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()

    def subscribe(self, name: str, listener: Listener[Any], *, emit_current: bool = False) -> Unsubscribe:
        """Listen to one derived value (e.g. "displayed_tasks")."""
        try:
            observable = self._observables[name]
        except KeyError:
            raise KeyError(f"unknown view value: {name}") from None
        return observable.subscribe(listener, emit_current=emit_current)

    def refresh(self) -> ViewState:
        """Recompute with a fresh `now` (overdue/today move with time)."""
        self._recompute()
        return self._state

    # ---- source callbacks ----

    def _on_snapshot(self, snapshot: EntitySnapshot) -> None:
        if snapshot.version < self._entity_version:
            logger.debug(
                "Dropping stale snapshot version=%s current=%s", snapshot.version, self._entity_version
            )
            return
        self._entity_version = snapshot.version
        self._users = snapshot.users
        self._recompute()

    def _on_prefs(self, values: Mapping[str, Any]) -> None:
        self._prefs = prefs_from_mapping(values)
        self._recompute()

    def _recompute(self) -> None:
        state = derive_view_state(
            self._users,
            self._prefs,
            self._clock.now_ms(),
            entity_version=self._entity_version,
            tz=self._tz,
        )
        self._state = state

        changed = [
            observable
            for name, observable in self._observables.items()
            if observable.set(getattr(state, name))
        ]
        for observable in changed:
            observable.notify()
