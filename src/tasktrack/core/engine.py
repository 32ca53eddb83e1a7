# src/tasktrack/core/engine.py

"""
Engine facade: the surface the console (or any other front end) talks to.

Reads come from the reactive TaskView; commands go straight to the stores.
Commands never touch view state themselves, so a failed write leaves every
derived value unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import tzinfo
from typing import Any

from ..tasks.task_models import NO_USER_FILTER, FilterPrefs, Task, TaskPriority, TaskStatistics, User, UserWithTasks
from ..tasks.task_view import TaskView, ViewState
from ..tasks.user_lifecycle import UserLifecycleManager
from .clock import Clock, SystemClock
from .errors import NotFound
from .ports import (
    KEY_CURRENT_USER_ID,
    KEY_FILTER_CATEGORY,
    KEY_FILTER_USER_ID,
    KEY_SHOW_ONLY_PENDING,
    EntityStore,
    PreferenceStore,
)
from .reactive import Listener, Unsubscribe

logger = logging.getLogger(__name__)


class TaskEngine:
    def __init__(
        self,
        entity_store: EntityStore,
        prefs_store: PreferenceStore,
        *,
        clock: Clock | None = None,
        tz: tzinfo | None = None,
        default_username: str = "Default user",
        new_username: str = "New user",
    ) -> None:
        self._entities = entity_store
        self._prefs = prefs_store
        self._clock = clock or SystemClock()
        self.view = TaskView(entity_store, prefs_store, self._clock, tz=tz)
        self.users = UserLifecycleManager(
            entity_store,
            prefs_store,
            default_username=default_username,
            new_username=new_username,
        )

    async def start(self) -> None:
        await self.users.bootstrap()
        await self.view.start()

    async def close(self) -> None:
        self.view.stop()
        await self._entities.close()

    def refresh(self) -> ViewState:
        return self.view.refresh()

    def subscribe(self, name: str, listener: Listener[Any], *, emit_current: bool = False) -> Unsubscribe:
        return self.view.subscribe(name, listener, emit_current=emit_current)

    # ---- reactive values ----

    @property
    def state(self) -> ViewState:
        return self.view.state

    @property
    def all_tasks(self) -> tuple[Task, ...]:
        return self.view.state.all_tasks

    @property
    def pending_tasks(self) -> tuple[Task, ...]:
        return self.view.state.pending_tasks

    @property
    def displayed_tasks(self) -> tuple[Task, ...]:
        return self.view.state.displayed_tasks

    @property
    def categories(self) -> tuple[str, ...]:
        return self.view.state.categories

    @property
    def task_statistics(self) -> TaskStatistics:
        return self.view.state.task_statistics

    @property
    def overdue_tasks(self) -> tuple[Task, ...]:
        return self.view.state.overdue_tasks

    @property
    def today_tasks(self) -> tuple[Task, ...]:
        return self.view.state.today_tasks

    @property
    def current_user(self) -> User | None:
        return self.view.state.current_user

    @property
    def all_users(self) -> tuple[User, ...]:
        return self.view.state.all_users

    @property
    def users_with_tasks(self) -> tuple[UserWithTasks, ...]:
        return self.view.state.users_with_tasks

    @property
    def prefs(self) -> FilterPrefs:
        return self.view.state.prefs

    def find_task(self, task_id: int) -> Task:
        for task in self.view.state.all_tasks:
            if task.id == task_id:
                return task
        raise NotFound(f"task {task_id} not found")

    def find_user(self, user_id: int) -> User:
        for user in self.view.state.all_users:
            if user.id == user_id:
                return user
        raise NotFound(f"user {user_id} not found")

    # ---- filter commands ----

    async def toggle_show_only_pending(self) -> None:
        current = bool(await self._prefs.get(KEY_SHOW_ONLY_PENDING))
        await self._prefs.set(KEY_SHOW_ONLY_PENDING, not current)

    async def set_filter_category(self, category: str) -> None:
        await self._prefs.set(KEY_FILTER_CATEGORY, category)

    async def set_filter_user_id(self, user_id: int | None) -> None:
        """None (or the -1 sentinel) removes the user filter."""
        await self._prefs.set(KEY_FILTER_USER_ID, NO_USER_FILTER if user_id is None else int(user_id))

    async def clear_filters(self) -> None:
        await self._prefs.set_many(
            {
                KEY_FILTER_CATEGORY: "",
                KEY_FILTER_USER_ID: NO_USER_FILTER,
                KEY_SHOW_ONLY_PENDING: False,
            }
        )
        logger.debug("Filters cleared")

    # ---- task commands ----

    async def insert_task(
        self,
        title: str,
        *,
        description: str = "",
        deadline: int | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        category: str = "",
        user_id: int | None = None,
    ) -> int | None:
        """Create a task owned by `user_id` (current user if omitted). Returns the new id."""
        if user_id is None:
            user_id = int(await self._prefs.get(KEY_CURRENT_USER_ID))
        task = Task(
            title=title.strip(),
            description=description.strip(),
            deadline=deadline,
            priority=priority,
            category=category.strip(),
            user_id=user_id,
            created_at=self._clock.now_ms(),
        )
        return await self._entities.insert_task(task)

    async def update_task(self, task: Task) -> None:
        await self._entities.update_task(task)

    async def delete_task(self, task: Task) -> None:
        await self._entities.delete_task(task)

    async def toggle_task_completion(self, task: Task) -> Task:
        completing = not task.is_completed
        updated = replace(
            task,
            is_completed=completing,
            completed_at=self._clock.now_ms() if completing else None,
        )
        await self._entities.update_task(updated)
        logger.debug("Task %s completed=%s", task.id, completing)
        return updated

    # ---- user commands ----

    async def create_user(self, username: str) -> User:
        return await self.users.create_user(username)

    async def switch_to_user(self, user_id: int) -> None:
        await self.users.switch_to_user(user_id)

    async def delete_user(self, user: User) -> None:
        await self.users.delete_user(user)
