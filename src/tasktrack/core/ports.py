# src/tasktrack/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The engine depends on Protocols instead of concrete stores. This keeps the
SQLite/JSON implementations swappable and lets tests run on in-memory fakes.
"""

from collections.abc import Mapping
from typing import Any, Protocol

from ..tasks.task_models import EntitySnapshot, Task, User, UserWithTasks
from .reactive import Listener, Unsubscribe

PrefValue = bool | int | str

KEY_SHOW_ONLY_PENDING = "show_only_pending"
KEY_FILTER_CATEGORY = "filter_category"
KEY_FILTER_USER_ID = "filter_user_id"
KEY_CURRENT_USER_ID = "current_user_id"

PREF_DEFAULTS: dict[str, PrefValue] = {
    KEY_SHOW_ONLY_PENDING: False,
    KEY_FILTER_CATEGORY: "",
    KEY_FILTER_USER_ID: -1,
    KEY_CURRENT_USER_ID: 0,
}


class EntityStore(Protocol):
    """
    Durable tasks and users.

    Every committed write is followed by one snapshot emission to the
    subscribers of `subscribe_users_with_tasks`.
    """

    async def insert_task(self, task: Task) -> int | None: ...
    async def update_task(self, task: Task) -> None: ...
    async def delete_task(self, task: Task) -> None: ...

    async def insert_user(self, user: User) -> None: ...
    async def delete_user(self, user: User) -> None: ...
    async def delete_user_with_tasks(self, user: User) -> int: ...
    async def get_user(self, user_id: int) -> User | None: ...

    async def list_users_with_tasks(self) -> list[UserWithTasks]: ...
    async def subscribe_users_with_tasks(self, listener: Listener[EntitySnapshot]) -> Unsubscribe: ...
    async def subscribe_user(self, user_id: int, listener: Listener[User | None]) -> Unsubscribe: ...

    async def close(self) -> None: ...


class PreferenceStore(Protocol):
    """Durable key/value preferences. Absent keys read as PREF_DEFAULTS."""

    async def get(self, key: str) -> PrefValue: ...
    async def set(self, key: str, value: PrefValue) -> None: ...
    async def set_many(self, values: Mapping[str, PrefValue]) -> None: ...
    async def snapshot(self) -> dict[str, Any]: ...

    def subscribe(self, key: str, listener: Listener[PrefValue]) -> Unsubscribe: ...
    def subscribe_all(self, listener: Listener[dict[str, Any]]) -> Unsubscribe: ...
