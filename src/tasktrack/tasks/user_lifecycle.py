# src/tasktrack/tasks/user_lifecycle.py

from __future__ import annotations

import asyncio
import logging

from ..core.errors import InvalidState
from ..core.ports import KEY_CURRENT_USER_ID, EntityStore, PreferenceStore
from .task_models import DEFAULT_USER_ID, User

logger = logging.getLogger(__name__)


class UserLifecycleManager:
    """
    Creates, switches and deletes users while keeping two invariants:
    - the user set is never empty
    - the current-user pointer only moves after the store write succeeded

    Reads always go to the store; nothing is cached here. Transitions are
    serialized so two concurrent creates cannot pick the same id.
    """

    def __init__(
        self,
        entity_store: EntityStore,
        prefs_store: PreferenceStore,
        *,
        default_username: str = "Default user",
        new_username: str = "New user",
    ) -> None:
        self._entities = entity_store
        self._prefs = prefs_store
        self._default_username = default_username
        self._new_username = new_username
        self._lock = asyncio.Lock()

    async def _user_ids(self) -> list[int]:
        return [u.user.id for u in await self._entities.list_users_with_tasks()]

    async def bootstrap(self) -> bool:
        """Create the default user (id 0) if no user exists. Returns True if it did."""
        async with self._lock:
            if await self._user_ids():
                return False
            await self._entities.insert_user(User(id=DEFAULT_USER_ID, username=self._default_username))
            await self._prefs.set(KEY_CURRENT_USER_ID, DEFAULT_USER_ID)
            logger.info("Bootstrapped default user id=%s", DEFAULT_USER_ID)
            return True

    async def create_user(self, username: str) -> User:
        async with self._lock:
            return await self._create_locked(username)

    async def _create_locked(self, username: str) -> User:
        ids = await self._user_ids()
        user = User(id=max(ids) + 1 if ids else 1, username=username)
        await self._entities.insert_user(user)
        await self._prefs.set(KEY_CURRENT_USER_ID, user.id)
        logger.info("User created id=%s", user.id)
        return user

    async def switch_to_user(self, user_id: int) -> None:
        await self._prefs.set(KEY_CURRENT_USER_ID, int(user_id))
        logger.info("Switched current user id=%s", user_id)

    async def delete_user(self, user: User) -> None:
        """
        Delete the user together with its tasks in one store transaction. If it
        was current, move the pointer to the first remaining user or create a
        fresh one.
        """
        async with self._lock:
            removed = await self._entities.delete_user_with_tasks(user)
            logger.info("User deleted id=%s tasks=%d", user.id, removed)

            current_id = int(await self._prefs.get(KEY_CURRENT_USER_ID))
            remaining = await self._user_ids()
            if not remaining:
                await self._create_locked(self._new_username)
            elif current_id == user.id:
                await self._prefs.set(KEY_CURRENT_USER_ID, remaining[0])
                logger.info("Current user reassigned id=%s", remaining[0])

            if not await self._user_ids():
                raise InvalidState("user set is empty after delete")
