# src/tasktrack/tasks/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from ..core.errors import StoreUnavailable
from ..core.reactive import Listener, ListenerSet, Unsubscribe
from .task_models import EntitySnapshot, Task, TaskPriority, User, UserWithTasks

logger = logging.getLogger(__name__)

R = TypeVar("R")


class TaskStore:
    """
    SQLite entity store for tasks and users.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Concurrency:
    - each operation opens its own SQLite connection in a worker thread
    - writes are serialized by an asyncio.Lock; after each committed write a
      fresh EntitySnapshot (with a higher version) is emitted to subscribers
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._write_lock = asyncio.Lock()
        self._version = 0
        self._snapshot_listeners: ListenerSet[EntitySnapshot] = ListenerSet("users_with_tasks")
        self._guard(self._ensure_schema)
        try:
            total = self._guard(self._count_tasks_sync)
        except StoreUnavailable:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    async def close(self) -> None:
        """No persistent connections to close; drops subscribers."""
        self._snapshot_listeners.clear()

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @staticmethod
    def _guard(fn: Callable[[], R]) -> R:
        try:
            return fn()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"task store: {e}") from e

    async def _run(self, fn: Callable[[], R]) -> R:
        return await asyncio.to_thread(self._guard, fn)

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY,
                    username TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    deadline INTEGER,
                    priority TEXT NOT NULL DEFAULT 'MEDIUM',
                    category TEXT NOT NULL DEFAULT '',
                    user_id INTEGER NOT NULL DEFAULT 0,
                    created_at INTEGER NOT NULL DEFAULT 0,
                    completed_at INTEGER
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("description", "TEXT NOT NULL DEFAULT ''")
            add_col("deadline", "INTEGER")
            add_col("priority", "TEXT NOT NULL DEFAULT 'MEDIUM'")
            add_col("category", "TEXT NOT NULL DEFAULT ''")
            add_col("user_id", "INTEGER NOT NULL DEFAULT 0")
            add_col("completed_at", "INTEGER")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks(user_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            is_completed=bool(row["is_completed"]),
            deadline=int(row["deadline"]) if row["deadline"] is not None else None,
            priority=TaskPriority.from_db(row["priority"]),
            category=str(row["category"] or ""),
            user_id=int(row["user_id"] or 0),
            created_at=int(row["created_at"] or 0),
            completed_at=int(row["completed_at"]) if row["completed_at"] is not None else None,
        )

    @staticmethod
    def _task_params(task: Task) -> tuple:
        return (
            task.title,
            task.description,
            int(task.is_completed),
            task.deadline,
            task.priority.value,
            task.category,
            int(task.user_id),
            int(task.created_at),
            task.completed_at,
        )

    # ---- sync bodies (run in worker threads) ----

    def _count_tasks_sync(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def _insert_task_sync(self, task: Task) -> int | None:
        columns = (
            "title, description, is_completed, deadline, priority, "
            "category, user_id, created_at, completed_at"
        )
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if task.id:
                cur.execute(
                    f"INSERT OR IGNORE INTO tasks(id, {columns}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (int(task.id), *self._task_params(task)),
                )
            else:
                cur.execute(
                    f"INSERT INTO tasks({columns}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    self._task_params(task),
                )
            conn.commit()
            if cur.rowcount != 1:
                return None
            rowid = cur.lastrowid
            if rowid is None:
                raise StoreUnavailable("SQLite did not return lastrowid for tasks insert")
            return int(rowid)
        finally:
            conn.close()

    def _update_task_sync(self, task: Task) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE tasks
                SET title = ?, description = ?, is_completed = ?, deadline = ?,
                    priority = ?, category = ?, user_id = ?, created_at = ?,
                    completed_at = ?
                WHERE id = ?
                """,
                (*self._task_params(task), int(task.id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def _execute_sync(self, sql: str, params: tuple) -> int:
        conn = self._get_conn()
        try:
            cur = conn.execute(sql, params)
            conn.commit()
            return cur.rowcount
        finally:
            conn.close()

    def _delete_user_with_tasks_sync(self, user_id: int) -> tuple[int, int]:
        conn = self._get_conn()
        try:
            try:
                tasks = conn.execute("DELETE FROM tasks WHERE user_id = ?", (user_id,)).rowcount
                users = conn.execute("DELETE FROM users WHERE id = ?", (user_id,)).rowcount
            except sqlite3.Error:
                conn.rollback()
                raise
            conn.commit()
            return tasks, users
        finally:
            conn.close()

    def _get_user_sync(self, user_id: int) -> User | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT id, username FROM users WHERE id = ?", (int(user_id),)).fetchone()
            return User(id=int(row["id"]), username=str(row["username"])) if row else None
        finally:
            conn.close()

    def _list_users_with_tasks_sync(self) -> list[UserWithTasks]:
        conn = self._get_conn()
        try:
            users = [
                User(id=int(r["id"]), username=str(r["username"]))
                for r in conn.execute("SELECT id, username FROM users ORDER BY id ASC")
            ]
            by_user: dict[int, list[Task]] = {u.id: [] for u in users}
            for r in conn.execute("SELECT * FROM tasks ORDER BY id ASC"):
                task = self._row_to_task(r)
                owned = by_user.get(task.user_id)
                if owned is not None:
                    owned.append(task)
            return [UserWithTasks(user=u, tasks=tuple(by_user[u.id])) for u in users]
        finally:
            conn.close()

    # ---- change propagation ----

    async def _publish(self) -> None:
        users = await self._run(self._list_users_with_tasks_sync)
        self._version += 1
        snapshot = EntitySnapshot(version=self._version, users=tuple(users))
        self._snapshot_listeners.emit(snapshot)

    async def _write(self, fn: Callable[[], R], *, changed: Callable[[R], bool]) -> R:
        async with self._write_lock:
            result = await self._run(fn)
            if changed(result):
                try:
                    await self._publish()
                except StoreUnavailable:
                    logger.exception("Snapshot publish failed after committed write")
            return result

    # ---- public API ----

    async def count_tasks(self) -> int:
        return await self._run(self._count_tasks_sync)

    async def insert_task(self, task: Task) -> int | None:
        """Insert; a task whose id already exists is ignored (returns None)."""
        task_id = await self._write(
            lambda: self._insert_task_sync(task), changed=lambda r: r is not None
        )
        if task_id is None:
            logger.debug("Task insert ignored (id exists) id=%s", task.id)
        else:
            logger.debug("Task added id=%s user=%s priority=%s", task_id, task.user_id, task.priority.value)
        return task_id

    async def update_task(self, task: Task) -> None:
        updated = await self._write(lambda: self._update_task_sync(task), changed=bool)
        if not updated:
            logger.debug("Task update skipped (missing) id=%s", task.id)

    async def delete_task(self, task: Task) -> None:
        await self._write(
            lambda: self._execute_sync("DELETE FROM tasks WHERE id = ?", (int(task.id),)),
            changed=lambda n: n > 0,
        )

    async def insert_user(self, user: User) -> None:
        await self._write(
            lambda: self._execute_sync(
                "INSERT OR REPLACE INTO users(id, username) VALUES (?, ?)",
                (int(user.id), user.username),
            ),
            changed=lambda n: True,
        )
        logger.debug("User stored id=%s", user.id)

    async def delete_user(self, user: User) -> None:
        await self._write(
            lambda: self._execute_sync("DELETE FROM users WHERE id = ?", (int(user.id),)),
            changed=lambda n: n > 0,
        )

    async def delete_user_with_tasks(self, user: User) -> int:
        """Delete the user and every task it owns in one transaction; returns the task count."""
        tasks, users = await self._write(
            lambda: self._delete_user_with_tasks_sync(int(user.id)),
            changed=lambda r: r[0] > 0 or r[1] > 0,
        )
        logger.debug("User deleted with tasks id=%s tasks=%d found=%s", user.id, tasks, bool(users))
        return tasks

    async def get_user(self, user_id: int) -> User | None:
        return await self._run(lambda: self._get_user_sync(user_id))

    async def list_users_with_tasks(self) -> list[UserWithTasks]:
        return await self._run(self._list_users_with_tasks_sync)

    async def subscribe_users_with_tasks(self, listener: Listener[EntitySnapshot]) -> Unsubscribe:
        """Deliver the current snapshot now, then one per committed change."""
        async with self._write_lock:
            users = await self._run(self._list_users_with_tasks_sync)
            unsubscribe = self._snapshot_listeners.add(listener)
            listener(EntitySnapshot(version=self._version, users=tuple(users)))
        return unsubscribe

    async def subscribe_user(self, user_id: int, listener: Listener[User | None]) -> Unsubscribe:
        def on_snapshot(snapshot: EntitySnapshot) -> None:
            listener(next((u.user for u in snapshot.users if u.user.id == user_id), None))

        return await self.subscribe_users_with_tasks(on_snapshot)
