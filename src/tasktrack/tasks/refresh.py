# src/tasktrack/tasks/refresh.py

from __future__ import annotations

"""
Periodic refresh.

Overdue / due-today classification depends on the clock, not only on store
changes. This loop re-derives the view every interval so those values move
with time. To stop it, cancel the coroutine/task.
"""

import asyncio
import logging

from .task_view import TaskView

logger = logging.getLogger(__name__)


async def run_refresh_loop(view: TaskView, *, interval_seconds: float = 60.0) -> None:
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        await asyncio.sleep(sleep_s)
        before = view.state
        after = view.refresh()
        if (before.overdue_tasks, before.today_tasks) != (after.overdue_tasks, after.today_tasks):
            logger.info(
                "Time-dependent views changed overdue=%d today=%d",
                len(after.overdue_tasks),
                len(after.today_tasks),
            )
