# src/tasktrack/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite entity store and JSON preference store into a TaskEngine.
"""

from __future__ import annotations

import logging

from ..config import Settings, get_settings
from ..core.clock import SystemClock
from ..core.engine import TaskEngine
from ..core.state import AppState
from ..prefs.preference_store import JsonPreferenceStore
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.prefs_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings: Settings | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    The engine is built but not started; call `await state.engine.start()`
    inside the event loop. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    entity_store = TaskStore(settings.tasks_db_path)
    prefs_store = JsonPreferenceStore(settings.prefs_path)
    engine = TaskEngine(
        entity_store,
        prefs_store,
        clock=SystemClock(),
        default_username=settings.default_username,
        new_username=settings.new_username,
    )
    logger.debug("State wired db=%s prefs=%s", settings.tasks_db_path, settings.prefs_path)
    return AppState(
        settings=settings,
        entity_store=entity_store,
        prefs_store=prefs_store,
        engine=engine,
    )
