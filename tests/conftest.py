# tests/conftest.py

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from tasktrack.config import Settings
from tasktrack.core.clock import FixedClock
from tasktrack.core.engine import TaskEngine
from tasktrack.prefs.preference_store import JsonPreferenceStore

from .fakes import FakeEntityStore

# 2026-10-19 12:00:00 UTC
NOW = int(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc).timestamp() * 1000)
HOUR = 60 * 60 * 1000
DAY = 24 * HOUR


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Real Settings pointed at a per-test tmp dir (no environment reads)."""
    return Settings(
        app_name="tasktrack-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        prefs_path=tmp_path / "prefs.json",
        default_username="Default user",
        new_username="New user",
        refresh_interval_seconds=0.01,
    )


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture()
def entity_store() -> FakeEntityStore:
    return FakeEntityStore()


@pytest.fixture()
def prefs_store(settings: Settings) -> JsonPreferenceStore:
    return JsonPreferenceStore(settings.prefs_path)


@pytest_asyncio.fixture()
async def engine(
    entity_store: FakeEntityStore,
    prefs_store: JsonPreferenceStore,
    clock: FixedClock,
    settings: Settings,
) -> TaskEngine:
    """
    Started engine on the in-memory entity store and a real JSON prefs file.

    Calendar-day classification runs in UTC so results do not depend on the
    machine's zone.
    """
    eng = TaskEngine(
        entity_store,
        prefs_store,
        clock=clock,
        tz=timezone.utc,
        default_username=settings.default_username,
        new_username=settings.new_username,
    )
    await eng.start()
    return eng
