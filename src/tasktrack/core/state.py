# src/tasktrack/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..config import Settings
from .engine import TaskEngine
from .ports import EntityStore, PreferenceStore


@dataclass(slots=True)
class AppState:
    settings: Settings
    entity_store: EntityStore
    prefs_store: PreferenceStore
    engine: TaskEngine
