# src/tasktrack/prefs/preference_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..core.errors import StoreUnavailable
from ..core.ports import PREF_DEFAULTS, PrefValue
from ..core.reactive import Listener, ListenerSet, Unsubscribe

logger = logging.getLogger(__name__)


def _coerce(key: str, value: Any) -> PrefValue:
    """Cast a raw (JSON) value to the type of the key's default; fall back to the default."""
    default = PREF_DEFAULTS.get(key)
    if default is None:
        return value
    if value is None:
        return default
    try:
        if isinstance(default, bool):
            return value if isinstance(value, bool) else str(value).strip().lower() in {"1", "true", "yes"}
        if isinstance(default, int):
            return int(value)
        return str(value)
    except (TypeError, ValueError):
        return default


class JsonPreferenceStore:
    """
    Key/value preferences persisted as one JSON object.

    Writes go to a temp file first and are moved in place with os.replace, so
    a batch (`set_many`) is either fully on disk or not at all. Listeners are
    notified once per batch, after the in-memory values were updated.
    """

    def __init__(self, path: str | Path = "prefs.json") -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()
        self._values: dict[str, Any] = self._load()
        self._key_listeners: dict[str, ListenerSet[PrefValue]] = {}
        self._all_listeners: ListenerSet[dict[str, Any]] = ListenerSet("prefs")
        logger.info("PreferenceStore ready path=%s keys=%d", self._path, len(self._values))

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError) as e:
            raise StoreUnavailable(f"preference store: {e}") from e
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed preferences file %s", self._path)
            return {}
        return {str(k): _coerce(str(k), v) for k, v in data.items()}

    def _save_sync(self, values: dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(".tmp")
            tmp.write_text(json.dumps(values, ensure_ascii=False, indent=2, sort_keys=True), "utf-8")
            os.replace(tmp, self._path)
            with contextlib.suppress(OSError):
                os.chmod(self._path, 0o600)
        except OSError as e:
            raise StoreUnavailable(f"preference store: {e}") from e

    def _read(self, key: str) -> PrefValue:
        if key in self._values:
            return self._values[key]
        return PREF_DEFAULTS.get(key, "")

    async def get(self, key: str) -> PrefValue:
        return self._read(key)

    async def snapshot(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(PREF_DEFAULTS)
        out.update(self._values)
        return out

    async def set(self, key: str, value: PrefValue) -> None:
        await self.set_many({key: value})

    async def set_many(self, values: Mapping[str, PrefValue]) -> None:
        if not values:
            return
        async with self._lock:
            updated = dict(self._values)
            for key, value in values.items():
                updated[key] = _coerce(key, value)
            if updated == self._values:
                return
            await asyncio.to_thread(self._save_sync, updated)
            changed = [k for k in values if self._values.get(k) != updated[k]]
            self._values = updated
            logger.debug("Preferences updated keys=%s", ",".join(sorted(values)))

            current = await self.snapshot()
            self._all_listeners.emit(current)
            for key in changed:
                listeners = self._key_listeners.get(key)
                if listeners is not None:
                    listeners.emit(current[key])

    def subscribe(self, key: str, listener: Listener[PrefValue]) -> Unsubscribe:
        """Emit the current value now, then on each change of `key`."""
        listeners = self._key_listeners.setdefault(key, ListenerSet(f"prefs.{key}"))
        unsubscribe = listeners.add(listener)
        listener(self._read(key))
        return unsubscribe

    def subscribe_all(self, listener: Listener[dict[str, Any]]) -> Unsubscribe:
        """Emit the full preference dict (defaults filled in) now and after each batch."""
        unsubscribe = self._all_listeners.add(listener)
        current: dict[str, Any] = dict(PREF_DEFAULTS)
        current.update(self._values)
        listener(current)
        return unsubscribe
