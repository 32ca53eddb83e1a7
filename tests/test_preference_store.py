# tests/test_preference_store.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tasktrack.core.errors import StoreUnavailable
from tasktrack.core.ports import (
    KEY_CURRENT_USER_ID,
    KEY_FILTER_CATEGORY,
    KEY_FILTER_USER_ID,
    KEY_SHOW_ONLY_PENDING,
)
from tasktrack.prefs.preference_store import JsonPreferenceStore


@pytest.mark.asyncio
async def test_defaults_when_absent(tmp_path: Path) -> None:
    store = JsonPreferenceStore(tmp_path / "prefs.json")
    assert await store.get(KEY_SHOW_ONLY_PENDING) is False
    assert await store.get(KEY_FILTER_CATEGORY) == ""
    assert await store.get(KEY_FILTER_USER_ID) == -1
    assert await store.get(KEY_CURRENT_USER_ID) == 0
    assert not (tmp_path / "prefs.json").exists()


@pytest.mark.asyncio
async def test_values_survive_reload(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    store = JsonPreferenceStore(path)
    await store.set(KEY_FILTER_CATEGORY, "work")
    await store.set(KEY_CURRENT_USER_ID, 3)

    reloaded = JsonPreferenceStore(path)
    assert await reloaded.get(KEY_FILTER_CATEGORY) == "work"
    assert await reloaded.get(KEY_CURRENT_USER_ID) == 3
    assert json.loads(path.read_text("utf-8"))[KEY_CURRENT_USER_ID] == 3


@pytest.mark.asyncio
async def test_set_many_notifies_once_with_all_values(tmp_path: Path) -> None:
    store = JsonPreferenceStore(tmp_path / "prefs.json")
    await store.set_many({KEY_FILTER_CATEGORY: "home", KEY_FILTER_USER_ID: 2, KEY_SHOW_ONLY_PENDING: True})

    seen: list[dict] = []
    store.subscribe_all(seen.append)
    await store.set_many({KEY_FILTER_CATEGORY: "", KEY_FILTER_USER_ID: -1, KEY_SHOW_ONLY_PENDING: False})

    assert len(seen) == 2  # initial + one batch
    last = seen[-1]
    assert (last[KEY_FILTER_CATEGORY], last[KEY_FILTER_USER_ID], last[KEY_SHOW_ONLY_PENDING]) == ("", -1, False)


@pytest.mark.asyncio
async def test_key_subscription_only_fires_for_its_key(tmp_path: Path) -> None:
    store = JsonPreferenceStore(tmp_path / "prefs.json")
    values: list = []
    unsubscribe = store.subscribe(KEY_SHOW_ONLY_PENDING, values.append)

    await store.set(KEY_FILTER_CATEGORY, "x")
    await store.set(KEY_SHOW_ONLY_PENDING, True)
    await store.set(KEY_SHOW_ONLY_PENDING, True)  # unchanged: no emission
    unsubscribe()
    await store.set(KEY_SHOW_ONLY_PENDING, False)

    assert values == [False, True]


@pytest.mark.asyncio
async def test_values_are_coerced_to_key_types(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    path.write_text(json.dumps({KEY_FILTER_USER_ID: "4", KEY_SHOW_ONLY_PENDING: "true"}), "utf-8")
    store = JsonPreferenceStore(path)
    assert await store.get(KEY_FILTER_USER_ID) == 4
    assert await store.get(KEY_SHOW_ONLY_PENDING) is True


@pytest.mark.asyncio
async def test_null_values_read_as_defaults(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    path.write_text(
        json.dumps({KEY_FILTER_CATEGORY: None, KEY_FILTER_USER_ID: None, KEY_SHOW_ONLY_PENDING: None}), "utf-8"
    )
    store = JsonPreferenceStore(path)
    assert await store.get(KEY_FILTER_CATEGORY) == ""
    assert await store.get(KEY_FILTER_USER_ID) == -1
    assert await store.get(KEY_SHOW_ONLY_PENDING) is False


def test_unreadable_file_raises_store_unavailable(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    path.write_text("{not json", "utf-8")
    with pytest.raises(StoreUnavailable):
        JsonPreferenceStore(path)
