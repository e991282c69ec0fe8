"""Tests for the session profile store and its backends."""

from __future__ import annotations

import json
import random
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from clauded.models import SessionProfile
from clauded.store import JsonFileBackend, MemoryBackend, SESSIONS_KEY, SessionStore, StorageError

_FROZEN = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _store(backend: Any | None = None) -> SessionStore:
    return SessionStore(backend or MemoryBackend(), clock=lambda: _FROZEN)


class _CountingBackend(MemoryBackend):
    def __init__(self) -> None:
        super().__init__()
        self.writes = 0

    def write(self, key: str, value: Any) -> None:
        self.writes += 1
        super().write(key, value)


class _BrokenBackend:
    def read(self, key: str) -> Any | None:
        return None

    def write(self, key: str, value: Any) -> None:
        raise OSError("disk full")


def test_empty_store_lists_nothing() -> None:
    assert _store().list() == ()


def test_add_returns_profile_and_persists_record() -> None:
    backend = MemoryBackend()
    store = _store(backend)

    profile = store.add("Box", "example.com", "abc", "pw")

    assert profile.name == "Box"
    assert profile.session_id == "abc"
    assert profile.created_at == _FROZEN.isoformat()
    assert store.list() == (profile,)
    record = backend.read(SESSIONS_KEY)[0]
    assert record["sessionId"] == "abc"
    assert record["id"] == profile.id


def test_ids_are_unique_even_with_a_frozen_clock() -> None:
    store = _store()

    ids = [store.add(f"s{i}", "h", "sid", "pw").id for i in range(5)]

    assert len(set(ids)) == 5
    assert [int(value) for value in ids] == sorted(int(value) for value in ids)


def test_removed_ids_are_not_reissued() -> None:
    store = _store()
    first = store.add("one", "h", "a", "pw")
    second = store.add("two", "h", "b", "pw")

    store.remove(second.id)
    third = store.add("three", "h", "c", "pw")

    assert third.id not in {first.id, second.id}


def test_new_ids_exceed_ids_already_on_disk() -> None:
    backend = MemoryBackend({SESSIONS_KEY: [{"id": "9999999999999", "name": "old"}]})
    store = _store(backend)

    profile = store.add("new", "h", "a", "pw")

    assert int(profile.id) > 9999999999999


def test_list_preserves_insertion_order() -> None:
    store = _store()
    names = ["alpha", "beta", "gamma"]
    for name in names:
        store.add(name, "h", name, "pw")

    assert [profile.name for profile in store.list()] == names


def test_remove_unknown_id_is_a_noop_without_write() -> None:
    backend = _CountingBackend()
    store = _store(backend)
    store.add("one", "h", "a", "pw")
    writes = backend.writes

    assert store.remove("does-not-exist") is False
    assert backend.writes == writes
    assert len(store.list()) == 1


def test_remove_twice_is_idempotent() -> None:
    store = _store()
    profile = store.add("one", "h", "a", "pw")

    assert store.remove(profile.id) is True
    assert store.remove(profile.id) is False
    assert store.list() == ()


def test_random_operations_match_a_plain_list() -> None:
    rng = random.Random(7)
    store = _store()
    expected: list[SessionProfile] = []

    for step in range(60):
        if expected and rng.random() < 0.4:
            victim = rng.choice(expected)
            expected.remove(victim)
            assert store.remove(victim.id) is True
        else:
            expected.append(store.add(f"s{step}", "h", f"sid{step}", "pw"))
        assert list(store.list()) == expected


def test_listeners_receive_snapshots_until_unsubscribed() -> None:
    store = _store()
    seen: list[tuple[str, ...]] = []
    unsubscribe = store.subscribe(lambda profiles: seen.append(tuple(p.name for p in profiles)))

    profile = store.add("one", "h", "a", "pw")
    store.remove(profile.id)
    unsubscribe()
    store.add("two", "h", "b", "pw")

    assert seen == [("one",), ()]


def test_malformed_records_are_skipped() -> None:
    backend = MemoryBackend({SESSIONS_KEY: ["junk", {"id": "1", "name": "ok", "sessionId": "a"}]})

    profiles = _store(backend).list()

    assert [profile.name for profile in profiles] == ["ok"]


def test_non_list_slot_raises_storage_error() -> None:
    backend = MemoryBackend({SESSIONS_KEY: {"id": "1"}})

    with pytest.raises(StorageError):
        _store(backend).list()


def test_backend_write_failure_surfaces_as_storage_error() -> None:
    store = _store(_BrokenBackend())

    with pytest.raises(StorageError):
        store.add("one", "h", "a", "pw")


def test_json_file_backend_round_trips_between_instances(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "sessions.json"
    profile = _store(JsonFileBackend(path)).add("Box", "https://example.com", "abc", "pw")

    reloaded = _store(JsonFileBackend(path)).list()

    assert reloaded == (profile,)
    assert json.loads(path.read_text())[SESSIONS_KEY][0]["name"] == "Box"


def test_json_file_backend_leaves_no_temp_files(tmp_path: Path) -> None:
    path = tmp_path / "sessions.json"
    store = _store(JsonFileBackend(path))
    store.add("one", "h", "a", "pw")
    store.add("two", "h", "b", "pw")

    assert sorted(p.name for p in tmp_path.iterdir()) == ["sessions.json"]


def test_json_file_backend_keeps_other_slots(tmp_path: Path) -> None:
    path = tmp_path / "sessions.json"
    path.write_text(json.dumps({"other": [1, 2]}))

    _store(JsonFileBackend(path)).add("one", "h", "a", "pw")

    assert json.loads(path.read_text())["other"] == [1, 2]


def test_json_file_backend_treats_empty_file_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "sessions.json"
    path.write_text("")

    assert _store(JsonFileBackend(path)).list() == ()


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_json_file_backend_rejects_corrupt_files(tmp_path: Path, content: str) -> None:
    path = tmp_path / "sessions.json"
    path.write_text(content)

    with pytest.raises(StorageError):
        _store(JsonFileBackend(path)).list()


def test_json_file_backend_reports_unwritable_location(tmp_path: Path) -> None:
    blocker = tmp_path / "file.txt"
    blocker.write_text("x")
    store = _store(JsonFileBackend(blocker / "sessions.json"))

    with pytest.raises(StorageError):
        store.add("one", "h", "a", "pw")
