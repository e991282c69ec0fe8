"""Durable registry of saved session profiles."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Protocol, runtime_checkable

from .models import SessionProfile

LOG = logging.getLogger(__name__)

SESSIONS_KEY = "clauded_sessions"
SESSIONS_FILE = Path.home() / ".config" / "clauded" / "sessions.json"

StoreListener = Callable[[tuple[SessionProfile, ...]], None]


class StorageError(RuntimeError):
    """Raised when the persistence medium cannot be read or written."""


@runtime_checkable
class KeyValueBackend(Protocol):
    """Named slots holding JSON-compatible values."""

    def read(self, key: str) -> Any | None:
        """Return the value stored under ``key`` or ``None`` when unset."""

    def write(self, key: str, value: Any) -> None:
        """Replace the value stored under ``key``."""


class MemoryBackend:
    """In-process backend used by tests and the demo mode."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._slots: dict[str, str] = {
            key: json.dumps(value) for key, value in (initial or {}).items()
        }

    def read(self, key: str) -> Any | None:
        raw = self._slots.get(key)
        return None if raw is None else json.loads(raw)

    def write(self, key: str, value: Any) -> None:
        self._slots[key] = json.dumps(value)


class JsonFileBackend:
    """Stores every slot in one JSON object on disk.

    Writes go to a temporary file next to the target which then replaces it,
    so readers see either the previous or the new content, never a mix.
    """

    def __init__(self, path: Path | str = SESSIONS_FILE) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def read(self, key: str) -> Any | None:
        return self._load().get(key)

    def write(self, key: str, value: Any) -> None:
        slots = self._load()
        slots[key] = value
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(slots, handle, indent=2)
                    handle.write("\n")
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Failed to write {self._path}: {exc}") from exc

    def _load(self) -> dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise StorageError(f"Failed to read {self._path}: {exc}") from exc
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Corrupt session file {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"Corrupt session file {self._path}: expected an object")
        return data


class SessionStore:
    """Ordered collection of session profiles persisted through a backend."""

    def __init__(
        self,
        backend: KeyValueBackend | None = None,
        *,
        key: str = SESSIONS_KEY,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._backend = backend or JsonFileBackend()
        self._key = key
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self._last_issued = 0
        self._listeners: set[StoreListener] = set()

    def list(self) -> tuple[SessionProfile, ...]:
        """Profiles in insertion order."""

        return tuple(SessionProfile.from_record(record) for record in self._read_records())

    def get(self, profile_id: str) -> SessionProfile | None:
        for profile in self.list():
            if profile.id == profile_id:
                return profile
        return None

    def add(self, name: str, host: str, session_id: str, password: str) -> SessionProfile:
        """Create a profile, persist it and return it."""

        records = self._read_records()
        now = self._clock()
        profile = SessionProfile(
            id=self._next_id(records, now),
            name=name,
            host=host,
            session_id=session_id,
            password=password,
            created_at=now.isoformat(),
        )
        records.append(profile.to_record())
        self._write_records(records)
        LOG.info("Session profile added", extra={"profile_id": profile.id, "profile_name": name})
        self._notify()
        return profile

    def remove(self, profile_id: str) -> bool:
        """Delete a profile; unknown ids are ignored."""

        records = self._read_records()
        remaining = [record for record in records if str(record.get("id")) != profile_id]
        if len(remaining) == len(records):
            return False
        self._write_records(remaining)
        LOG.info("Session profile removed", extra={"profile_id": profile_id})
        self._notify()
        return True

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Subscribe to collection changes; returns an unsubscribe handle."""

        self._listeners.add(listener)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def _read_records(self) -> list[dict[str, Any]]:
        try:
            raw = self._backend.read(self._key)
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"Failed to read session profiles: {exc}") from exc
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise StorageError("Stored session profiles are not a list.")
        records: list[dict[str, Any]] = []
        for record in raw:
            if not isinstance(record, dict):
                LOG.warning("Skipping malformed session record", extra={"record": repr(record)[:80]})
                continue
            records.append(record)
        return records

    def _write_records(self, records: list[dict[str, Any]]) -> None:
        try:
            self._backend.write(self._key, records)
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"Failed to persist session profiles: {exc}") from exc

    def _next_id(self, records: list[dict[str, Any]], now: datetime) -> str:
        # Millisecond token, kept strictly above every id issued or stored so far.
        candidate = int(now.timestamp() * 1000)
        floor = self._last_issued
        for record in records:
            try:
                floor = max(floor, int(str(record.get("id"))))
            except ValueError:
                continue
        candidate = max(candidate, floor + 1)
        self._last_issued = candidate
        return str(candidate)

    def _notify(self) -> None:
        profiles = self.list()
        for listener in tuple(self._listeners):
            listener(profiles)


__all__ = [
    "JsonFileBackend",
    "KeyValueBackend",
    "MemoryBackend",
    "SESSIONS_FILE",
    "SESSIONS_KEY",
    "SessionStore",
    "StorageError",
]
