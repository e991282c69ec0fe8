"""Shared dataclasses used across the store, link and stream modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Mapping


class NotificationType(str, Enum):
    """Event names pushed by the notification stream."""

    TASK_COMPLETED = "task_completed"
    ERROR = "error"
    PROGRESS = "progress"
    SYSTEM_STATUS = "system_status"
    MESSAGE = "message"

    @classmethod
    def known(cls) -> tuple["NotificationType", ...]:
        """Typed event names, excluding the generic message."""

        return (cls.TASK_COMPLETED, cls.ERROR, cls.PROGRESS, cls.SYSTEM_STATUS)


class StreamState(str, Enum):
    """Lifecycle of the notification stream connection."""

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    ERROR = "error"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class SessionProfile:
    """Saved connection record for one remote terminal session."""

    id: str
    name: str
    host: str
    session_id: str
    password: str
    created_at: str = ""

    def is_complete(self) -> bool:
        return bool(self.host and self.session_id and self.password)

    def to_record(self) -> dict[str, str]:
        """Persisted representation (camelCase keys, all strings)."""

        return {
            "id": self.id,
            "name": self.name,
            "host": self.host,
            "sessionId": self.session_id,
            "password": self.password,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, object]) -> SessionProfile:
        def _text(key: str) -> str:
            value = record.get(key)
            return "" if value is None else str(value)

        return cls(
            id=_text("id"),
            name=_text("name"),
            host=_text("host"),
            session_id=_text("sessionId"),
            password=_text("password"),
            created_at=_text("createdAt"),
        )


@dataclass(frozen=True, slots=True)
class NotificationEvent:
    """Normalized notification handed to sinks."""

    type: NotificationType
    title: str
    body: str
    data: str | None = None
    timestamp: str | None = None
    session_id: str | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))


__all__ = ["NotificationEvent", "NotificationType", "SessionProfile", "StreamState"]
