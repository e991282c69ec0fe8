"""Notification sinks shared by the TUI and the command line."""

from __future__ import annotations

import itertools
import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Iterable

from .models import NotificationEvent, NotificationType
from .notifications import NotificationSink

LOG = logging.getLogger(__name__)

LogListener = Callable[["LoggedNotification"], None]


@dataclass(frozen=True, slots=True)
class LoggedNotification:
    """History entry with the identifier used for outbound dispatch."""

    id: int
    event: NotificationEvent

    @property
    def headline(self) -> str:
        if self.event.body:
            return f"{self.event.title}: {self.event.body}"
        return self.event.title


class NotificationLog:
    """Bounded newest-first notification history."""

    def __init__(self, limit: int = 50) -> None:
        self._entries: deque[LoggedNotification] = deque(maxlen=max(limit, 1))
        self._ids = itertools.count(1)
        self._listeners: set[LogListener] = set()

    @property
    def limit(self) -> int:
        return self._entries.maxlen or 0

    @property
    def entries(self) -> tuple[LoggedNotification, ...]:
        return tuple(self._entries)

    def deliver(self, event: NotificationEvent) -> None:
        entry = LoggedNotification(id=next(self._ids), event=event)
        self._entries.appendleft(entry)
        for listener in tuple(self._listeners):
            listener(entry)

    def clear(self) -> None:
        self._entries.clear()

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        self._listeners.add(listener)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe


class FanoutSink:
    """Delivers every event to each wrapped sink in order."""

    def __init__(self, sinks: Iterable[NotificationSink]) -> None:
        self._sinks = tuple(sinks)

    def deliver(self, event: NotificationEvent) -> None:
        for sink in self._sinks:
            sink.deliver(event)


class LoggingSink:
    """Writes events to the log; errors are logged at warning level."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOG

    def deliver(self, event: NotificationEvent) -> None:
        level = logging.WARNING if event.type is NotificationType.ERROR else logging.INFO
        self._logger.log(
            level,
            "%s: %s",
            event.title,
            event.body,
            extra={"event_type": event.type.value, "session_id": event.session_id},
        )


__all__ = ["FanoutSink", "LoggedNotification", "LoggingSink", "NotificationLog"]
