"""Notification stream manager wiring server pushes into a sink."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

from .links import build_stream_url
from .models import NotificationEvent, NotificationType, SessionProfile, StreamState
from .sse import ServerSentEvent
from .transport import HttpxStreamTransport, StreamTransport, StreamTransportError

LOG = logging.getLogger(__name__)

FrameHandler = Callable[[ServerSentEvent], None]
StatusListener = Callable[["StreamStatus"], None]
EventListener = Callable[[NotificationEvent], None]


@runtime_checkable
class NotificationSink(Protocol):
    """Consumer that turns normalized events into user-visible output."""

    def deliver(self, event: NotificationEvent) -> None:
        """Handle one event; called in the order frames arrived."""


@dataclass(frozen=True, slots=True)
class StreamStatus:
    """Snapshot of the stream connection published to listeners."""

    state: StreamState
    profile: SessionProfile | None
    changed_at: datetime
    last_error: str | None = None
    events_delivered: int = 0


@dataclass(slots=True, eq=False)
class StreamConnection:
    """Live subscription owned by the manager."""

    generation: int
    profile: SessionProfile
    url: str
    handlers: dict[NotificationType, FrameHandler] = field(default_factory=dict)
    task: asyncio.Task[None] | None = None

    def release(self) -> None:
        self.handlers.clear()
        if self.task is not None and not self.task.done():
            self.task.cancel()
        self.task = None


def _lookup(payload: Mapping[str, Any], key: str) -> Any:
    """Read a payload field regardless of the casing the server used."""

    for candidate in (key, key.lower()):
        if candidate in payload:
            return payload[candidate]
    lowered = key.lower()
    for name, value in payload.items():
        if isinstance(name, str) and name.lower() == lowered:
            return value
    return None


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def normalize_payload(
    kind: NotificationType | None,
    payload: Any,
    *,
    session_id: str | None = None,
) -> NotificationEvent:
    """Map a decoded frame payload onto a `NotificationEvent`.

    ``kind`` is the event name that dispatched the frame, or ``None`` for the
    default handler, in which case a known ``Type`` field in the payload is
    used before falling back to a generic message.
    """

    if not isinstance(payload, Mapping):
        return NotificationEvent(
            type=kind or NotificationType.MESSAGE,
            title="Notification",
            body="" if payload is None else _stringify(payload),
            session_id=session_id,
        )

    declared = _lookup(payload, "Type")
    if kind is None:
        try:
            kind = NotificationType(declared)
        except ValueError:
            kind = NotificationType.MESSAGE
    title = _lookup(payload, "Title") or declared or "Notification"
    message = _lookup(payload, "Message")
    raw_data = _lookup(payload, "Data")
    data = None if raw_data is None else _stringify(raw_data)
    if data:
        body = data
    elif message:
        body = _stringify(message)
    else:
        body = ""
    timestamp = _lookup(payload, "Timestamp")
    return NotificationEvent(
        type=kind,
        title=_stringify(title),
        body=body,
        data=data,
        timestamp=None if timestamp is None else str(timestamp),
        session_id=session_id,
    )


class NotificationStreamManager:
    """Owns at most one notification stream and forwards its events.

    ``open`` and ``close`` never await, so on a single event loop they cannot
    interleave; both invalidate the previous connection before returning.
    """

    def __init__(self, sink: NotificationSink, *, transport: StreamTransport | None = None) -> None:
        self._sink = sink
        self._transport = transport or HttpxStreamTransport()
        self._connection: StreamConnection | None = None
        self._generation = 0
        self._status = StreamStatus(
            state=StreamState.IDLE,
            profile=None,
            changed_at=datetime.now(tz=timezone.utc),
        )
        self._status_listeners: set[StatusListener] = set()
        self._event_listeners: set[EventListener] = set()

    @property
    def state(self) -> StreamState:
        return self._status.state

    @property
    def status(self) -> StreamStatus:
        return self._status

    @property
    def profile(self) -> SessionProfile | None:
        """Profile of the live connection, if any."""

        if self._connection is None:
            return None
        return self._connection.profile

    @property
    def last_error(self) -> str | None:
        return self._status.last_error

    def open(self, profile: SessionProfile) -> None:
        """Replace any live stream with one for ``profile``.

        Returns immediately; frames are consumed by a task on the running loop.
        """

        loop = asyncio.get_running_loop()
        self._teardown()
        self._generation += 1
        connection = StreamConnection(
            generation=self._generation,
            profile=profile,
            url=build_stream_url(profile),
        )
        connection.handlers = {
            kind: partial(self._handle_frame, connection, kind) for kind in NotificationType.known()
        }
        connection.handlers[NotificationType.MESSAGE] = partial(self._handle_frame, connection, None)
        self._connection = connection
        LOG.info(
            "Opening notification stream",
            extra={"profile_id": profile.id, "url": connection.url},
        )
        self._set_status(StreamState.CONNECTING, profile=profile, events_delivered=0)
        connection.task = loop.create_task(
            self._run(connection),
            name=f"clauded-stream-{profile.id}",
        )

    def close(self) -> None:
        """Stop the live stream; safe to call repeatedly."""

        had_connection = self._teardown()
        if had_connection or self._status.state is StreamState.ERROR:
            LOG.info("Notification stream closed")
            self._set_status(StreamState.CLOSED, profile=self._status.profile)

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Subscribe to status changes; returns an unsubscribe handle."""

        self._status_listeners.add(listener)
        listener(self._status)

        def _unsubscribe() -> None:
            self._status_listeners.discard(listener)

        return _unsubscribe

    def on_event(self, listener: EventListener) -> Callable[[], None]:
        """Observe events after the sink has received them."""

        self._event_listeners.add(listener)

        def _unsubscribe() -> None:
            self._event_listeners.discard(listener)

        return _unsubscribe

    def _teardown(self) -> bool:
        connection = self._connection
        if connection is None:
            return False
        self._connection = None
        self._generation += 1
        connection.release()
        return True

    def _is_current(self, connection: StreamConnection) -> bool:
        return self._connection is connection and connection.generation == self._generation

    async def _run(self, connection: StreamConnection) -> None:
        frames = self._transport.frames(connection.url, on_open=partial(self._mark_open, connection))
        try:
            async with aclosing(frames) as stream:
                async for frame in stream:
                    if not self._is_current(connection):
                        return
                    self._dispatch(connection, frame)
        except asyncio.CancelledError:
            raise
        except StreamTransportError as exc:
            self._fail(connection, str(exc))
            return
        except Exception as exc:
            LOG.exception("Notification stream crashed", extra={"profile_id": connection.profile.id})
            self._fail(connection, f"Unexpected stream error: {exc}")
            return
        self._fail(connection, "Notification stream closed by server")

    def _mark_open(self, connection: StreamConnection) -> None:
        if not self._is_current(connection):
            return
        LOG.info("Notification stream open", extra={"profile_id": connection.profile.id})
        self._set_status(StreamState.OPEN, profile=connection.profile)

    def _fail(self, connection: StreamConnection, reason: str) -> None:
        if not self._is_current(connection):
            return
        LOG.warning(
            "Notification stream failed: %s",
            reason,
            extra={"profile_id": connection.profile.id},
        )
        self._connection = None
        self._generation += 1
        connection.handlers.clear()
        self._set_status(StreamState.ERROR, profile=connection.profile, last_error=reason)

    def _dispatch(self, connection: StreamConnection, frame: ServerSentEvent) -> None:
        try:
            kind = NotificationType(frame.event)
        except ValueError:
            LOG.debug("Ignoring frame with unknown event name", extra={"event": frame.event})
            return
        handler = connection.handlers.get(kind)
        if handler is None:
            return
        handler(frame)

    def _handle_frame(
        self,
        connection: StreamConnection,
        kind: NotificationType | None,
        frame: ServerSentEvent,
    ) -> None:
        if not self._is_current(connection):
            return
        try:
            payload = json.loads(frame.data)
        except ValueError:
            # Keep-alives and other non-JSON frames are noise.
            LOG.debug("Discarding non-JSON frame", extra={"event": frame.event})
            return
        event = normalize_payload(kind, payload, session_id=connection.profile.session_id)
        self._deliver(event)

    def _deliver(self, event: NotificationEvent) -> None:
        try:
            self._sink.deliver(event)
        except Exception:
            LOG.exception("Notification sink failed", extra={"event_type": event.type.value})
            return
        status = self._status
        self._publish(
            StreamStatus(
                state=status.state,
                profile=status.profile,
                changed_at=status.changed_at,
                last_error=status.last_error,
                events_delivered=status.events_delivered + 1,
            )
        )
        for listener in tuple(self._event_listeners):
            listener(event)

    def _set_status(
        self,
        state: StreamState,
        *,
        profile: SessionProfile | None,
        last_error: str | None = None,
        events_delivered: int | None = None,
    ) -> None:
        self._publish(
            StreamStatus(
                state=state,
                profile=profile,
                changed_at=datetime.now(tz=timezone.utc),
                last_error=last_error,
                events_delivered=self._status.events_delivered if events_delivered is None else events_delivered,
            )
        )

    def _publish(self, status: StreamStatus) -> None:
        self._status = status
        for listener in tuple(self._status_listeners):
            listener(status)


__all__ = [
    "NotificationSink",
    "NotificationStreamManager",
    "StreamConnection",
    "StreamStatus",
    "normalize_payload",
]
