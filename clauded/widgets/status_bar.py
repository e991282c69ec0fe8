"""Status bar widget that mirrors the notification stream."""

from __future__ import annotations

from typing import Callable

from textual.widgets import Static

from clauded.models import StreamState
from clauded.notifications import NotificationStreamManager, StreamStatus

_STATE_LABELS = {
    StreamState.IDLE: "Idle",
    StreamState.CONNECTING: "Connecting…",
    StreamState.OPEN: "Live",
    StreamState.ERROR: "Disconnected",
    StreamState.CLOSED: "Closed",
}


class StatusBar(Static):
    """Compact status strip rendered above Textual's footer."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-3;
        color: $text;
    }

    StatusBar.-error {
        background: $error 40%;
    }
    """

    def __init__(self, manager: NotificationStreamManager) -> None:
        super().__init__("", id="status-bar", markup=False)
        self._manager = manager
        self._unsubscribe: Callable[[], None] | None = None

    async def on_mount(self) -> None:
        self._unsubscribe = self._manager.subscribe(self._handle_status)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def _handle_status(self, status: StreamStatus) -> None:
        self.set_class(status.state is StreamState.ERROR, "-error")
        self.update(describe_status(status))


def describe_status(status: StreamStatus) -> str:
    """One-line summary of a stream status."""

    changed = status.changed_at.astimezone().strftime("%H:%M:%S")
    parts = [f"Notifications: {_STATE_LABELS[status.state]}"]
    if status.profile is not None:
        parts.insert(0, f"Session: {status.profile.name or status.profile.session_id}")
    parts.append(f"Events: {status.events_delivered}")
    parts.append(f"Since: {changed}")
    if status.last_error and status.state is StreamState.ERROR:
        parts.append(f"Error: {status.last_error.splitlines()[0][:80]}")
    return " | ".join(parts)


__all__ = ["StatusBar", "describe_status"]
