"""Panel showing the active session and recent notifications."""

from __future__ import annotations

from typing import Callable

from textual.app import ComposeResult
from textual.containers import Container, VerticalScroll
from textual.widgets import Static

from clauded.models import NotificationType, SessionProfile
from clauded.sinks import LoggedNotification, NotificationLog


class NotificationFeed(Container):
    """Active session summary followed by newest-first notifications."""

    DEFAULT_CSS = """
    NotificationFeed {
        padding: 1 2;
        height: 1fr;
    }

    #session-summary {
        border-bottom: solid $surface-darken-1;
        padding-bottom: 1;
        margin-bottom: 1;
        color: $text-muted;
    }

    #notification-items {
        height: 1fr;
    }

    .notification-item {
        margin-bottom: 1;
    }

    .notification-item.-error {
        color: $error;
    }
    """

    def __init__(self, history: NotificationLog) -> None:
        super().__init__(id="notification-feed")
        self._history = history
        self._summary: Static | None = None
        self._items: VerticalScroll | None = None
        self._placeholder: Static | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        self._summary = Static("No session open. Select one on the left.", id="session-summary", markup=False)
        yield self._summary
        self._items = VerticalScroll(id="notification-items")
        with self._items:
            self._placeholder = Static("No notifications yet", id="notification-empty")
            yield self._placeholder

    async def on_mount(self) -> None:
        self._unsubscribe = self._history.subscribe(self._append)
        for entry in reversed(self._history.entries):
            self._append(entry)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def show_session(self, profile: SessionProfile | None) -> None:
        if self._summary is None:
            return
        if profile is None:
            self._summary.update("No session open. Select one on the left.")
            return
        self._summary.update(
            "\n".join(
                [
                    f"Session: {profile.name}",
                    f"Host: {profile.host}",
                    f"Remote id: {profile.session_id}",
                    "Press o to open the terminal in your browser, x to close.",
                ]
            )
        )

    def _append(self, entry: LoggedNotification) -> None:
        if self._items is None:
            return
        if self._placeholder is not None:
            self._placeholder.display = False
        event = entry.event
        stamp = event.received_at.astimezone().strftime("%H:%M:%S")
        widget = Static(
            f"{stamp}  [{event.type.value}] {entry.headline}",
            classes="notification-item",
            markup=False,
        )
        widget.set_class(event.type is NotificationType.ERROR, "-error")
        children = [child for child in self._items.children if child is not self._placeholder]
        while children and len(children) >= self._history.limit:
            children.pop().remove()
        if children:
            self._items.mount(widget, before=children[0])
        else:
            self._items.mount(widget)


__all__ = ["NotificationFeed"]
