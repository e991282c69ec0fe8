"""Sidebar widget listing saved session profiles."""

from __future__ import annotations

from typing import Callable

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.message import Message
from textual.widgets import Label, ListItem, ListView, Static

from clauded.models import SessionProfile
from clauded.store import SessionStore, StorageError


class SessionList(Container):
    """Displays saved sessions and forwards open/delete requests to the app."""

    DEFAULT_CSS = """
    SessionList {
        width: 34;
        min-width: 24;
        border-right: solid $surface-darken-1;
        padding: 1;
        height: 1fr;
        background: $surface-darken-2;
    }

    SessionList .sidebar-heading {
        text-style: bold;
        margin-bottom: 1;
    }

    #session-list {
        height: 1fr;
        border: round $primary 30%;
    }

    #session-list .active {
        text-style: bold;
    }

    #session-empty {
        color: $text-muted;
        padding: 1;
    }

    SessionListItem .session-detail {
        color: $text-muted;
    }
    """

    def __init__(self, store: SessionStore) -> None:
        super().__init__(id="session-sidebar")
        self._store = store
        self._list: ListView | None = None
        self._empty: Static | None = None
        self._active_id: str | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        yield Static("Sessions", classes="sidebar-heading")
        self._empty = Static("No sessions yet.\nPress a to add one.", id="session-empty")
        yield self._empty
        self._list = _SessionListView(id="session-list")
        yield self._list

    async def on_mount(self) -> None:
        self._unsubscribe = self._store.subscribe(self._render_profiles)
        try:
            profiles = self._store.list()
        except StorageError as exc:
            self.notify(str(exc), severity="error")
            profiles = ()
        self._render_profiles(profiles)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def mark_active(self, profile_id: str | None) -> None:
        """Highlight the session whose stream is open."""

        self._active_id = profile_id
        if self._list is None:
            return
        for item in self._list.query(SessionListItem):
            item.set_class(item.profile_id == profile_id, "active")

    def _render_profiles(self, profiles: tuple[SessionProfile, ...]) -> None:
        if self._list is None or self._empty is None:
            return
        self._empty.display = not profiles
        self._list.display = bool(profiles)
        self._list.clear()
        items = [SessionListItem(profile) for profile in profiles]
        for item in items:
            item.set_class(item.profile_id == self._active_id, "active")
        self._list.extend(items)

    @on(ListView.Selected)
    def _handle_selected(self, event: ListView.Selected) -> None:
        item = event.item
        if isinstance(item, SessionListItem):
            event.stop()
            opener = getattr(self.app, "open_session", None)
            if opener is not None:
                opener(item.profile_id)

    def on_session_delete_requested(self, event: "SessionDeleteRequested") -> None:
        event.stop()
        confirm = getattr(self.app, "confirm_delete", None)
        if confirm is not None:
            confirm(event.profile_id)


class _SessionListView(ListView):
    """ListView with a delete binding for the highlighted session."""

    BINDINGS = ListView.BINDINGS + [
        Binding("d", "delete_session", "Delete"),
        Binding("delete", "delete_session", "Delete", show=False),
    ]

    def action_delete_session(self) -> None:
        item = self.highlighted_child
        if isinstance(item, SessionListItem):
            self.post_message(SessionDeleteRequested(item.profile_id))


class SessionListItem(ListItem):
    """List item storing a profile id for selection callbacks."""

    def __init__(self, profile: SessionProfile) -> None:
        super().__init__(
            Label(profile.name or profile.session_id, markup=False),
            Label(f"{profile.host} / {profile.session_id}", markup=False, classes="session-detail"),
        )
        self.profile_id = profile.id


class SessionDeleteRequested(Message):
    """Posted when the user asks to delete the highlighted session."""

    def __init__(self, profile_id: str) -> None:
        super().__init__()
        self.profile_id = profile_id


__all__ = ["SessionDeleteRequested", "SessionList", "SessionListItem"]
