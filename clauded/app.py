"""Textual application entry point for clauded."""

from __future__ import annotations

import logging
import webbrowser
from typing import Callable

from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.widgets import Footer, Header

from .config import AppConfig, load_config, save_config
from .links import MalformedProfileError, build_terminal_url, require_complete
from .models import NotificationEvent, NotificationType, SessionProfile
from .notifications import NotificationStreamManager
from .providers import DeleteSessionProvider, OpenSessionProvider
from .reconnect import ReconnectSupervisor
from .screens import AddSessionScreen, ConfirmDeleteScreen, SessionDraft
from .sinks import NotificationLog
from .store import JsonFileBackend, SessionStore, StorageError
from .transport import StreamTransport
from .widgets import NotificationFeed, SessionList, StatusBar

LOG = logging.getLogger(__name__)

BrowserOpener = Callable[[str], object]


def _load_app_config() -> AppConfig:
    """Load configuration with a small wrapper for future overrides."""

    return load_config()


class ClaudedApp(App[None]):
    """Session list, notification feed and stream status in one screen.

    The app is also the notification sink: each event lands in the history
    panel and pops a toast.
    """

    TITLE = "clauded"
    COMMANDS = App.COMMANDS | {OpenSessionProvider, DeleteSessionProvider}
    CSS = """
    Screen {
        layout: vertical;
    }
    #content {
        layout: horizontal;
        height: 1fr;
    }
    """

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
        ("a", "add_session", "Add session"),
        ("o", "open_terminal", "Open terminal"),
        ("x", "close_session", "Close session"),
        ("ctrl+p", "command_palette", "Command Palette"),
    ]

    def __init__(
        self,
        *,
        config: AppConfig | None = None,
        store: SessionStore | None = None,
        transport: StreamTransport | None = None,
        browser: BrowserOpener | None = None,
        persist_config: bool = True,
    ) -> None:
        super().__init__()
        self._config = config or _load_app_config()
        self._persist_config = persist_config
        self._store = store or SessionStore(JsonFileBackend(self._config.sessions_path()))
        self._history = NotificationLog(limit=self._config.history_limit)
        self._manager = NotificationStreamManager(self, transport=transport)
        self._supervisor: ReconnectSupervisor | None = None
        if self._config.reconnect.enabled:
            self._supervisor = ReconnectSupervisor(self._manager, self._config.reconnect.policy())
        self._browser: BrowserOpener = browser or webbrowser.open
        self._current: SessionProfile | None = None
        self._terminal_url: str | None = None
        self._pending_notifications: list[tuple[str, str, str]] = []
        self._session_list: SessionList | None = None
        self._feed: NotificationFeed | None = None

    def compose(self) -> ComposeResult:
        """Compose the root layout."""

        yield Header(show_clock=True)
        self._session_list = SessionList(self._store)
        self._feed = NotificationFeed(self._history)
        yield Horizontal(self._session_list, self._feed, id="content")
        yield StatusBar(self._manager)
        yield Footer()

    async def on_mount(self) -> None:
        if self._supervisor is not None:
            self._supervisor.start()
        self._flush_pending_notifications()
        self._resume_last_session()

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def stream_manager(self) -> NotificationStreamManager:
        """Expose the stream manager for tests."""

        return self._manager

    @property
    def history(self) -> NotificationLog:
        return self._history

    @property
    def current_session(self) -> SessionProfile | None:
        return self._current

    @property
    def terminal_url(self) -> str | None:
        """Authenticated URL of the open session (contains the password)."""

        return self._terminal_url

    def deliver(self, event: NotificationEvent) -> None:
        """Notification sink entry point."""

        self._history.deliver(event)
        severity = "error" if event.type is NotificationType.ERROR else "information"
        self._safe_notify(event.body or event.title, title=event.title, severity=severity)

    def add_session(self, name: str, host: str, session_id: str, password: str) -> SessionProfile | None:
        try:
            profile = self._store.add(name, host, session_id, password)
        except StorageError as exc:
            self._safe_notify(str(exc), title="Could not save session", severity="error")
            return None
        self._safe_notify(f"Saved session: {profile.name}")
        return profile

    def open_session(self, profile_id: str, *, launch_browser: bool = True) -> bool:
        """Subscribe to a session's notifications and open its terminal."""

        try:
            profile = self._store.get(profile_id)
        except StorageError as exc:
            self._safe_notify(str(exc), title="Could not load sessions", severity="error")
            return False
        if profile is None:
            self._safe_notify(f"Session '{profile_id}' not found.", severity="error")
            return False
        try:
            require_complete(profile)
        except MalformedProfileError as exc:
            self._safe_notify(str(exc), severity="error")
            return False
        self._current = profile
        self._terminal_url = build_terminal_url(profile)
        self._manager.open(profile)
        self._remember_last_session(profile.id)
        if self._session_list is not None:
            self._session_list.mark_active(profile.id)
        if self._feed is not None:
            self._feed.show_session(profile)
        if launch_browser:
            self._launch_terminal()
        return True

    def close_session(self) -> None:
        """Stop notifications for the open session and forget it."""

        self._manager.close()
        if self._current is None:
            return
        self._current = None
        self._terminal_url = None
        self._remember_last_session(None)
        if self._session_list is not None:
            self._session_list.mark_active(None)
        if self._feed is not None:
            self._feed.show_session(None)

    def delete_session(self, profile_id: str) -> bool:
        if self._current is not None and self._current.id == profile_id:
            self.close_session()
        try:
            removed = self._store.remove(profile_id)
        except StorageError as exc:
            self._safe_notify(str(exc), title="Could not delete session", severity="error")
            return False
        if removed:
            self._safe_notify("Session deleted.")
        if self._config.last_session == profile_id:
            self._remember_last_session(None)
        return removed

    def confirm_delete(self, profile_id: str) -> None:
        """Ask for confirmation, then delete the session."""

        try:
            profile = self._store.get(profile_id)
        except StorageError as exc:
            self._safe_notify(str(exc), severity="error")
            return
        if profile is None:
            return

        def _done(confirmed: bool | None) -> None:
            if confirmed:
                self.delete_session(profile_id)

        self.push_screen(ConfirmDeleteScreen(profile.name or profile.session_id), _done)

    def action_add_session(self) -> None:
        def _done(draft: SessionDraft | None) -> None:
            if draft is None:
                return
            self.add_session(draft.name, draft.host, draft.session_id, draft.password)

        self.push_screen(AddSessionScreen(self._config.default_host), _done)

    def action_open_terminal(self) -> None:
        if self._current is None:
            self._safe_notify("Open a session first.", severity="warning")
            return
        self._launch_terminal()

    def action_close_session(self) -> None:
        self.close_session()

    async def _shutdown(self) -> None:
        if self._supervisor is not None:
            self._supervisor.stop()
        self._manager.close()
        await super()._shutdown()

    def _launch_terminal(self) -> None:
        url = self._terminal_url
        if not url or self._current is None:
            return
        try:
            self._browser(url)
        except Exception:
            # The URL embeds the password; log the profile instead.
            LOG.exception("Failed to open browser", extra={"profile_id": self._current.id})
            self._safe_notify("Could not open the browser.", severity="error")

    def _resume_last_session(self) -> None:
        profile_id = self._config.last_session
        if not profile_id:
            return
        try:
            profile = self._store.get(profile_id)
        except StorageError:
            LOG.warning("Could not resume last session", exc_info=True)
            return
        if profile is not None and profile.is_complete():
            self.open_session(profile.id, launch_browser=False)

    def _remember_last_session(self, profile_id: str | None) -> None:
        if self._config.last_session == profile_id:
            return
        self._config = self._config.with_last_session(profile_id)
        if not self._persist_config:
            return
        try:
            # Persist last_session only; self._config may carry runtime overrides.
            save_config(_load_app_config().with_last_session(profile_id))
        except OSError:
            LOG.warning("Failed to save config", exc_info=True)

    def _safe_notify(self, message: str, *, title: str = "", severity: str = "information") -> None:
        if self.is_running:
            try:
                self.notify(message, title=title, severity=severity, markup=False)
            except Exception:
                LOG.exception("Failed to display notification", extra={"toast": message})
        else:
            self._pending_notifications.append((message, title, severity))

    def _flush_pending_notifications(self) -> None:
        if not self._pending_notifications:
            return
        pending = list(self._pending_notifications)
        self._pending_notifications.clear()
        for message, title, severity in pending:
            try:
                self.notify(message, title=title, severity=severity, markup=False)
            except Exception:
                LOG.exception("Failed to display queued notification", extra={"toast": message})


def run(
    config: AppConfig | None = None,
    *,
    store: SessionStore | None = None,
    transport: StreamTransport | None = None,
    persist_config: bool = True,
) -> None:
    """Invoke the Textual application."""

    ClaudedApp(config=config, store=store, transport=transport, persist_config=persist_config).run()


__all__ = ["ClaudedApp", "run"]
