"""Tests for the Textual app controller."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import AsyncGenerator, Callable

import pytest

from clauded.app import ClaudedApp
from clauded.config import AppConfig, ReconnectConfig, load_config
from clauded.models import NotificationEvent, NotificationType, StreamState
from clauded.providers import DeleteSessionProvider, OpenSessionProvider
from clauded.sse import ServerSentEvent
from clauded.store import MemoryBackend, SessionStore
from clauded.widgets.session_list import SessionListItem
from clauded.widgets.status_bar import describe_status


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _PushTransport:
    """Streams stay open until the test pushes frames."""

    def __init__(self) -> None:
        self.urls: list[str] = []
        self.queues: list[asyncio.Queue[ServerSentEvent]] = []

    async def frames(
        self, url: str, on_open: Callable[[], None] | None = None
    ) -> AsyncGenerator[ServerSentEvent, None]:
        queue: asyncio.Queue[ServerSentEvent] = asyncio.Queue()
        self.urls.append(url)
        self.queues.append(queue)
        if on_open is not None:
            on_open()
        while True:
            yield await queue.get()


class _DummyScreen:
    """Minimal stub so providers can reference an app without a running screen stack."""

    def __init__(self, app: ClaudedApp) -> None:
        self.app = app
        self.focused = None


def _app(transport: _PushTransport | None = None, **config: object) -> tuple[ClaudedApp, list[str]]:
    opened: list[str] = []
    app = ClaudedApp(
        config=AppConfig(reconnect=ReconnectConfig(enabled=False), **config),
        store=SessionStore(MemoryBackend()),
        transport=transport or _PushTransport(),
        browser=opened.append,
        persist_config=False,
    )
    return app, opened


async def _settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.mark.anyio
async def test_open_session_launches_terminal_and_subscribes() -> None:
    transport = _PushTransport()
    app, opened = _app(transport)
    profile = app.add_session("Box", "example.com", "abc", "pw")
    assert profile is not None

    assert app.open_session(profile.id) is True
    await _settle()

    assert opened == ["https://abc:pw@example.com/abc"]
    assert app.current_session == profile
    assert app.stream_manager.state is StreamState.OPEN
    assert transport.urls == ["https://example.com/api/v1/notifications/stream?session_id=abc"]
    app.close_session()


@pytest.mark.anyio
async def test_pushed_events_land_in_history() -> None:
    transport = _PushTransport()
    app, _ = _app(transport)
    profile = app.add_session("Box", "example.com", "abc", "pw")
    assert profile is not None
    app.open_session(profile.id, launch_browser=False)
    await _settle()

    transport.queues[0].put_nowait(
        ServerSentEvent(event="error", data=json.dumps({"Title": "Build failed", "Message": "exit 1"}))
    )
    await _settle()

    entries = app.history.entries
    assert len(entries) == 1
    assert entries[0].event.type is NotificationType.ERROR
    assert entries[0].headline == "Build failed: exit 1"
    app.close_session()


@pytest.mark.anyio
async def test_switching_sessions_replaces_stream() -> None:
    transport = _PushTransport()
    app, _ = _app(transport)
    first = app.add_session("One", "example.com", "aaa", "pw")
    second = app.add_session("Two", "example.com", "bbb", "pw")
    assert first is not None and second is not None

    app.open_session(first.id, launch_browser=False)
    await _settle()
    app.open_session(second.id, launch_browser=False)
    await _settle()
    transport.queues[0].put_nowait(ServerSentEvent(event="progress", data=json.dumps({"Title": "stale"})))
    transport.queues[1].put_nowait(ServerSentEvent(event="progress", data=json.dumps({"Title": "fresh"})))
    await _settle()

    assert [entry.event.title for entry in app.history.entries] == ["fresh"]
    assert app.stream_manager.profile == second
    app.close_session()


@pytest.mark.anyio
async def test_incomplete_profile_is_not_opened() -> None:
    app, opened = _app()
    profile = app.add_session("Broken", "example.com", "abc", "")
    assert profile is not None

    assert app.open_session(profile.id) is False
    assert app.open_session("missing") is False

    assert opened == []
    assert app.stream_manager.state is StreamState.IDLE


@pytest.mark.anyio
async def test_deleting_open_session_closes_stream() -> None:
    app, _ = _app()
    profile = app.add_session("Box", "example.com", "abc", "pw")
    assert profile is not None
    app.open_session(profile.id, launch_browser=False)
    await _settle()

    assert app.delete_session(profile.id) is True

    assert app.current_session is None
    assert app.terminal_url is None
    assert app.stream_manager.state is StreamState.CLOSED
    assert app.store.list() == ()


def test_delete_unknown_session_returns_false() -> None:
    app, _ = _app()

    assert app.delete_session("missing") is False


def test_deliver_queues_toasts_until_running() -> None:
    app, _ = _app()

    app.deliver(NotificationEvent(type=NotificationType.TASK_COMPLETED, title="Done", body="ok"))

    assert [entry.headline for entry in app.history.entries] == ["Done: ok"]
    assert ("ok", "Done", "information") in app._pending_notifications


def test_history_limit_comes_from_config() -> None:
    app, _ = _app(history_limit=3)

    assert app.history.limit == 3


@pytest.mark.anyio
async def test_open_provider_lists_sessions_and_opens_them() -> None:
    app, opened = _app()
    profile = app.add_session("Box", "example.com", "abc", "pw")
    assert profile is not None

    provider = OpenSessionProvider(_DummyScreen(app))  # type: ignore[arg-type]
    hits = [hit async for hit in provider.discover()]
    assert [hit.display for hit in hits] == ["Open session: Box"]

    await hits[0].command()

    assert app.current_session == profile
    assert opened == ["https://abc:pw@example.com/abc"]
    app.close_session()


@pytest.mark.anyio
async def test_delete_provider_searches_by_name() -> None:
    app, _ = _app()
    app.add_session("Build box", "example.com", "abc", "pw")
    app.add_session("Docs", "example.com", "def", "pw")

    provider = DeleteSessionProvider(_DummyScreen(app))  # type: ignore[arg-type]
    hits = [hit async for hit in provider.search("build")]

    assert len(hits) == 1
    assert "Build box" in str(hits[0].text or hits[0].match_display)


def test_describe_status_summarizes_stream() -> None:
    app, _ = _app()

    text = describe_status(app.stream_manager.status)

    assert text.startswith("Notifications: Idle")
    assert "Events: 0" in text


@pytest.mark.anyio
async def test_app_mounts_session_list_and_resumes_last_session() -> None:
    transport = _PushTransport()
    app, opened = _app(transport)
    profile = app.add_session("Box", "example.com", "abc", "pw")
    assert profile is not None
    app._config = app._config.with_last_session(profile.id)

    async with app.run_test() as pilot:
        await pilot.pause()
        items = list(app.query(SessionListItem))
        assert [item.profile_id for item in items] == [profile.id]
        assert app.current_session == profile
        assert opened == []
        assert transport.urls
        app.close_session()
        assert app.stream_manager.state is StreamState.CLOSED


@pytest.mark.anyio
async def test_sessions_added_while_running_appear_in_list() -> None:
    app, _ = _app()

    async with app.run_test() as pilot:
        await pilot.pause()
        assert list(app.query(SessionListItem)) == []
        assert app.query_one("#session-empty").display is True

        profile = app.add_session("Box", "example.com", "abc", "pw")
        assert profile is not None
        await pilot.pause()
        assert [item.profile_id for item in app.query(SessionListItem)] == [profile.id]
        assert app.query_one("#session-empty").display is False

        app.delete_session(profile.id)
        await pilot.pause()
        assert list(app.query(SessionListItem)) == []
        assert app.query_one("#session-empty").display is True


@pytest.mark.anyio
async def test_remembering_session_keeps_runtime_overrides_out_of_config(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('log_level = "DEBUG"\n')
    monkeypatch.setattr("clauded.config.CONFIG_FILE", config_path)
    app = ClaudedApp(
        config=AppConfig(sessions_file=str(tmp_path / "one-off.json"), reconnect=ReconnectConfig(enabled=False)),
        store=SessionStore(MemoryBackend()),
        transport=_PushTransport(),
        browser=lambda url: None,
    )
    profile = app.add_session("Box", "example.com", "abc", "pw")
    assert profile is not None

    app.open_session(profile.id, launch_browser=False)
    saved = load_config()

    assert saved.last_session == profile.id
    assert saved.sessions_file is None
    assert saved.log_level == "DEBUG"

    app.close_session()
    assert load_config().last_session is None
