"""Command line entry point: the TUI plus headless session commands."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import sys
from pathlib import Path
from typing import Any, Sequence, TextIO

from .api import ApiError, ServerApiClient
from .config import AppConfig, load_config
from .links import MalformedProfileError, build_terminal_url, require_complete
from .logging_config import setup_logging
from .models import NotificationEvent, NotificationType, SessionProfile, StreamState
from .notifications import NotificationStreamManager, StreamStatus
from .reconnect import BackoffPolicy, ReconnectSupervisor
from .sinks import FanoutSink, LoggingSink
from .store import JsonFileBackend, MemoryBackend, SessionStore, StorageError
from .transport import DemoStreamTransport, StreamTransport

DEMO_PROFILE = SessionProfile(
    id="demo",
    name="Demo session",
    host="https://demo.invalid",
    session_id="demo",
    password="demo",
)


class CommandError(RuntimeError):
    """User-facing failure that ends a command with exit status 1."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clauded", description="Remote terminal sessions and notifications.")
    parser.add_argument("--sessions-file", type=Path, help="Override the session profile file.")
    parser.add_argument("--log-level", help="Logging level (default from config).")
    subparsers = parser.add_subparsers(dest="command")

    tui = subparsers.add_parser("tui", help="Start the interactive app (default).")
    tui.add_argument("--demo", action="store_true", help="Use a simulated notification stream.")

    listing = subparsers.add_parser("list", help="List saved sessions.")
    listing.add_argument("--json", action="store_true", help="Print records as JSON.")

    add = subparsers.add_parser("add", help="Save a new session.")
    add.add_argument("name")
    add.add_argument("host")
    add.add_argument("session_id")
    add.add_argument("--password", help="Session password (prompted when omitted).")

    remove = subparsers.add_parser("remove", help="Delete a saved session.")
    remove.add_argument("id")

    url = subparsers.add_parser("url", help="Print the authenticated terminal URL.")
    url.add_argument("id")

    watch = subparsers.add_parser("watch", help="Stream notifications for a session.")
    watch.add_argument("id", nargs="?", help="Session id (omit with --demo).")
    watch.add_argument("--json", action="store_true", help="Print one JSON object per event.")
    watch.add_argument("--no-reconnect", action="store_true", help="Exit when the stream drops.")
    watch.add_argument("--max-events", type=int, help="Exit after this many events.")
    watch.add_argument("--demo", action="store_true", help="Use a simulated notification stream.")

    check = subparsers.add_parser("check", help="Call the server health endpoint.")
    check.add_argument("id")

    publish = subparsers.add_parser("publish", help="Ask the server to push a test notification.")
    publish.add_argument("id")
    publish.add_argument("type", choices=[kind.value for kind in NotificationType.known()])
    publish.add_argument("--data", default="{}", help="JSON object sent as the notification data.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments and run the selected command."""

    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_config()
    # Flag overrides stay out of `config` so the TUI never persists them.
    sessions_path = args.sessions_file.expanduser() if args.sessions_file is not None else config.sessions_path()
    command = args.command or "tui"
    level = args.log_level or config.log_level
    setup_logging(level, log_file=config.log_file, stderr=command != "tui")
    try:
        if command == "tui":
            return _run_tui(config, sessions_path, demo=getattr(args, "demo", False))
        store = SessionStore(JsonFileBackend(sessions_path))
        handler = _COMMANDS[command]
        return handler(args, config, store)
    except (CommandError, StorageError, MalformedProfileError, ApiError) as exc:
        print(f"clauded: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


def _run_tui(config: AppConfig, sessions_path: Path, *, demo: bool) -> int:
    from .app import run

    if demo:
        store = SessionStore(MemoryBackend({"clauded_sessions": [DEMO_PROFILE.to_record()]}))
        run(config.with_last_session(None), store=store, transport=DemoStreamTransport(), persist_config=False)
    else:
        run(config, store=SessionStore(JsonFileBackend(sessions_path)))
    return 0


def _cmd_list(args: argparse.Namespace, config: AppConfig, store: SessionStore) -> int:
    profiles = store.list()
    if args.json:
        records = [_redacted(profile) for profile in profiles]
        print(json.dumps(records, indent=2))
        return 0
    if not profiles:
        print("No sessions yet. Add one with `clauded add NAME HOST SESSION_ID`.")
        return 0
    for profile in profiles:
        print(f"{profile.id}\t{profile.name}\t{profile.host} / {profile.session_id}")
    return 0


def _cmd_add(args: argparse.Namespace, config: AppConfig, store: SessionStore) -> int:
    password = args.password
    if password is None:
        password = getpass.getpass("Password: ")
    profile = store.add(args.name, args.host, args.session_id, password)
    print(profile.id)
    return 0


def _cmd_remove(args: argparse.Namespace, config: AppConfig, store: SessionStore) -> int:
    if not store.remove(args.id):
        print(f"No session with id {args.id}; nothing removed.")
    return 0


def _cmd_url(args: argparse.Namespace, config: AppConfig, store: SessionStore) -> int:
    profile = require_complete(_lookup(store, args.id))
    print(build_terminal_url(profile))
    return 0


def _cmd_watch(args: argparse.Namespace, config: AppConfig, store: SessionStore) -> int:
    transport: StreamTransport | None = None
    if args.demo:
        profile = DEMO_PROFILE
        transport = DemoStreamTransport(interval=1.0)
    else:
        if not args.id:
            raise CommandError("watch needs a session id unless --demo is given.")
        profile = require_complete(_lookup(store, args.id))
    policy = None if args.no_reconnect or not config.reconnect.enabled else config.reconnect.policy()
    return asyncio.run(
        watch(
            profile,
            transport=transport,
            policy=policy,
            as_json=args.json,
            max_events=args.max_events,
        )
    )


def _cmd_check(args: argparse.Namespace, config: AppConfig, store: SessionStore) -> int:
    profile = require_complete(_lookup(store, args.id))
    payload = asyncio.run(ServerApiClient().health(profile))
    print(json.dumps(payload, indent=2))
    return 0


def _cmd_publish(args: argparse.Namespace, config: AppConfig, store: SessionStore) -> int:
    profile = require_complete(_lookup(store, args.id))
    try:
        data = json.loads(args.data)
    except json.JSONDecodeError as exc:
        raise CommandError(f"--data is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise CommandError("--data must be a JSON object.")
    payload = asyncio.run(ServerApiClient().publish(profile, NotificationType(args.type), data))
    print(json.dumps(payload, indent=2))
    return 0


_COMMANDS = {
    "list": _cmd_list,
    "add": _cmd_add,
    "remove": _cmd_remove,
    "url": _cmd_url,
    "watch": _cmd_watch,
    "check": _cmd_check,
    "publish": _cmd_publish,
}


class PrintSink:
    """Writes each notification to a text stream."""

    def __init__(self, out: TextIO, *, as_json: bool = False) -> None:
        self._out = out
        self._as_json = as_json

    def deliver(self, event: NotificationEvent) -> None:
        if self._as_json:
            line = json.dumps(
                {
                    "type": event.type.value,
                    "title": event.title,
                    "body": event.body,
                    "data": event.data,
                    "timestamp": event.timestamp,
                    "session_id": event.session_id,
                    "received_at": event.received_at.isoformat(),
                }
            )
        else:
            stamp = event.received_at.astimezone().strftime("%H:%M:%S")
            line = f"{stamp} [{event.type.value}] {event.title}: {event.body}"
        print(line, file=self._out, flush=True)


async def watch(
    profile: SessionProfile,
    *,
    transport: StreamTransport | None = None,
    policy: BackoffPolicy | None = None,
    as_json: bool = False,
    max_events: int | None = None,
    out: TextIO | None = None,
) -> int:
    """Print notifications until interrupted, the event limit, or a final failure."""

    manager = NotificationStreamManager(
        FanoutSink([PrintSink(out or sys.stdout, as_json=as_json), LoggingSink()]),
        transport=transport,
    )
    supervisor = ReconnectSupervisor(manager, policy) if policy is not None else None
    done = asyncio.Event()
    code = 0
    delivered = 0

    def _on_status(status: StreamStatus) -> None:
        nonlocal code
        if status.state is StreamState.ERROR:
            print(f"clauded: stream disconnected: {status.last_error}", file=sys.stderr)
            if supervisor is None:
                code = 1
                done.set()

    def _on_event(_event: NotificationEvent) -> None:
        nonlocal delivered
        delivered += 1
        if max_events is not None and delivered >= max_events:
            done.set()

    unsubscribes = [manager.subscribe(_on_status), manager.on_event(_on_event)]
    if supervisor is not None:
        supervisor.start()
    manager.open(profile)
    try:
        await done.wait()
    finally:
        if supervisor is not None:
            supervisor.stop()
        manager.close()
        for unsubscribe in unsubscribes:
            unsubscribe()
    return code


def _lookup(store: SessionStore, profile_id: str) -> SessionProfile:
    profile = store.get(profile_id)
    if profile is None:
        raise CommandError(f"No session with id {profile_id}.")
    return profile


def _redacted(profile: SessionProfile) -> dict[str, Any]:
    record = profile.to_record()
    record["password"] = "***" if profile.password else ""
    return record


__all__ = ["CommandError", "PrintSink", "build_parser", "main", "watch"]
