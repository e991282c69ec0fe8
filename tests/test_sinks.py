"""Tests for the notification sinks."""

from __future__ import annotations

import logging

import pytest

from clauded.models import NotificationEvent, NotificationType
from clauded.sinks import FanoutSink, LoggingSink, NotificationLog


def _event(title: str, body: str = "", kind: NotificationType = NotificationType.MESSAGE) -> NotificationEvent:
    return NotificationEvent(type=kind, title=title, body=body)


def test_log_keeps_newest_first_within_limit() -> None:
    log = NotificationLog(limit=2)

    for title in ("one", "two", "three"):
        log.deliver(_event(title))

    assert [entry.event.title for entry in log.entries] == ["three", "two"]
    assert [entry.id for entry in log.entries] == [3, 2]


def test_log_headline_joins_title_and_body() -> None:
    log = NotificationLog()
    log.deliver(_event("Done", "Build ok"))
    log.deliver(_event("Ping"))

    assert [entry.headline for entry in log.entries] == ["Ping", "Done: Build ok"]


def test_log_listeners_and_clear() -> None:
    log = NotificationLog()
    seen: list[int] = []
    unsubscribe = log.subscribe(lambda entry: seen.append(entry.id))

    log.deliver(_event("a"))
    unsubscribe()
    log.deliver(_event("b"))
    log.clear()

    assert seen == [1]
    assert log.entries == ()


def test_fanout_delivers_to_every_sink_in_order() -> None:
    first, second = NotificationLog(), NotificationLog()
    sink = FanoutSink([first, second])

    sink.deliver(_event("x"))

    assert [entry.event.title for entry in first.entries] == ["x"]
    assert [entry.event.title for entry in second.entries] == ["x"]


def test_logging_sink_uses_warning_for_errors(caplog: pytest.LogCaptureFixture) -> None:
    sink = LoggingSink(logging.getLogger("clauded.test"))

    with caplog.at_level(logging.INFO, logger="clauded.test"):
        sink.deliver(_event("Done", "ok", NotificationType.TASK_COMPLETED))
        sink.deliver(_event("Failed", "boom", NotificationType.ERROR))

    assert [(record.levelno, record.getMessage()) for record in caplog.records] == [
        (logging.INFO, "Done: ok"),
        (logging.WARNING, "Failed: boom"),
    ]
