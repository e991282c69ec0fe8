"""Widget library for the Textual UI."""

from __future__ import annotations

from .notification_feed import NotificationFeed
from .session_list import SessionList
from .status_bar import StatusBar

__all__ = ["NotificationFeed", "SessionList", "StatusBar"]
