"""Logging setup for the TUI and headless commands.

The Textual app owns the terminal, so it logs to a file; headless commands
log to stderr unless a file is configured.
"""

from __future__ import annotations

import logging
from pathlib import Path

LOG_FILE = Path.home() / ".config" / "clauded" / "clauded.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_installed: logging.Handler | None = None


def setup_logging(level: str = "INFO", *, log_file: Path | str | None = None, stderr: bool = False) -> None:
    """Configure the root logger.

    Args:
        level: Level name such as ``"DEBUG"``; unknown names fall back to INFO.
        log_file: Destination file; defaults to ``LOG_FILE`` unless ``stderr``.
        stderr: Log to stderr instead of a file when no ``log_file`` is given.
    """

    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    handler: logging.Handler
    if log_file is None and stderr:
        handler = logging.StreamHandler()
    else:
        path = Path(log_file).expanduser() if log_file else LOG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    global _installed
    root = logging.getLogger()
    if _installed is not None:
        root.removeHandler(_installed)
        _installed.close()
    root.addHandler(handler)
    _installed = handler
    root.setLevel(numeric)
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(max(numeric, logging.WARNING))


__all__ = ["LOG_FILE", "setup_logging"]
