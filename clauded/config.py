"""App configuration loading helpers."""

from __future__ import annotations

from pathlib import Path

import tomllib

from pydantic import BaseModel, Field, ValidationError

from .reconnect import BackoffPolicy
from .store import SESSIONS_FILE

CONFIG_FILE = Path.home() / ".config" / "clauded" / "config.toml"
DEFAULT_HOST = "clauded.friddle.me"


class ReconnectConfig(BaseModel):
    """Backoff settings for the notification stream."""

    enabled: bool = True
    initial_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0

    def policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            multiplier=self.multiplier,
        )


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    default_host: str = DEFAULT_HOST
    sessions_file: str | None = None
    log_level: str = "INFO"
    log_file: str | None = None
    history_limit: int = 50
    last_session: str | None = None
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)

    def sessions_path(self) -> Path:
        if self.sessions_file:
            return Path(self.sessions_file).expanduser()
        return SESSIONS_FILE

    def with_last_session(self, profile_id: str | None) -> AppConfig:
        """Return a copy remembering the most recently opened session."""

        return self.model_copy(update={"last_session": profile_id})


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()
    try:
        return AppConfig(**data)
    except ValidationError:
        return AppConfig()


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [
        f'default_host = "{config.default_host}"',
        f'log_level = "{config.log_level}"',
        f"history_limit = {config.history_limit}",
    ]
    if config.sessions_file:
        lines.append(f'sessions_file = "{config.sessions_file}"')
    if config.log_file:
        lines.append(f'log_file = "{config.log_file}"')
    if config.last_session:
        lines.append(f'last_session = "{config.last_session}"')
    reconnect = config.reconnect
    lines.append("")
    lines.append("[reconnect]")
    lines.append(f"enabled = {str(reconnect.enabled).lower()}")
    lines.append(f"initial_delay = {reconnect.initial_delay}")
    lines.append(f"max_delay = {reconnect.max_delay}")
    lines.append(f"multiplier = {reconnect.multiplier}")
    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    for key in ("default_host", "sessions_file", "log_level", "log_file", "last_session"):
        value = raw.get(key)
        if isinstance(value, str):
            data[key] = value
    history_limit = raw.get("history_limit")
    if isinstance(history_limit, int) and history_limit > 0:
        data["history_limit"] = history_limit
    reconnect = raw.get("reconnect")
    if isinstance(reconnect, dict):
        settings: dict[str, object] = {}
        enabled = reconnect.get("enabled")
        if isinstance(enabled, bool):
            settings["enabled"] = enabled
        for key in ("initial_delay", "max_delay", "multiplier"):
            value = reconnect.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
                settings[key] = float(value)
        data["reconnect"] = ReconnectConfig(**settings)
    return data


__all__ = [
    "AppConfig",
    "CONFIG_FILE",
    "DEFAULT_HOST",
    "ReconnectConfig",
    "load_config",
    "save_config",
]
