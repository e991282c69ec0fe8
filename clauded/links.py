"""URL builders for the web terminal and the notification endpoints."""

from __future__ import annotations

from urllib.parse import urlencode

from .models import SessionProfile

DEFAULT_SCHEME = "https://"
STREAM_PATH = "/api/v1/notifications/stream"

_SCHEMES = ("http://", "https://")


class MalformedProfileError(ValueError):
    """Raised when a profile lacks the fields needed to build its URLs."""


def normalize_host(host: str) -> tuple[str, str]:
    """Split user host input into ``(scheme, bare_host)``.

    Defined for every string: hosts without a recognised scheme default to
    ``https://`` and a single trailing ``/`` is dropped.
    """

    scheme = DEFAULT_SCHEME
    bare = host
    for candidate in _SCHEMES:
        if host.startswith(candidate):
            scheme = candidate
            bare = host[len(candidate):]
            break
    if bare.endswith("/"):
        bare = bare[:-1]
    return scheme, bare


def build_terminal_url(profile: SessionProfile) -> str:
    """Web terminal URL with basic-auth credentials in the authority."""

    scheme, host = normalize_host(profile.host)
    return f"{scheme}{profile.session_id}:{profile.password}@{host}/{profile.session_id}"


def build_api_url(profile: SessionProfile, path: str) -> str:
    scheme, host = normalize_host(profile.host)
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{scheme}{host}{path}"


def build_stream_url(profile: SessionProfile) -> str:
    """Server-sent events endpoint for the profile's remote session."""

    query = urlencode({"session_id": profile.session_id})
    return f"{build_api_url(profile, STREAM_PATH)}?{query}"


def require_complete(profile: SessionProfile) -> SessionProfile:
    """Return the profile unchanged, or raise if a URL field is empty."""

    missing = [
        label
        for label, value in (
            ("host", profile.host),
            ("session id", profile.session_id),
            ("password", profile.password),
        )
        if not value
    ]
    if missing:
        raise MalformedProfileError(
            f"Profile '{profile.name or profile.id}' is missing: {', '.join(missing)}."
        )
    return profile


__all__ = [
    "DEFAULT_SCHEME",
    "MalformedProfileError",
    "STREAM_PATH",
    "build_api_url",
    "build_stream_url",
    "build_terminal_url",
    "normalize_host",
    "require_complete",
]
