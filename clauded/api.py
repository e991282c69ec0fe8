"""HTTP client for the clauded server's auxiliary endpoints."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from .links import build_api_url
from .models import NotificationType, SessionProfile

LOG = logging.getLogger(__name__)

HEALTH_PATH = "/health"
PUBLISH_PATH = "/api/v1/notifications/publish"


class ApiError(RuntimeError):
    """Server request failed with structured error info."""

    def __init__(self, message: str, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail or message


class ServerApiClient:
    """Health checks and test notifications against a profile's server."""

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def health(self, profile: SessionProfile) -> dict[str, Any]:
        """Return the server's health payload (``{"status": "ok", ...}``)."""

        return await self._request("GET", build_api_url(profile, HEALTH_PATH))

    async def publish(
        self,
        profile: SessionProfile,
        kind: NotificationType | str,
        data: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Ask the server to push a notification to the profile's session."""

        payload = {
            "session_id": profile.session_id,
            "type": kind.value if isinstance(kind, NotificationType) else kind,
            "data": dict(data or {}),
        }
        return await self._request("POST", build_api_url(profile, PUBLISH_PATH), json=payload)

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ApiError(f"{method} {url} failed: {exc}") from exc
        if response.is_error:
            detail = _error_detail(response)
            LOG.warning(
                "Server API request failed",
                extra={"url": url, "status_code": response.status_code},
            )
            raise ApiError(
                f"{method} {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
                detail=detail,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise ApiError(f"{method} {url} returned invalid JSON", status_code=response.status_code) from exc
        if not isinstance(body, dict):
            return {"result": body}
        return body


def _error_detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None


__all__ = ["ApiError", "HEALTH_PATH", "PUBLISH_PATH", "ServerApiClient"]
