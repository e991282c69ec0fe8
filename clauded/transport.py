"""Stream transports feeding the notification manager."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncGenerator, Callable, Mapping, Protocol, Sequence, runtime_checkable

import httpx

from .sse import SSEDecoder, ServerSentEvent

LOG = logging.getLogger(__name__)


class StreamTransportError(RuntimeError):
    """Raised when the stream cannot be established or drops."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@runtime_checkable
class StreamTransport(Protocol):
    """Protocol implemented by server-push transports."""

    def frames(
        self, url: str, on_open: Callable[[], None] | None = None
    ) -> AsyncGenerator[ServerSentEvent, None]:
        """Yield frames pushed by the server until the stream ends."""


class HttpxStreamTransport:
    """Consumes a text/event-stream response via httpx."""

    def __init__(
        self,
        *,
        connect_timeout: float = 10.0,
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._headers = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
            **(headers or {}),
        }
        self._transport = transport

    async def frames(
        self, url: str, on_open: Callable[[], None] | None = None
    ) -> AsyncGenerator[ServerSentEvent, None]:
        # No read timeout: the server may stay silent between events.
        timeout = httpx.Timeout(self._connect_timeout, read=None)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                async with client.stream("GET", url, headers=self._headers) as response:
                    if response.status_code != httpx.codes.OK:
                        raise StreamTransportError(
                            f"Notification stream returned HTTP {response.status_code}",
                            status_code=response.status_code,
                        )
                    LOG.debug("Notification stream established", extra={"url": url})
                    if on_open is not None:
                        on_open()
                    decoder = SSEDecoder()
                    async for line in response.aiter_lines():
                        frame = decoder.feed(line)
                        if frame is not None:
                            yield frame
        except httpx.HTTPError as exc:
            raise StreamTransportError(f"Notification stream failed: {exc}") from exc


DEMO_FRAMES: Sequence[ServerSentEvent] = (
    ServerSentEvent(
        event="system_status",
        data=json.dumps({"Title": "Connected", "Message": "Demo stream is live."}),
    ),
    ServerSentEvent(
        event="progress",
        data=json.dumps({"Type": "progress", "Data": {"step": 2, "total": 5}}),
    ),
    ServerSentEvent(event="message", data="keep-alive"),
    ServerSentEvent(
        event="task_completed",
        data=json.dumps({"Title": "Build finished", "Message": "All tests passed."}),
    ),
    ServerSentEvent(
        event="error",
        data=json.dumps({"Title": "Lint failed", "Data": "3 warnings treated as errors"}),
    ),
)


class DemoStreamTransport:
    """Stub transport that replays preset frames on a timer."""

    def __init__(
        self,
        frames: Sequence[ServerSentEvent] | None = None,
        *,
        interval: float = 4.0,
        repeat: bool = True,
    ) -> None:
        self._frames = tuple(frames if frames is not None else DEMO_FRAMES)
        self._interval = interval
        self._repeat = repeat
        self.requested_urls: list[str] = []

    async def frames(
        self, url: str, on_open: Callable[[], None] | None = None
    ) -> AsyncGenerator[ServerSentEvent, None]:
        self.requested_urls.append(url)
        if on_open is not None:
            on_open()
        while True:
            for frame in self._frames:
                await asyncio.sleep(self._interval)
                yield frame
            if not self._repeat or not self._frames:
                return


__all__ = [
    "DEMO_FRAMES",
    "DemoStreamTransport",
    "HttpxStreamTransport",
    "StreamTransport",
    "StreamTransportError",
]
