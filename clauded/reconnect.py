"""Exponential-backoff reconnection for the notification stream."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from .models import NotificationEvent, SessionProfile, StreamState
from .notifications import NotificationStreamManager, StreamStatus

LOG = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Delay schedule keyed by the number of consecutive failures."""

    initial_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0
    max_attempts: int | None = None

    def delay_for(self, failures: int) -> float:
        if failures <= 0:
            return 0.0
        return min(self.max_delay, self.initial_delay * self.multiplier ** (failures - 1))

    def exhausted(self, failures: int) -> bool:
        return self.max_attempts is not None and failures > self.max_attempts


class ReconnectSupervisor:
    """Re-opens the stream after failures until it is closed explicitly.

    The failure counter resets whenever an event is delivered or a different
    profile is opened.
    """

    def __init__(
        self,
        manager: NotificationStreamManager,
        policy: BackoffPolicy | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._manager = manager
        self._policy = policy or BackoffPolicy()
        self._sleep = sleep
        self._failures = 0
        self._profile_id: str | None = None
        self._task: asyncio.Task[None] | None = None
        self._unsubscribes: list[Callable[[], None]] = []

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def active(self) -> bool:
        return bool(self._unsubscribes)

    def start(self) -> None:
        if self._unsubscribes:
            return
        self._unsubscribes = [
            self._manager.on_event(self._handle_event),
            self._manager.subscribe(self._handle_status),
        ]

    def stop(self) -> None:
        self._cancel_pending()
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes = []
        self._failures = 0

    def _handle_event(self, _event: NotificationEvent) -> None:
        self._failures = 0

    def _handle_status(self, status: StreamStatus) -> None:
        profile = status.profile
        if profile is not None and profile.id != self._profile_id:
            self._profile_id = profile.id
            self._failures = 0
        if status.state is StreamState.ERROR and profile is not None:
            self._failures += 1
            self._schedule(profile)
        elif status.state in (StreamState.CONNECTING, StreamState.CLOSED, StreamState.IDLE):
            self._cancel_pending()
            if status.state is not StreamState.CONNECTING:
                self._failures = 0

    def _schedule(self, profile: SessionProfile) -> None:
        self._cancel_pending()
        if self._policy.exhausted(self._failures):
            LOG.warning(
                "Giving up on notification stream after %d failures",
                self._failures - 1,
                extra={"profile_id": profile.id},
            )
            return
        delay = self._policy.delay_for(self._failures)
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._retry(profile, delay), name=f"clauded-reconnect-{profile.id}")

    async def _retry(self, profile: SessionProfile, delay: float) -> None:
        LOG.info(
            "Reconnecting notification stream in %.1fs (attempt %d)",
            delay,
            self._failures,
            extra={"profile_id": profile.id},
        )
        await self._sleep(delay)
        self._task = None
        if not self._unsubscribes:
            return
        self._manager.open(profile)

    def _cancel_pending(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None


__all__ = ["BackoffPolicy", "ReconnectSupervisor"]
