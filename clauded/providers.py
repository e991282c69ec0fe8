"""Command palette providers for core app features."""

from __future__ import annotations

from textual.command import DiscoveryHit, Hit, Hits, Provider
from textual.types import IgnoreReturnCallbackType

from .models import SessionProfile
from .store import SessionStore, StorageError


class _SessionProvider(Provider):
    """Shared plumbing for providers that act on one saved session."""

    _VERB = ""
    _HELP = ""
    _APP_METHOD = ""

    async def search(self, query: str) -> Hits:
        matcher = self.matcher(query)
        for profile in self._profiles():
            label = f"{self._VERB}: {profile.name}"
            match = matcher.match(label)
            if match > 0:
                yield Hit(
                    score=match,
                    match_display=matcher.highlight(label),
                    command=self._build_callback(profile.id),
                    help=self._HELP,
                )

    async def discover(self) -> Hits:
        for profile in self._profiles():
            yield DiscoveryHit(
                display=f"{self._VERB}: {profile.name}",
                command=self._build_callback(profile.id),
                help=self._HELP,
            )

    def _profiles(self) -> tuple[SessionProfile, ...]:
        store = getattr(self.app, "store", None)
        if not isinstance(store, SessionStore):
            return ()
        try:
            return store.list()
        except StorageError:
            return ()

    def _build_callback(self, profile_id: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            action = getattr(self.app, self._APP_METHOD, None)
            if action is None:
                return
            action(profile_id)

        return _run


class OpenSessionProvider(_SessionProvider):
    """Expose saved sessions to the command palette."""

    _VERB = "Open session"
    _HELP = "Open the web terminal and subscribe to notifications."
    _APP_METHOD = "open_session"


class DeleteSessionProvider(_SessionProvider):
    """Offer deletion of saved sessions (asks for confirmation)."""

    _VERB = "Delete session"
    _HELP = "Remove the saved session profile."
    _APP_METHOD = "confirm_delete"


__all__ = ["DeleteSessionProvider", "OpenSessionProvider"]
