from __future__ import annotations

from typing import Awaitable, Callable

from guiapet.core.config import Settings
from guiapet.core.logging import get_logger
from guiapet.models.auth import Session
from guiapet.services.supabase import SupabaseClient, SupabaseError

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

SessionCallback = Callable[[str, Session | None], Awaitable[None]]

log = get_logger(__name__)


class Subscription:
    def __init__(self, context: SessionContext, callback: SessionCallback):
        self._context = context
        self._callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._context._listeners.remove(self._callback)


class SessionContext:
    """Auth state for one user agent, passed explicitly to the flows that need it.

    Views subscribe with on_session_change() and must unsubscribe when they are
    torn down.
    """

    def __init__(self, settings: Settings, session: Session | None = None, client: SupabaseClient | None = None):
        self.settings = settings
        self.session = session
        self._base_client = client or SupabaseClient(settings)
        self._listeners: list[SessionCallback] = []

    @property
    def access_token(self) -> str | None:
        return self.session.access_token if self.session else None

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def client(self) -> SupabaseClient:
        return self._base_client.with_token(self.access_token)

    def on_session_change(self, callback: SessionCallback) -> Subscription:
        self._listeners.append(callback)
        return Subscription(self, callback)

    async def emit(self, event: str, session: Session | None) -> None:
        for callback in list(self._listeners):
            await callback(event, session)

    async def reload(self, session: Session) -> None:
        """Adopt *session* and make every subscriber rebuild its state from scratch."""
        self.session = session
        await self.emit(SIGNED_IN, session)

    async def sign_out(self) -> None:
        try:
            await self.client().sign_out()
        except SupabaseError as exc:
            log.warning("sign_out_failed", error=exc.payload.get("error"), message=exc.message)
        self.session = None
        await self.emit(SIGNED_OUT, None)
