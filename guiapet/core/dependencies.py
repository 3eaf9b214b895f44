from fastapi import Depends, Request

from guiapet.core.config import Settings, get_settings
from guiapet.core.session_gate import ACCESS_COOKIE, REFRESH_COOKIE, session_from_cookies
from guiapet.models.auth import Session
from guiapet.services.session import SessionContext


def get_request_session(request: Request, settings: Settings = Depends(get_settings)) -> Session | None:
    """Session established by the gate, or read from cookies when the gate let the request through untouched."""
    session: Session | None = getattr(request.state, "session", None)
    if session is not None:
        return session
    return session_from_cookies(
        request.cookies.get(ACCESS_COOKIE),
        request.cookies.get(REFRESH_COOKIE),
        settings,
    )


def get_session_context(
    session: Session | None = Depends(get_request_session),
    settings: Settings = Depends(get_settings),
) -> SessionContext:
    return SessionContext(settings, session=session)
