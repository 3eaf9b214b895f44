import re
import time
from typing import Any, Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from jose import JWTError, jwt
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from guiapet.core.config import Settings, get_settings
from guiapet.core.logging import get_logger, warn_once
from guiapet.models.auth import Session, User
from guiapet.services.supabase import SupabaseClient, SupabaseError

ACCESS_COOKIE = "sb-access-token"
REFRESH_COOKIE = "sb-refresh-token"
LOGIN_PATH = "/login"
AUTH_API_PREFIX = "/auth/"
HOME_PATH = "/"

_ALGORITHM = "HS256"
_EXPIRY_LEEWAY = 10  # seconds
_COOKIE_MAX_AGE = 60 * 60 * 24 * 365
_EXEMPT = re.compile(r"^/(static/|health$|favicon\.ico$)|\.(svg|png|jpe?g|gif|webp)$")

log = get_logger(__name__)


def is_exempt(path: str) -> bool:
    return bool(_EXEMPT.search(path))


def is_login_path(path: str) -> bool:
    return path.startswith(LOGIN_PATH)


def is_auth_api(path: str) -> bool:
    return path.startswith(AUTH_API_PREFIX)


def set_session_cookies(response: Response, session: Session, settings: Settings) -> None:
    common: dict[str, Any] = {
        "max_age": _COOKIE_MAX_AGE,
        "httponly": True,
        "samesite": "lax",
        "secure": settings.SESSION_COOKIE_SECURE,
        "path": "/",
    }
    # The access cookie outlives the token so an expired one can still be refreshed.
    response.set_cookie(ACCESS_COOKIE, session.access_token, **common)
    if session.refresh_token:
        response.set_cookie(REFRESH_COOKIE, session.refresh_token, **common)


def clear_session_cookies(response: Response) -> None:
    response.delete_cookie(ACCESS_COOKIE, path="/")
    response.delete_cookie(REFRESH_COOKIE, path="/")


def read_token_claims(token: str, settings: Settings) -> dict[str, Any]:
    """Return the access token's claims.

    The signature is checked only when SUPABASE_JWT_SECRET is set; expiry is
    left to the caller so an expired token can still be told apart from a
    forged one. Raises JWTError on a malformed or badly signed token.
    """
    if settings.SUPABASE_JWT_SECRET:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[_ALGORITHM],
            options={"verify_aud": False, "verify_exp": False},
        )
    return jwt.get_unverified_claims(token)


def session_from_cookies(access_token: str | None, refresh_token: str | None, settings: Settings) -> Session | None:
    """Build a session from cookies if the access token is still valid."""
    if not access_token:
        return None
    try:
        claims = read_token_claims(access_token, settings)
    except JWTError as exc:
        log.info("session_token_invalid", error=str(exc))
        return None

    try:
        exp = int(claims.get("exp") or 0)
    except (TypeError, ValueError):
        log.info("session_token_invalid", error="exp claim is not a timestamp")
        return None
    if exp <= int(time.time()) + _EXPIRY_LEEWAY or not claims.get("sub"):
        return None
    try:
        return Session(
            access_token=access_token,
            refresh_token=refresh_token or "",
            expires_at=exp,
            user=User(
                id=str(claims["sub"]),
                email=claims.get("email"),
                user_metadata=claims.get("user_metadata") or {},
            ),
        )
    except ValidationError as exc:
        log.info("session_token_invalid", error=str(exc))
        return None


async def resolve_session(request: Request, settings: Settings) -> tuple[Session | None, bool, bool]:
    """Return (session, renewed, stale).

    *renewed* means the tokens were refreshed and the cookies must be
    rewritten; *stale* means the cookies hold a refresh token the
    collaborator rejected and must be cleared. Network and upstream errors
    propagate.
    """
    access_token = request.cookies.get(ACCESS_COOKIE)
    refresh_token = request.cookies.get(REFRESH_COOKIE)

    session = session_from_cookies(access_token, refresh_token, settings)
    if session is not None:
        return session, False, False
    if not refresh_token:
        return None, False, bool(access_token)

    try:
        session = await SupabaseClient(settings).refresh_session(refresh_token)
    except SupabaseError as exc:
        if exc.status_code in (400, 401):
            log.info("session_refresh_rejected", message=exc.message)
            return None, False, True
        raise
    return session, True, False


class SessionGateMiddleware(BaseHTTPMiddleware):
    """Redirect anonymous users to the login page and signed-in users away from it.

    Fails open: with Supabase unconfigured, or when it cannot be reached, the
    request goes through unauthenticated.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path
        if is_exempt(path):
            return await call_next(request)

        settings = get_settings()
        if not settings.supabase_configured:
            warn_once(
                "session_gate_unconfigured",
                "session_gate_disabled",
                reason="Supabase not configured, allowing access without authentication",
            )
            return await call_next(request)

        try:
            session, renewed, stale = await resolve_session(request, settings)
        except Exception as exc:
            log.error("session_gate_error", error=str(exc), path=path)
            return await call_next(request)

        if session is None and not (is_login_path(path) or is_auth_api(path)):
            response: Response = RedirectResponse(url=str(request.url.replace(path=LOGIN_PATH)), status_code=307)
            if stale:
                clear_session_cookies(response)
            return response

        if session is not None and is_login_path(path):
            response = RedirectResponse(url=str(request.url.replace(path=HOME_PATH)), status_code=307)
            if renewed:
                set_session_cookies(response, session, settings)
            return response

        request.state.session = session
        request.state.user_id = session.user.id if session and session.user else None

        response = await call_next(request)
        if renewed and session is not None:
            set_session_cookies(response, session, settings)
        elif stale:
            clear_session_cookies(response)
        return response
