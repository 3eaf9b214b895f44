from __future__ import annotations

import time
import uuid
from typing import Any
from urllib.parse import urlencode

import httpx

from guiapet.core.config import Settings
from guiapet.models.auth import Session, User


class SupabaseError(Exception):
    def __init__(self, status_code: int, payload: dict[str, Any]):
        self.status_code = status_code
        self.payload = payload
        super().__init__(payload.get("message", "Supabase error"))

    @property
    def message(self) -> str:
        return str(self.payload.get("message", ""))


class SupabaseNotConfigured(SupabaseError):
    def __init__(self) -> None:
        super().__init__(
            status_code=503,
            payload={
                "error": "NOT_CONFIGURED",
                "message": "Supabase is not configured.",
                "fields": [],
                "request_id": _request_id(),
            },
        )


def _request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def _message_from_upstream(upstream_data: Any, fallback: str) -> str:
    # GoTrue answers with msg or error_description, PostgREST with message.
    if isinstance(upstream_data, dict):
        for key in ("msg", "error_description", "message", "error"):
            message = upstream_data.get(key)
            if isinstance(message, str) and message.strip():
                return message
    return fallback


def _normalize_http_error(status_code: int, upstream_data: Any) -> tuple[int, dict[str, Any]]:
    request_id = _request_id()

    if status_code == 400:
        return 400, {
            "error": "AUTH_ERROR",
            "message": _message_from_upstream(upstream_data, "Request rejected."),
            "fields": [],
            "request_id": request_id,
        }
    if status_code in (401, 403):
        return 401, {
            "error": "UNAUTHORIZED",
            "message": _message_from_upstream(upstream_data, "Authentication failed."),
            "fields": [],
            "request_id": request_id,
        }
    if status_code == 404:
        return 404, {
            "error": "NOT_FOUND",
            "message": _message_from_upstream(upstream_data, "Requested resource was not found."),
            "fields": [],
            "request_id": request_id,
        }
    if status_code == 422:
        return 422, {
            "error": "VALIDATION_ERROR",
            "message": _message_from_upstream(upstream_data, "Validation failed."),
            "fields": [],
            "request_id": request_id,
        }
    if status_code == 429:
        return 502, {
            "error": "UPSTREAM_ERROR",
            "message": "The server is busy, please try again in a moment.",
            "fields": [],
            "request_id": request_id,
        }
    if status_code >= 500:
        return 502, {
            "error": "UPSTREAM_ERROR",
            "message": "Supabase is temporarily unavailable.",
            "fields": [],
            "request_id": request_id,
        }

    return 502, {
        "error": "UPSTREAM_ERROR",
        "message": _message_from_upstream(upstream_data, "Unexpected upstream error."),
        "fields": [],
        "request_id": request_id,
    }


def _invalid_response() -> SupabaseError:
    return SupabaseError(
        status_code=502,
        payload={
            "error": "UPSTREAM_ERROR",
            "message": "Invalid response from Supabase.",
            "fields": [],
            "request_id": _request_id(),
        },
    )


def parse_session(data: Any) -> Session:
    if not isinstance(data, dict) or not data.get("access_token"):
        raise _invalid_response()
    expires_at = data.get("expires_at")
    if expires_at is None and data.get("expires_in") is not None:
        expires_at = int(time.time()) + int(data["expires_in"])
    return Session(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token", ""),
        expires_at=expires_at,
        user=User.model_validate(data["user"]) if isinstance(data.get("user"), dict) else None,
    )


class SupabaseClient:
    """Thin async client over the Supabase auth (GoTrue) and table (PostgREST) APIs.

    The client is cheap to build: every call opens its own httpx client, so an
    instance can be created per request and bound to that request's token.
    """

    def __init__(self, settings: Settings, access_token: str | None = None, timeout: float = 10.0):
        self.settings = settings
        self.access_token = access_token
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return self.settings.supabase_configured

    def with_token(self, access_token: str | None) -> SupabaseClient:
        return SupabaseClient(self.settings, access_token=access_token, timeout=self.timeout)

    async def request(
        self,
        *,
        method: str,
        path: str,
        json_data: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        authenticated: bool = True,
    ) -> Any:
        if not self.configured:
            raise SupabaseNotConfigured()

        request_headers = {"apikey": self.settings.SUPABASE_ANON_KEY}
        if authenticated and self.access_token:
            request_headers["Authorization"] = f"Bearer {self.access_token}"
        else:
            request_headers["Authorization"] = f"Bearer {self.settings.SUPABASE_ANON_KEY}"
        if headers:
            request_headers.update(headers)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(
                    method=method,
                    url=f"{self.settings.SUPABASE_URL}{path}",
                    headers=request_headers,
                    json=json_data,
                    params=params,
                )
        except httpx.RequestError as exc:
            raise SupabaseError(
                status_code=502,
                payload={
                    "error": "UPSTREAM_ERROR",
                    "message": "Supabase is unreachable.",
                    "fields": [],
                    "request_id": _request_id(),
                },
            ) from exc

        if 200 <= resp.status_code < 300:
            if not resp.content:
                return {}
            try:
                return resp.json()
            except ValueError:
                return {}

        try:
            upstream_data = resp.json()
        except ValueError:
            upstream_data = {"message": resp.text}

        normalized_status, payload = _normalize_http_error(resp.status_code, upstream_data)
        raise SupabaseError(status_code=normalized_status, payload=payload)

    # --- auth ---

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        data = await self.request(
            method="POST",
            path="/auth/v1/token",
            params={"grant_type": "password"},
            json_data={"email": email, "password": password},
            authenticated=False,
        )
        return parse_session(data)

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any] | None = None) -> User:
        data = await self.request(
            method="POST",
            path="/auth/v1/signup",
            json_data={"email": email, "password": password, "data": metadata or {}},
            authenticated=False,
        )
        # With auto-confirm on, GoTrue answers with a session wrapping the user.
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            data = data["user"]
        if not isinstance(data, dict) or not data.get("id"):
            raise _invalid_response()
        return User.model_validate(data)

    def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        """Return the authorize URL the browser must be sent to."""
        if not self.configured:
            raise SupabaseNotConfigured()
        provider = provider.strip().lower()
        if provider not in self.settings.oauth_providers:
            raise SupabaseError(
                status_code=400,
                payload={
                    "error": "AUTH_ERROR",
                    "message": f"Unsupported provider: {provider}",
                    "fields": [{"name": "provider", "reason": "unsupported"}],
                    "request_id": _request_id(),
                },
            )
        query = urlencode({"provider": provider, "redirect_to": redirect_to})
        return f"{self.settings.SUPABASE_URL}/auth/v1/authorize?{query}"

    async def refresh_session(self, refresh_token: str) -> Session:
        data = await self.request(
            method="POST",
            path="/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json_data={"refresh_token": refresh_token},
            authenticated=False,
        )
        return parse_session(data)

    async def sign_out(self) -> None:
        if not self.access_token:
            return
        await self.request(method="POST", path="/auth/v1/logout")

    async def get_user(self) -> User | None:
        if not self.access_token:
            return None
        try:
            data = await self.request(method="GET", path="/auth/v1/user")
        except SupabaseError as exc:
            if exc.status_code == 401:
                return None
            raise
        if not isinstance(data, dict) or not data.get("id"):
            return None
        return User.model_validate(data)

    # --- tables ---

    async def insert(self, table: str, rows: dict[str, Any] | list[dict[str, Any]]) -> list[dict[str, Any]]:
        data = await self.request(
            method="POST",
            path=f"/rest/v1/{table}",
            json_data=rows,
            headers={"Prefer": "return=representation"},
        )
        if isinstance(data, dict):
            return [data] if data else []
        return [item for item in data if isinstance(item, dict)]

    async def select(
        self,
        table: str,
        *,
        eq: dict[str, Any] | None = None,
        order: str | None = None,
        ascending: bool = True,
        columns: str = "*",
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"select": columns}
        for column, value in (eq or {}).items():
            params[column] = f"eq.{value}"
        if order:
            params["order"] = f"{order}.{'asc' if ascending else 'desc'}"

        data = await self.request(method="GET", path=f"/rest/v1/{table}", params=params)
        if not isinstance(data, list):
            raise _invalid_response()
        return [item for item in data if isinstance(item, dict)]
