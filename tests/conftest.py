import time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from guiapet.core.config import Settings, get_settings
from guiapet.models.auth import Session, User
from guiapet.services.session import SessionContext

SUPABASE = "http://test-supabase"
USER_ID = "5f0c7a52-1111-4c1e-9d0a-000000000001"
JWT_SECRET = "test-jwt-secret-that-is-long-enough"

TEST_SETTINGS = Settings(
    SUPABASE_URL=SUPABASE,
    SUPABASE_ANON_KEY="test-anon-key",
    SUPABASE_JWT_SECRET=JWT_SECRET,
    APP_PUBLIC_URL="http://testserver",
    LOG_LEVEL="debug",
)

UNCONFIGURED_SETTINGS = Settings(
    SUPABASE_URL="",
    SUPABASE_ANON_KEY="",
    APP_PUBLIC_URL="http://testserver",
)


def make_access_token(user_id: str = USER_ID, expires_in: int = 3600, secret: str = JWT_SECRET) -> str:
    claims = {
        "sub": user_id,
        "email": "tutor@example.com",
        "aud": "authenticated",
        "role": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(claims, secret, algorithm="HS256")


def session_payload(user_id: str = USER_ID, access_token: str | None = None) -> dict:
    return {
        "access_token": access_token or make_access_token(user_id),
        "refresh_token": "refresh-token",
        "expires_in": 3600,
        "token_type": "bearer",
        "user": {"id": user_id, "email": "tutor@example.com"},
    }


def signed_in_context(user_id: str = USER_ID, settings: Settings = TEST_SETTINGS) -> SessionContext:
    session = Session(
        access_token=make_access_token(user_id),
        refresh_token="refresh-token",
        user=User(id=user_id, email="tutor@example.com"),
    )
    return SessionContext(settings, session=session)


def pet_row(pet_id: str, name: str = "Rex", created_at: str = "2026-01-01T10:00:00+00:00", **extra) -> dict:
    row = {
        "id": pet_id,
        "user_id": USER_ID,
        "name": name,
        "breed": "Vira-lata",
        "age": "2 anos",
        "weight": "12 kg",
        "photo_url": None,
        "health_status": "Saudável",
        "created_at": created_at,
        "updated_at": created_at,
    }
    row.update(extra)
    return row


def vaccine_row(vaccine_id: str, pet_id: str, name: str, next_date: str, date: str = "2025-10-01") -> dict:
    return {
        "id": vaccine_id,
        "pet_id": pet_id,
        "name": name,
        "date": date,
        "next_date": next_date,
        "notes": None,
        "created_at": "2025-10-01T10:00:00+00:00",
        "updated_at": "2025-10-01T10:00:00+00:00",
    }


@pytest.fixture(autouse=True)
def _reset_warn_once():
    """warn_once keeps module state; start every test with a clean slate."""
    import guiapet.core.logging as _logging

    _logging._warned.clear()
    yield
    _logging._warned.clear()


def _make_client(settings: Settings):
    from guiapet.main import app

    # Patch at both levels: FastAPI DI and direct module calls (lifespan, middleware)
    app.dependency_overrides[get_settings] = lambda: settings
    with (
        patch("guiapet.main.get_settings", return_value=settings),
        patch("guiapet.core.session_gate.get_settings", return_value=settings),
    ):
        with TestClient(app) as c:
            yield c
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    yield from _make_client(TEST_SETTINGS)


@pytest.fixture
def unconfigured_client():
    yield from _make_client(UNCONFIGURED_SETTINGS)


@pytest.fixture
def authed_client(client):
    client.cookies.set("sb-access-token", make_access_token())
    client.cookies.set("sb-refresh-token", "refresh-token")
    return client
