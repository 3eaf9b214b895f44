from unittest.mock import patch

import httpx
import respx
from jose import jwt

from guiapet.core.session_gate import session_from_cookies
from tests.conftest import (
    JWT_SECRET,
    SUPABASE,
    TEST_SETTINGS,
    UNCONFIGURED_SETTINGS,
    USER_ID,
    make_access_token,
    session_payload,
)


def test_anonymous_request_redirects_to_login(client):
    resp = client.get("/dashboard?tab=vacinas", follow_redirects=False)

    assert resp.status_code == 307
    assert resp.headers["location"] == "http://testserver/login?tab=vacinas"


def test_anonymous_request_to_login_is_served(client):
    resp = client.get("/login", follow_redirects=False)

    assert resp.status_code == 200
    assert "GuiaPet" in resp.text


def test_signed_in_request_to_login_redirects_home(authed_client):
    resp = authed_client.get("/login", follow_redirects=False)

    assert resp.status_code == 307
    assert resp.headers["location"] == "http://testserver/"


def test_login_subpaths_count_as_login_surface(authed_client):
    resp = authed_client.get("/login/recuperar-senha", follow_redirects=False)

    assert resp.status_code == 307
    assert resp.headers["location"] == "http://testserver/"


@respx.mock
def test_signed_in_auth_api_call_is_not_redirected(authed_client):
    respx.post(f"{SUPABASE}/auth/v1/token", params={"grant_type": "password"}).mock(
        return_value=httpx.Response(200, json=session_payload())
    )

    resp = authed_client.post(
        "/auth/sign-in",
        json={"email": "tutor@example.com", "password": "secret1"},
        follow_redirects=False,
    )

    assert resp.status_code == 200
    assert resp.json()["redirect_to"] == "/"


def test_non_numeric_exp_claim_is_not_a_session():
    token = jwt.encode({"sub": USER_ID, "exp": "soon"}, JWT_SECRET, algorithm="HS256")

    assert session_from_cookies(token, "refresh-token", TEST_SETTINGS) is None
    assert session_from_cookies(token, "refresh-token", UNCONFIGURED_SETTINGS) is None


def test_non_numeric_exp_claim_redirects_to_login(client):
    client.cookies.set("sb-access-token", jwt.encode({"sub": USER_ID, "exp": "soon"}, JWT_SECRET, algorithm="HS256"))

    resp = client.get("/api/pets", follow_redirects=False)

    assert resp.status_code == 307
    assert resp.headers["location"] == "http://testserver/login"


def test_non_numeric_exp_claim_without_gate_is_unauthorized(unconfigured_client):
    unconfigured_client.cookies.set("sb-access-token", jwt.encode({"sub": USER_ID, "exp": "soon"}, "forged", algorithm="HS256"))

    resp = unconfigured_client.get("/api/pets", follow_redirects=False)

    assert resp.status_code == 401
    assert resp.json()["error"] == "UNAUTHORIZED"


def test_forged_token_is_not_a_session(client):
    client.cookies.set("sb-access-token", make_access_token(secret="some-other-secret"))

    resp = client.get("/", follow_redirects=False)

    assert resp.status_code == 307
    assert resp.headers["location"] == "http://testserver/login"


@respx.mock
def test_expired_token_is_refreshed_and_cookies_rewritten(client):
    renewed = session_payload(access_token=make_access_token(expires_in=7200))
    route = respx.post(f"{SUPABASE}/auth/v1/token", params={"grant_type": "refresh_token"}).mock(
        return_value=httpx.Response(200, json=renewed)
    )
    client.cookies.set("sb-access-token", make_access_token(expires_in=-60))
    client.cookies.set("sb-refresh-token", "old-refresh")

    resp = client.get("/login", follow_redirects=False)

    assert route.called
    assert resp.status_code == 307
    assert resp.headers["location"] == "http://testserver/"
    set_cookie = resp.headers.get_list("set-cookie")
    assert any(c.startswith(f"sb-access-token={renewed['access_token']}") for c in set_cookie)
    assert any(c.startswith("sb-refresh-token=refresh-token") for c in set_cookie)


@respx.mock
def test_rejected_refresh_token_redirects_and_clears_cookies(client):
    respx.post(f"{SUPABASE}/auth/v1/token").mock(
        return_value=httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid Refresh Token"})
    )
    client.cookies.set("sb-access-token", make_access_token(expires_in=-60))
    client.cookies.set("sb-refresh-token", "revoked")

    resp = client.get("/", follow_redirects=False)

    assert resp.status_code == 307
    assert resp.headers["location"] == "http://testserver/login"
    set_cookie = " ".join(resp.headers.get_list("set-cookie"))
    assert 'sb-access-token=""' in set_cookie or "sb-access-token=;" in set_cookie


@respx.mock
def test_collaborator_error_fails_open(client):
    respx.post(f"{SUPABASE}/auth/v1/token").mock(side_effect=httpx.ConnectError("connection refused"))
    client.cookies.set("sb-refresh-token", "some-refresh")

    resp = client.get("/login", follow_redirects=False)

    # Request proceeds to the login page instead of being bounced around.
    assert resp.status_code == 200


def test_unconfigured_gate_lets_everything_through(unconfigured_client):
    with patch("guiapet.core.logging.get_logger") as get_logger:
        resp = unconfigured_client.get("/login", follow_redirects=False)
        assert resp.status_code == 200

        resp = unconfigured_client.get("/dashboard", follow_redirects=False)
        # No redirect to /login: the route simply does not exist.
        assert resp.status_code == 404

    warnings = [
        c for c in get_logger.return_value.warning.call_args_list
        if c.args and c.args[0] == "session_gate_disabled"
    ]
    assert len(warnings) == 1


@respx.mock
def test_health_is_exempt_from_gate(client):
    respx.get(f"{SUPABASE}/auth/v1/health").mock(return_value=httpx.Response(200, json={}))

    resp = client.get("/health", follow_redirects=False)

    assert resp.status_code == 200


def test_static_assets_are_exempt_from_gate(client):
    resp = client.get("/images/logo.png", follow_redirects=False)

    assert resp.status_code == 404


def test_signed_in_api_request_passes_gate(authed_client):
    with respx.mock:
        respx.get(f"{SUPABASE}/auth/v1/user").mock(
            return_value=httpx.Response(200, json={"id": USER_ID, "email": "tutor@example.com"})
        )
        respx.get(f"{SUPABASE}/rest/v1/pets").mock(return_value=httpx.Response(200, json=[]))
        resp = authed_client.get("/api/pets")

    assert resp.status_code == 200
    assert "x-request-id" in resp.headers
