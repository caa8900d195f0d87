import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from recipe_share.app.services.identity_provider import code_challenge, verify_token

from tests.conftest import USER_ID, bearer, make_token

IDENTITY_URL = "https://id.test"


@pytest.fixture
def identity_settings(settings, monkeypatch):
    monkeypatch.setattr(settings, "identity_base_url", IDENTITY_URL)
    monkeypatch.setattr(settings, "identity_anon_key", "anon-key")
    monkeypatch.setattr(settings, "auth_cookie_secure", False)
    return settings


def set_cookie_headers(response):
    return response.headers.get_list("set-cookie")


def test_user_requires_auth(client):
    response = client.get("/api/auth/user")
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Authentication required"}


def test_invalid_token_rejected(client):
    response = client.get("/api/auth/user", headers=bearer("not-a-real-token"))
    assert response.status_code == 401


def test_token_for_wrong_audience_rejected(client, settings):
    token = make_token(USER_ID, "user1@example.com", settings, aud="someone-else")
    assert client.get("/api/auth/user", headers=bearer(token)).status_code == 401


def test_user_with_bearer_token(client, auth_headers):
    response = client.get("/api/auth/user", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"user": {"id": USER_ID, "email": "user1@example.com", "profile": None}}


def test_user_with_cookie_token(client, user_token):
    client.cookies.set("access_token", user_token)
    response = client.get("/api/auth/user")
    assert response.status_code == 200
    assert response.json()["user"]["id"] == USER_ID


def test_user_includes_profile(client, auth_headers):
    client.post("/api/profiles", json={"handle": "amy", "displayName": "Amy"}, headers=auth_headers)
    profile = client.get("/api/auth/user", headers=auth_headers).json()["user"]["profile"]
    assert profile["handle"] == "amy"


def test_demo_mode_acts_as_demo_user(client, settings, monkeypatch):
    monkeypatch.setattr(settings, "auth_demo_mode", True)
    response = client.get("/api/auth/user")
    assert response.status_code == 200
    assert response.json()["user"]["id"] == settings.auth_demo_user_id


def test_verify_token_without_audience(settings, monkeypatch):
    monkeypatch.setattr(settings, "auth_jwt_audience", None)
    token = make_token(USER_ID, "user1@example.com", settings, aud="anything")
    user = verify_token(token, settings)
    assert user is not None and user.id == USER_ID


def test_sign_in_google_returns_authorize_url(client, identity_settings):
    response = client.post("/api/auth/sign-in", json={"provider": "google"})
    assert response.status_code == 200
    url = urlparse(response.json()["url"])
    query = parse_qs(url.query)
    assert f"{url.scheme}://{url.netloc}{url.path}" == f"{IDENTITY_URL}/auth/v1/authorize"
    assert query["provider"] == ["google"]
    assert query["code_challenge_method"] == ["s256"]
    assert query["redirect_to"] == ["http://testserver/api/auth/callback"]

    verifier = client.cookies.get("pkce_verifier")
    assert verifier
    assert query["code_challenge"] == [code_challenge(verifier)]
    assert any("HttpOnly" in header for header in set_cookie_headers(response))


def test_sign_in_email_sends_magic_link(client, identity_settings, mock_httpx):
    seen = {}

    async def handler(request):
        seen["path"] = request.url.path
        seen["redirect_to"] = request.url.params.get("redirect_to")
        seen["apikey"] = request.headers.get("apikey")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={})

    mock_httpx(handler)
    response = client.post(
        "/api/auth/sign-in",
        json={"provider": "email", "email": "cook@example.com", "redirectTo": "https://app.test/cb"},
    )
    assert response.status_code == 200
    assert response.json() == {"message": "Check your email for the login link!", "data": {}}
    assert seen["path"] == "/auth/v1/otp"
    assert seen["redirect_to"] == "https://app.test/cb"
    assert seen["apikey"] == "anon-key"
    assert seen["body"]["email"] == "cook@example.com"
    assert seen["body"]["code_challenge"] == code_challenge(client.cookies.get("pkce_verifier"))


def test_sign_in_phone_sends_otp(client, identity_settings, mock_httpx):
    async def handler(request):
        assert json.loads(request.content)["phone"] == "+15551234567"
        return httpx.Response(200, json={"message_id": "abc"})

    mock_httpx(handler)
    response = client.post("/api/auth/sign-in", json={"provider": "phone", "phone": "+15551234567"})
    assert response.status_code == 200
    assert response.json() == {"message": "Check your phone for the verification code!", "data": {"message_id": "abc"}}


@pytest.mark.parametrize(
    "payload",
    [{"provider": "email"}, {"provider": "phone"}, {"provider": "github"}, {}],
)
def test_sign_in_rejects_bad_provider(client, identity_settings, payload):
    response = client.post("/api/auth/sign-in", json=payload)
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid provider or missing email/phone"}


def test_sign_in_surfaces_provider_error(client, identity_settings, mock_httpx):
    async def handler(request):
        return httpx.Response(422, json={"msg": "Unable to validate email address"})

    mock_httpx(handler)
    response = client.post("/api/auth/sign-in", json={"provider": "email", "email": "nope"})
    assert response.status_code == 400
    assert response.json()["error"] == "Unable to validate email address"


def test_sign_in_transport_failure_is_500(client, identity_settings, mock_httpx):
    async def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    mock_httpx(handler)
    response = client.post("/api/auth/sign-in", json={"provider": "phone", "phone": "+15551234567"})
    assert response.status_code == 500
    assert response.json()["error"] == "Internal server error"


def test_callback_exchanges_code_and_sets_cookies(client, identity_settings, mock_httpx):
    seen = {}

    async def handler(request):
        seen["grant_type"] = request.url.params.get("grant_type")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"access_token": "access-123", "refresh_token": "refresh-456", "user": {"id": USER_ID}},
        )

    mock_httpx(handler)
    client.cookies.set("pkce_verifier", "verifier-abc")
    response = client.get(
        "/api/auth/callback",
        params={"code": "code-xyz", "next": "/recipes/new"},
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/recipes/new"
    assert seen == {"grant_type": "pkce", "body": {"auth_code": "code-xyz", "code_verifier": "verifier-abc"}}

    cookies = " ".join(set_cookie_headers(response))
    assert "access_token=access-123" in cookies
    assert "refresh_token=refresh-456" in cookies
    assert "pkce_verifier=" in cookies


@pytest.mark.parametrize("next_path", ["https://evil.test/", "//evil.test", "relative"])
def test_callback_ignores_unsafe_next(client, identity_settings, mock_httpx, next_path):
    async def handler(request):
        return httpx.Response(200, json={"access_token": "access-123"})

    mock_httpx(handler)
    client.cookies.set("pkce_verifier", "verifier-abc")
    response = client.get("/api/auth/callback", params={"code": "c", "next": next_path}, follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/"


def test_callback_without_code_redirects_to_error(client, identity_settings):
    response = client.get("/api/auth/callback", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/auth/auth-code-error"


def test_callback_failed_exchange_redirects_to_error(client, identity_settings, mock_httpx):
    async def handler(request):
        return httpx.Response(400, json={"error_description": "invalid flow state"})

    mock_httpx(handler)
    client.cookies.set("pkce_verifier", "verifier-abc")
    response = client.get("/api/auth/callback", params={"code": "stale"}, follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/auth/auth-code-error"


def test_sign_out_revokes_and_clears_cookies(client, identity_settings, mock_httpx, user_token):
    seen = {}

    async def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(204)

    mock_httpx(handler)
    client.cookies.set("access_token", user_token)
    response = client.post("/api/auth/sign-out")
    assert response.status_code == 200
    assert response.json() == {"message": "Signed out successfully"}
    assert seen == {"path": "/auth/v1/logout", "auth": f"Bearer {user_token}"}
    assert any(h.startswith("access_token=") for h in set_cookie_headers(response))


def test_sign_out_survives_provider_failure(client, identity_settings, mock_httpx, auth_headers):
    async def handler(request):
        return httpx.Response(500, json={"msg": "down"})

    mock_httpx(handler)
    response = client.post("/api/auth/sign-out", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Signed out successfully"}
