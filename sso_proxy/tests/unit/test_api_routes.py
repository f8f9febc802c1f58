"""
Tests for the proxy API endpoints.

- /api/auth/* (manual login, signed upstream calls)
- /api/oauth/* (authorization code + PKCE)
- /health
"""
import json
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from fastapi.testclient import TestClient

from sso_proxy.api.dependencies import get_sso_client
from sso_proxy.api.main import create_app
from sso_proxy.core.pkce import code_challenge_for
from sso_proxy.core.signing.verify import verify_signed_request
from sso_proxy.core.sso_client import SSOClient


class FakeIdentityServer:
    """MockTransport handler with per-path responses."""

    def __init__(self):
        self.responses = {}
        self.requests = []

    def respond(self, path, status_code=200, payload=None):
        self.responses[path] = (status_code, payload if payload is not None else {"ok": True})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status_code, payload = self.responses.get(request.url.path, (200, {"ok": True}))
        if isinstance(payload, str):
            return httpx.Response(status_code, text=payload)
        return httpx.Response(status_code, json=payload)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def idp():
    return FakeIdentityServer()


def _make_client(settings, idp):
    app = create_app(settings)
    app.dependency_overrides[get_sso_client] = lambda: SSOClient(settings, transport=httpx.MockTransport(idp))
    return TestClient(app)


@pytest.fixture
def api(settings, idp):
    return _make_client(settings, idp)


class TestHealth:
    def test_health(self, api):
        response = api.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["manual_login_configured"] is True
        assert response.json()["oauth_configured"] is True

    def test_security_headers(self, api):
        response = api.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_explicit_settings_reach_routes(self, settings):
        api = TestClient(create_app(settings))

        health = api.get("/health").json()
        assert health["manual_login_configured"] is True
        assert health["oauth_configured"] is True

        authorize = api.get("/api/oauth/authorize").json()
        params = parse_qs(urlsplit(authorize["authorizationUrl"]).query)
        assert params["ClientId"] == ["demo-client"]

    def test_explicit_settings_not_shared_between_apps(self, settings):
        unconfigured = settings.model_copy(update={"client_id": "", "key_id": ""})
        configured_app = create_app(settings)
        bare_app = create_app(unconfigured)

        assert TestClient(configured_app).get("/health").json()["oauth_configured"] is True
        health = TestClient(bare_app).get("/health").json()
        assert health["oauth_configured"] is False
        assert health["manual_login_configured"] is False


class TestManualLogin:
    """POST /api/auth/login and friends."""

    def test_login_proxied_and_signed(self, api, idp, public_key):
        idp.respond("/api/public/login", payload={"accessToken": "a", "refreshToken": "r"})
        body = {"identifier": "user@example.com", "password": "hunter2"}

        response = api.post("/api/auth/login", json=body, headers={"x-pass-source": "otp"})

        assert response.status_code == 200
        assert response.json() == {"accessToken": "a", "refreshToken": "r"}
        upstream = idp.last
        assert upstream.headers["x-username-source"] == "npk"
        assert upstream.headers["x-pass-source"] == "otp"
        result = verify_signed_request(
            public_key, upstream.method, str(upstream.url), json.loads(upstream.content), upstream.headers,
        )
        assert result.success, result.error_message

    def test_login_upstream_error(self, api, idp):
        idp.respond("/api/public/login", status_code=401, payload="Invalid credentials")

        response = api.post("/api/auth/login", json={"identifier": "u", "password": "bad"})

        assert response.status_code == 401
        assert response.json() == {"error": "login_failed", "message": "Invalid credentials"}

    def test_login_unreachable_upstream(self, settings):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        app = create_app(settings)
        app.dependency_overrides[get_sso_client] = lambda: SSOClient(settings, transport=httpx.MockTransport(refuse))
        response = TestClient(app).post("/api/auth/login", json={"identifier": "u", "password": "p"})

        assert response.status_code == 502
        assert response.json()["error"] == "login_failed"

    def test_signing_misconfigured(self, settings, idp):
        broken = settings.model_copy(update={"key_id": ""})
        api = _make_client(broken, idp)

        response = api.post("/api/auth/login", json={"identifier": "u", "password": "p"})

        assert response.status_code == 500
        assert response.json()["error"] == "server_error"
        assert "error_id" in response.json()
        assert idp.requests == []

    def test_me_requires_bearer(self, api, idp):
        response = api.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["error"] == "invalid_token"
        assert idp.requests == []

    def test_me_rejects_non_bearer(self, api):
        response = api.get("/api/auth/me", headers={"Authorization": "Basic dXNlcjpwYXNz"})
        assert response.status_code == 401

    def test_me(self, api, idp):
        idp.respond("/api/public/me", payload={"id": "u-1", "email": "user@example.com"})

        response = api.get("/api/auth/me", headers={"Authorization": "Bearer access-1"})

        assert response.status_code == 200
        assert response.json()["id"] == "u-1"
        assert idp.last.method == "GET"
        assert idp.last.headers["Authorization"] == "Bearer access-1"

    def test_me_upstream_error(self, api, idp):
        idp.respond("/api/public/me", status_code=403, payload="Forbidden")
        response = api.get("/api/auth/me", headers={"Authorization": "Bearer access-1"})
        assert response.status_code == 403
        assert response.json()["error"] == "fetch_failed"

    def test_update_profile(self, api, idp):
        response = api.put(
            "/api/auth/update-profile",
            json={"name": "Ada"},
            headers={"Authorization": "Bearer access-1"},
        )
        assert response.status_code == 200
        assert idp.last.method == "PUT"
        assert idp.last.url.path == "/api/public/me"

    def test_refresh(self, api, idp):
        response = api.post("/api/auth/refresh", json={"refreshToken": "rt"})
        assert response.status_code == 200
        assert idp.last.url.path == "/api/public/me/refresh-token"

    def test_refresh_upstream_error(self, api, idp):
        idp.respond("/api/public/me/refresh-token", status_code=400, payload="expired")
        response = api.post("/api/auth/refresh", json={"refreshToken": "rt"})
        assert response.json() == {"error": "refresh_failed", "message": "expired"}

    def test_logout(self, api, idp):
        response = api.post("/api/auth/logout", headers={"Authorization": "Bearer access-1"})
        assert response.status_code == 200
        assert idp.last.url.path == "/api/public/logout"

    def test_logout_requires_bearer(self, api):
        assert api.post("/api/auth/logout").status_code == 401

    def test_pre_token_claims(self, api, idp):
        response = api.post("/api/auth/pre-token/claims", json={"userId": "u-1"})
        assert response.status_code == 200
        assert idp.last.url.path == "/api/public/pre-token/claims"

    def test_reset_password_forwards_provider(self, api, idp):
        response = api.post(
            "/api/auth/reset-password/reset",
            json={"token": "t", "newPassword": "n"},
            headers={"x-reset-provider": "email"},
        )
        assert response.status_code == 200
        assert idp.last.headers["x-reset-provider"] == "email"

    def test_reset_password_upstream_error(self, api, idp):
        idp.respond("/api/public/reset-password/reset", status_code=422, payload="weak password")
        response = api.post("/api/auth/reset-password/reset", json={"token": "t", "newPassword": "n"})
        assert response.status_code == 422
        assert response.json()["error"] == "password_reset_failed"


class TestOAuth:
    """Authorization code + PKCE routes."""

    def test_authorize(self, api):
        response = api.get("/api/oauth/authorize")

        assert response.status_code == 200
        data = response.json()
        assert code_challenge_for(data["codeVerifier"]) == data["codeChallenge"]

        parts = urlsplit(data["authorizationUrl"])
        params = {k: v[0] for k, v in parse_qs(parts.query).items()}
        assert parts.netloc == "sso.example.com"
        assert parts.path == "/oauth/authorize"
        assert params["ClientId"] == "demo-client"
        assert params["ResponseType"] == "code"
        assert params["RedirectUri"] == "http://localhost:3000/oauth/callback"
        assert params["State"] == data["state"]
        assert params["Nonce"] == data["nonce"]
        assert params["CodeChallenge"] == data["codeChallenge"]
        assert params["CodeChallengeMethod"] == "S256"

    def test_authorize_without_client_id(self, settings, idp):
        api = _make_client(settings.model_copy(update={"client_id": ""}), idp)
        response = api.get("/api/oauth/authorize")
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_client"

    def test_token_authorization_code(self, api, idp):
        idp.respond("/api/public/oauth/token", payload={"access_token": "a", "token_type": "Bearer"})

        response = api.post(
            "/api/oauth/token",
            json={"code": "c", "redirectUri": "http://localhost:3000/oauth/callback", "codeVerifier": "v"},
        )

        assert response.status_code == 200
        assert response.json()["access_token"] == "a"
        sent = json.loads(idp.last.content)
        assert sent["grantType"] == "authorization_code"
        assert sent["clientId"] == "demo-client"
        assert sent["clientSecret"] == "demo-secret"
        assert "X-Signature" not in idp.last.headers

    def test_token_refresh_grant_inferred(self, api, idp):
        response = api.post("/api/oauth/token", json={"refreshToken": "rt", "scope": "openid"})

        assert response.status_code == 200
        sent = json.loads(idp.last.content)
        assert sent["grantType"] == "refresh_token"
        assert sent["refreshToken"] == "rt"
        assert sent["scope"] == "openid"

    def test_token_missing_params(self, api, idp):
        response = api.post("/api/oauth/token", json={"code": "c"})
        assert response.status_code == 400
        assert response.json() == {"error": "invalid_request", "errorDescription": "Missing required params"}
        assert idp.requests == []

    def test_token_refresh_grant_without_token(self, api):
        response = api.post("/api/oauth/token", json={"grantType": "refresh_token"})
        assert response.status_code == 400
        assert response.json()["errorDescription"] == "Missing refresh_token"

    def test_token_upstream_error(self, api, idp):
        idp.respond("/api/public/oauth/token", status_code=400, payload="invalid_grant")
        response = api.post("/api/oauth/token", json={"code": "c", "redirectUri": "r", "codeVerifier": "v"})
        assert response.status_code == 400
        assert response.json() == {"error": "token_error", "errorDescription": "invalid_grant"}

    def test_revoke(self, api, idp):
        response = api.post("/api/oauth/revoke", json={"token": "rt", "tokenTypeHint": "refresh_token"})
        assert response.status_code == 200
        assert response.json() == {"status": True, "message": "Token revoked successfully"}
        assert json.loads(idp.last.content)["tokenTypeHint"] == "refresh_token"

    def test_revoke_missing_token(self, api):
        response = api.post("/api/oauth/revoke", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    def test_revoke_upstream_error(self, api, idp):
        idp.respond("/api/public/oauth/revoke", status_code=500, payload="boom")
        response = api.post("/api/oauth/revoke", json={"token": "rt"})
        assert response.status_code == 500
        assert response.json()["error"] == "revoke_error"

    def test_userinfo(self, api, idp):
        idp.respond("/api/public/oauth/userinfo", payload={"sub": "u-1"})

        response = api.get("/api/oauth/userinfo", headers={"Authorization": "Bearer access-1"})

        assert response.status_code == 200
        assert response.json() == {"sub": "u-1"}
        assert idp.last.method == "POST"
        assert idp.last.headers["Tenant"] == "demo-app"

    def test_userinfo_requires_bearer(self, api):
        response = api.get("/api/oauth/userinfo")
        assert response.status_code == 401
        assert response.json()["error"] == "invalid_token"
        assert "errorDescription" in response.json()

    def test_userinfo_upstream_error(self, api, idp):
        idp.respond("/api/public/oauth/userinfo", status_code=401, payload="expired")
        response = api.get("/api/oauth/userinfo", headers={"Authorization": "Bearer access-1"})
        assert response.status_code == 401
        assert response.json()["error"] == "userinfo_error"
