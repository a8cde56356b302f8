"""
Tests for login, guest, GitHub OAuth and session routes
"""

import asyncio

import httpx
import pytest

from edge_gateway.models import Environment, RouteTag
from edge_gateway.services.auth_service import hash_credential, normalize_route
from tests.helpers import assert_envelope


class TestAdminLogin:
    """Password login against the account store"""

    def test_login_success(self, client, tokens):
        response = client.post("/auth/login", json={"username": "ada", "password": "correct-horse"})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["user"] == {"username": "ada", "role": "owner"}

        claims = tokens.decode(data["token"])
        assert claims.route_tag == RouteTag.AUTH
        assert claims.project_id == "ada"
        assert claims.scopes == ["owner"]
        assert claims.environment == Environment.PRODUCTION

    def test_login_defaults_username_and_role(self, client):
        response = client.post("/auth/login", json={"username": "grace", "password": "hopper"})
        assert response.status_code == 200
        assert response.json()["user"] == {"username": "grace", "role": "admin"}

    def test_wrong_password_and_unknown_user_are_indistinguishable(self, client):
        wrong_password = client.post("/auth/login", json={"username": "ada", "password": "nope"})
        unknown_user = client.post("/auth/login", json={"username": "nobody", "password": "nope"})

        first = assert_envelope(wrong_password, 401, "INVALID_CREDENTIALS", RouteTag.AUTH)
        second = assert_envelope(unknown_user, 401, "INVALID_CREDENTIALS", RouteTag.AUTH)
        assert first["message"] == second["message"]

    def test_missing_fields(self, client):
        response = client.post("/auth/login", json={"username": "ada"})
        body = assert_envelope(response, 400, "INVALID_REQUEST", RouteTag.AUTH)
        assert any(err["field"].endswith("password") for err in body["details"]["errors"])

    def test_malformed_body(self, client):
        response = client.post("/auth/login", content=b"not json", headers={"Content-Type": "application/json"})
        assert_envelope(response, 400, "INVALID_REQUEST", RouteTag.AUTH)

    def test_malformed_record_is_rejected(self, client, accounts):
        asyncio.run(accounts.put("auth/admins/broken.json", "{not json"))
        response = client.post("/auth/login", json={"username": "broken", "password": "x"})
        assert_envelope(response, 401, "INVALID_CREDENTIALS", RouteTag.AUTH)

    def test_core_login_issues_core_token(self, client, tokens):
        response = client.post("/core/auth/login", json={"username": "ada", "password": "correct-horse"})
        assert response.status_code == 200
        data = response.json()
        assert data["user"] == {"username": "ada", "role": "owner"}
        assert tokens.decode(data["token"]).route_tag == RouteTag.CORE

    def test_core_login_failure_is_labelled_core(self, client):
        response = client.post("/core/auth/login", json={"username": "ada", "password": "bad"})
        assert_envelope(response, 401, "INVALID_CREDENTIALS", RouteTag.CORE)


def test_hash_credential_format():
    # base64 of a sha256 digest is always 44 characters
    assert len(hash_credential("salt", "password")) == 44
    assert hash_credential("a", "bc") == hash_credential("ab", "c")


class TestGuestToken:
    """Guest tokens never require credentials"""

    @pytest.mark.parametrize("body,expected", [
        ({"route": "KV"}, RouteTag.KV),
        ({"route": "kv"}, RouteTag.KV),
        ({"route": "Core"}, RouteTag.CORE),
        ({"route": "webhook"}, RouteTag.WEBHOOK),
        ({"route": "nonsense"}, RouteTag.BUILD),
        ({"route": 42}, RouteTag.BUILD),
        ({}, RouteTag.BUILD),
    ])
    def test_route_normalization(self, client, tokens, body, expected):
        response = client.post("/auth/guest", json=body)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["route"] == expected.value

        claims = tokens.decode(data["token"])
        assert claims.route_tag == expected
        assert claims.scopes == ["guest"]
        assert claims.environment == Environment.STAGING
        assert claims.project_id == "guest"

    @pytest.mark.parametrize("content", [b"", b"{broken", b"[1, 2]"])
    def test_unparseable_body_still_succeeds(self, client, tokens, content):
        response = client.post("/auth/guest", content=content, headers={"Content-Type": "application/json"})
        assert response.status_code == 200
        assert tokens.decode(response.json()["token"]).route_tag == RouteTag.BUILD

    def test_normalize_route(self):
        assert normalize_route(None) == RouteTag.BUILD
        assert normalize_route("  base ") == RouteTag.BASE


def github_handler(token_response: httpx.Response, profile_response: httpx.Response):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "github.com":
            return token_response
        if request.url.host == "api.github.com":
            return profile_response
        return httpx.Response(404)
    return handler


class TestGithubOAuth:
    """GitHub code exchange"""

    def test_success(self, client, upstream, tokens):
        upstream.handler = github_handler(
            httpx.Response(200, json={"access_token": "gho_123"}),
            httpx.Response(200, json={"login": "octocat", "name": "The Octocat", "avatar_url": "https://a/b.png"}),
        )
        response = client.post("/core/auth/github", json={"code": "abc123456", "redirectUri": "https://app/cb"})

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["username"] == "octocat"
        assert data["user"]["role"] == "admin"
        assert data["user"]["avatarUrl"] == "https://a/b.png"
        claims = tokens.decode(data["token"])
        assert claims.route_tag == RouteTag.CORE
        assert claims.scopes == ["admin"]

        exchange, profile = upstream.requests
        assert b'"redirect_uri":"https://app/cb"' in exchange.content.replace(b" ", b"")
        assert profile.headers["Authorization"] == "Bearer gho_123"

    def test_missing_login_uses_code_suffix(self, client, upstream):
        upstream.handler = github_handler(
            httpx.Response(200, json={"access_token": "gho_123"}),
            httpx.Response(200, json={"id": 1}),
        )
        response = client.post("/core/auth/github", json={"code": "xyz987654"})
        assert response.json()["user"]["username"] == "github-987654"

    def test_not_configured(self, client, settings, upstream):
        settings.github_client_secret = None
        response = client.post("/core/auth/github", json={"code": "abc"})
        assert_envelope(response, 500, "GITHUB_NOT_CONFIGURED", RouteTag.CORE)
        assert upstream.requests == []

    @pytest.mark.parametrize("token_response", [
        httpx.Response(200, json={"error": "bad_verification_code"}),
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="not json"),
    ])
    def test_token_exchange_failure(self, client, upstream, token_response):
        upstream.handler = github_handler(token_response, httpx.Response(200, json={"login": "x"}))
        response = client.post("/core/auth/github", json={"code": "abc"})
        assert_envelope(response, 502, "GITHUB_AUTH_FAILED", RouteTag.CORE)

    def test_profile_failure(self, client, upstream):
        upstream.handler = github_handler(
            httpx.Response(200, json={"access_token": "gho_123"}),
            httpx.Response(401, json={"message": "Bad credentials"}),
        )
        response = client.post("/core/auth/github", json={"code": "abc"})
        assert_envelope(response, 502, "GITHUB_AUTH_FAILED", RouteTag.CORE)

    def test_transport_failure(self, client, upstream):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)
        upstream.handler = handler
        response = client.post("/core/auth/github", json={"code": "abc"})
        assert_envelope(response, 502, "GITHUB_AUTH_FAILED", RouteTag.CORE)

    def test_missing_code(self, client):
        response = client.post("/core/auth/github", json={})
        assert_envelope(response, 400, "INVALID_REQUEST", RouteTag.CORE)


class TestSession:
    """Stateless session echo, refresh and logout"""

    def test_session_get_echoes_token(self, client, issue_token):
        token = issue_token(RouteTag.CORE, project_id="ada", scopes=["owner"])
        response = client.get("/core/session", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        data = response.json()
        assert data["token"] == token
        assert data["user"] == {"username": "ada", "role": "owner"}

    def test_session_get_accepts_auth_tokens(self, client, issue_token):
        token = issue_token(RouteTag.AUTH)
        response = client.get("/core/session", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200

    def test_session_get_missing_token(self, client):
        response = client.get("/core/session")
        assert_envelope(response, 401, "INVALID_SESSION", RouteTag.CORE)

    def test_session_get_wrong_route(self, client, issue_token):
        token = issue_token(RouteTag.KV)
        response = client.get("/core/session", headers={"Authorization": f"Bearer {token}"})
        assert_envelope(response, 403, "INVALID_SESSION", RouteTag.CORE)

    def test_refresh_issues_new_core_token(self, client, tokens, issue_token):
        token = issue_token(RouteTag.AUTH, project_id="ada", scopes=["owner", "extra"], environment="staging")
        response = client.post("/core/session/refresh", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        claims = tokens.decode(response.json()["token"])
        assert claims.project_id == "ada"
        assert claims.scopes == ["owner"]
        assert claims.route_tag == RouteTag.CORE
        assert claims.environment == Environment.STAGING

    def test_refresh_invalid_token(self, client):
        response = client.post("/core/session/refresh", headers={"Authorization": "Bearer garbage"})
        assert_envelope(response, 403, "REFRESH_FAILED", RouteTag.CORE)

    def test_refresh_missing_token(self, client):
        response = client.post("/core/session/refresh")
        assert_envelope(response, 401, "REFRESH_FAILED", RouteTag.CORE)

    def test_logout_always_succeeds(self, client):
        response = client.post("/core/logout")
        assert response.status_code == 200
        assert response.json()["success"] is True
