"""
Pytest fixtures for gateway tests
"""

import json
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from edge_gateway.config import Settings, get_settings
from edge_gateway.main import app
from edge_gateway.models import RouteTag, TokenClaims
from edge_gateway.services.auth_service import hash_credential
from edge_gateway.services.token_service import TokenService
from edge_gateway.utils.account_store import InMemoryAccountStore, admin_record_key
from edge_gateway.utils.capabilities import GatewayCapabilities, get_capabilities
from tests.helpers import RecordingBackend

TEST_SECRET = "test-secret"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        gateway_jwt_secret=TEST_SECRET,
        build_service_url="https://build.example.com/",
        kv_service_url="https://kv.example.com",
        core_service_url="https://core.example.com/api",
        base_service_url=None,
        accounts_redis_url=None,
        github_client_id="client-id",
        github_client_secret="client-secret",
        notion_webhook_secret="secret",
        webhook_targets={"notion": ["BASE_SERVICE", "CORE_SERVICE"], "github": ["KV_SERVICE"]},
    )


@pytest.fixture
def tokens(settings) -> TokenService:
    return TokenService.from_settings(settings)


@pytest.fixture
def issue_token(tokens) -> Callable[..., str]:
    def _issue(route: RouteTag, project_id: str = "project-1", scopes=("admin",), environment="production") -> str:
        return tokens.issue(TokenClaims(
            project_id=project_id,
            route_tag=route,
            scopes=list(scopes),
            environment=environment,
        ))
    return _issue


@pytest.fixture
def upstream() -> RecordingBackend:
    """Backend reached through configured base URLs"""
    return RecordingBackend()


@pytest.fixture
def accounts() -> InMemoryAccountStore:
    return InMemoryAccountStore({
        admin_record_key("ada"): json.dumps({
            "username": "ada",
            "role": "owner",
            "salt": "pepper",
            "hash": hash_credential("pepper", "correct-horse"),
        }),
        admin_record_key("grace"): json.dumps({
            "salt": "s2",
            "hash": hash_credential("s2", "hopper"),
        }),
    })


@pytest.fixture
def capabilities(accounts, upstream) -> GatewayCapabilities:
    return GatewayCapabilities(accounts=accounts, http_client=upstream.client())


@pytest.fixture
def client(settings, capabilities):
    """Test client with settings and capabilities injected"""
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_capabilities] = lambda: capabilities
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
