"""
Authentication Routes
Admin login, guest tokens and GitHub OAuth
"""

from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, Request

from edge_gateway.models import GithubAuthRequest, LoginRequest, RouteTag
from edge_gateway.services.auth_service import AuthService
from edge_gateway.utils.capabilities import GatewayCapabilities
from edge_gateway.utils.dependencies import get_auth_service, get_capabilities
from edge_gateway.utils.errors import json_response

logger = structlog.get_logger(__name__)

router = APIRouter()


async def read_json_body(request: Request) -> Dict[str, Any]:
    """Parse the body as a JSON object, empty dict when absent or malformed"""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@router.post("/auth/login")
async def admin_login(
    credentials: LoginRequest,
    auth: AuthService = Depends(get_auth_service),
    capabilities: GatewayCapabilities = Depends(get_capabilities),
):
    """Admin login, returns an AUTH-scoped token"""
    result = await auth.login(capabilities.accounts, credentials.username, credentials.password, RouteTag.AUTH)
    return json_response(result)


@router.post("/auth/guest")
async def guest_token(request: Request, auth: AuthService = Depends(get_auth_service)):
    """Guest token for the requested route, BUILD by default"""
    body = await read_json_body(request)
    return json_response(auth.guest_token(body))


@router.post("/core/auth/login")
async def core_login(
    credentials: LoginRequest,
    auth: AuthService = Depends(get_auth_service),
    capabilities: GatewayCapabilities = Depends(get_capabilities),
):
    """Admin login, returns a CORE-scoped token"""
    result = await auth.login(capabilities.accounts, credentials.username, credentials.password, RouteTag.CORE)
    return json_response(result)


@router.post("/core/auth/github")
async def github_login(
    payload: GithubAuthRequest,
    auth: AuthService = Depends(get_auth_service),
    capabilities: GatewayCapabilities = Depends(get_capabilities),
):
    """Exchange a GitHub OAuth code for a CORE-scoped token"""
    result = await auth.github_oauth(capabilities.http_client, payload.code, payload.redirect_uri)
    return json_response(result)
