"""
Proxy Routes
Catch-all dispatch to prefix-routed backends
"""

from fastapi import APIRouter, Depends, Request

from edge_gateway.config import Settings, get_settings
from edge_gateway.models import RouteTag
from edge_gateway.services import proxy_service
from edge_gateway.services.router import match_route
from edge_gateway.services.token_service import TokenService
from edge_gateway.utils.capabilities import GatewayCapabilities
from edge_gateway.utils.dependencies import get_capabilities, get_token_service
from edge_gateway.utils.errors import NotFoundError

router = APIRouter()

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]


@router.api_route("/{full_path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy(
    request: Request,
    settings: Settings = Depends(get_settings),
    capabilities: GatewayCapabilities = Depends(get_capabilities),
    tokens: TokenService = Depends(get_token_service),
):
    """Forward to the backend owning the path prefix, 404 when none does"""
    descriptor = match_route(request.url.path)
    if descriptor is None:
        raise NotFoundError("Route not handled", route_tag=RouteTag.CORE)
    return await proxy_service.forward(request, descriptor, settings, capabilities, tokens)
