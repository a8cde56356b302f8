"""
Proxy Service
Rewrites and forwards requests to the backend that owns a route prefix
"""

from typing import Dict, List, Tuple

import httpx
import structlog
from fastapi import Request
from starlette.background import BackgroundTask
from starlette.responses import StreamingResponse

from edge_gateway.config import Settings
from edge_gateway.models import RouteDescriptor, RouteTag
from edge_gateway.services.token_service import TokenService
from edge_gateway.utils.capabilities import GatewayCapabilities, ServiceEndpoint
from edge_gateway.utils.errors import (
    AuthError,
    ConfigError,
    InvalidToken,
    MissingToken,
    UpstreamError,
)

logger = structlog.get_logger(__name__)

# Whether a bearer token is mandatory on each route
TOKEN_REQUIRED: Dict[RouteTag, bool] = {
    RouteTag.AUTH: False,
    RouteTag.KV: False,
    RouteTag.BUILD: True,
    RouteTag.CORE: False,
    RouteTag.BASE: False,
    RouteTag.WEBHOOK: False,
}

# Transport-level headers never copied between hops
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-connection",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})

REQUEST_DROP_HEADERS = HOP_BY_HOP_HEADERS | {"host", "content-length", "authorization"}

BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def raw_request_path(request: Request) -> str:
    """Path as the client sent it, percent-encoding intact"""
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return request.url.path
    return raw_path.decode("latin-1").split("?", 1)[0]


def strip_prefix(path: str, prefix: str) -> str:
    """Remove the matched prefix, falling back to the root path"""
    return path[len(prefix):] or "/"


def build_forward_headers(headers: List[Tuple[str, str]], route_tag: RouteTag) -> List[Tuple[str, str]]:
    """Copy client headers minus credentials and hop-by-hop headers, tag the route"""
    forwarded = [
        (key, value)
        for key, value in headers
        if key.lower() not in REQUEST_DROP_HEADERS and key.lower() != "x-gateway-route"
    ]
    forwarded.append(("X-Gateway-Route", route_tag.value))
    return forwarded


def resolve_target(
    descriptor: RouteDescriptor,
    settings: Settings,
    capabilities: GatewayCapabilities,
) -> ServiceEndpoint:
    """
    Pick the endpoint for a route: bound service first, then base URL

    Raises:
        ConfigError: neither is configured
    """
    endpoint = capabilities.bound_endpoint(descriptor.target_service_key)
    if endpoint:
        return endpoint
    endpoint = capabilities.url_endpoint(
        descriptor.target_service_key or descriptor.prefix,
        settings.service_url(descriptor.target_env_key),
    )
    if endpoint:
        return endpoint
    raise ConfigError(
        f"Missing target for {descriptor.prefix}",
        code="MISSING_TARGET",
        status=502,
        route_tag=descriptor.route_tag,
    )


def authorize(request: Request, descriptor: RouteDescriptor, tokens: TokenService) -> None:
    """Enforce the route's token policy"""
    authorization = request.headers.get("authorization")
    if not TOKEN_REQUIRED[descriptor.route_tag] and authorization is None:
        return
    try:
        tokens.verify(authorization, descriptor.route_tag)
    except MissingToken:
        raise MissingToken("Unauthorized request", route_tag=descriptor.route_tag)
    except AuthError:
        raise InvalidToken("Unauthorized request", route_tag=descriptor.route_tag)


async def forward(
    request: Request,
    descriptor: RouteDescriptor,
    settings: Settings,
    capabilities: GatewayCapabilities,
    tokens: TokenService,
) -> StreamingResponse:
    """Forward a request to the backend for descriptor and stream the reply back"""
    endpoint = resolve_target(descriptor, settings, capabilities)
    authorize(request, descriptor, tokens)

    raw_path = raw_request_path(request)
    if not raw_path.startswith(descriptor.prefix):
        raw_path = request.url.path
    path = strip_prefix(raw_path, descriptor.prefix)
    target_url = endpoint.url_for(path, request.url.query)
    headers = build_forward_headers(request.headers.items(), descriptor.route_tag)
    content = None if request.method in BODYLESS_METHODS else request.stream()

    upstream_request = endpoint.client.build_request(
        request.method,
        target_url,
        headers=headers,
        content=content,
    )

    try:
        upstream = await endpoint.client.send(upstream_request, stream=True, follow_redirects=False)
    except Exception as e:
        # Bound ASGI services re-raise their own exceptions through the transport
        logger.error(
            "Upstream request failed",
            route=descriptor.route_tag.value,
            target=endpoint.name,
            error=str(e) or type(e).__name__,
            exc_info=not isinstance(e, httpx.HTTPError),
        )
        raise UpstreamError(
            f"Upstream service for {descriptor.prefix} is unavailable",
            code="UPSTREAM_UNAVAILABLE",
            route_tag=descriptor.route_tag,
        )

    logger.info(
        "Request proxied",
        route=descriptor.route_tag.value,
        target=endpoint.name,
        bound=endpoint.bound,
        method=request.method,
        status_code=upstream.status_code,
    )

    response = StreamingResponse(
        upstream.aiter_raw(),
        status_code=upstream.status_code,
        background=BackgroundTask(upstream.aclose),
    )
    response.raw_headers = [
        (key.encode("latin-1"), value.encode("latin-1"))
        for key, value in upstream.headers.multi_items()
        if key.lower() not in HOP_BY_HOP_HEADERS
    ]
    return response
