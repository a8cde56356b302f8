"""
Webhook Service
Verifies inbound webhook events and fans them out to subscriber services
"""

import asyncio
import hmac
from typing import Any, Dict, List, Optional, Set

import httpx
import structlog
from fastapi import Request

from edge_gateway.config import Settings
from edge_gateway.models import RouteTag
from edge_gateway.services.proxy_service import REQUEST_DROP_HEADERS, raw_request_path
from edge_gateway.utils.capabilities import GatewayCapabilities, ServiceEndpoint
from edge_gateway.utils.errors import (
    AuthError,
    ConfigError,
    NotFoundError,
    UpstreamError,
)

logger = structlog.get_logger(__name__)

TARGETS_HEADER = "x-gateway-targets"
SOURCE_HEADER = "X-Gateway-Source"
NOTION_SIGNATURE_HEADER = "x-notion-signature"

# Sources whose events carry a shared-secret signature
SIGNED_SOURCES = frozenset({"notion"})

# Gateway control headers and shared secrets stay at the edge
WEBHOOK_DROP_HEADERS = REQUEST_DROP_HEADERS | {
    TARGETS_HEADER,
    SOURCE_HEADER.lower(),
    NOTION_SIGNATURE_HEADER,
}


def parse_target_names(raw: Optional[str]) -> List[str]:
    """Split a comma-separated target list, dropping blanks and duplicates"""
    names: List[str] = []
    for name in (raw or "").split(","):
        name = name.strip()
        if name and name not in names:
            names.append(name)
    return names


class WebhookService:
    """Webhook verification and fan-out"""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def known_sources(self) -> Set[str]:
        return set(self.settings.webhook_targets) | SIGNED_SOURCES

    def verify_source(self, source: str, request: Request) -> None:
        """
        Check the source exists and its signature matches

        Raises:
            NotFoundError: UNKNOWN_SOURCE
            ConfigError: NOTION_SECRET_MISSING
            AuthError: INVALID_SIGNATURE
        """
        if source not in self.known_sources:
            raise NotFoundError(
                f"Unknown webhook source: {source}",
                code="UNKNOWN_SOURCE",
                route_tag=RouteTag.WEBHOOK,
            )

        if source == "notion":
            secret = self.settings.notion_webhook_secret
            if not secret:
                raise ConfigError(
                    "Notion webhook secret is not configured",
                    code="NOTION_SECRET_MISSING",
                    status=500,
                    route_tag=RouteTag.WEBHOOK,
                )
            signature = request.headers.get(NOTION_SIGNATURE_HEADER, "")
            if not hmac.compare_digest(signature.encode("utf-8"), secret.encode("utf-8")):
                logger.warning("Webhook signature rejected", source=source)
                raise AuthError(
                    "Invalid webhook signature",
                    code="INVALID_SIGNATURE",
                    route_tag=RouteTag.WEBHOOK,
                )

    def resolve_targets(
        self,
        source: str,
        override: Optional[str],
        capabilities: GatewayCapabilities,
    ) -> List[ServiceEndpoint]:
        """Target endpoints for a source; the caller's header wins over configuration"""
        names = parse_target_names(override)
        if not names:
            names = parse_target_names(",".join(self.settings.webhook_targets.get(source, [])))

        endpoints = []
        for name in names:
            endpoint = capabilities.resolve_endpoint(name, self.settings)
            if endpoint is None:
                logger.warning("Webhook target has no endpoint", source=source, target=name)
                continue
            endpoints.append(endpoint)
        return endpoints

    async def dispatch(
        self,
        source: str,
        request: Request,
        capabilities: GatewayCapabilities,
    ) -> Dict[str, Any]:
        """
        Verify and relay one webhook event to every target concurrently

        A failure reaching one target is reported in that target's entry
        and does not abort delivery to the others.
        """
        self.verify_source(source, request)

        body = await request.body()

        targets = self.resolve_targets(source, request.headers.get(TARGETS_HEADER), capabilities)
        if not targets:
            raise UpstreamError(
                f"No webhook targets available for {source}",
                code="NO_TARGETS",
                route_tag=RouteTag.WEBHOOK,
            )

        headers = [
            (key, value)
            for key, value in request.headers.items()
            if key.lower() not in WEBHOOK_DROP_HEADERS
        ]
        headers.append((SOURCE_HEADER, source))

        forwarded = await asyncio.gather(*[
            self._forward(endpoint, request.method, raw_request_path(request), request.url.query, body, headers)
            for endpoint in targets
        ])

        failed = [result["target"] for result in forwarded if "error" in result]
        logger.info(
            "Webhook dispatched",
            source=source,
            targets=[endpoint.name for endpoint in targets],
            failed=failed,
        )
        return {"success": not failed, "forwarded": list(forwarded)}

    @staticmethod
    async def _forward(
        endpoint: ServiceEndpoint,
        method: str,
        path: str,
        query: str,
        body: bytes,
        headers,
    ) -> Dict[str, Any]:
        try:
            response = await endpoint.client.request(
                method,
                endpoint.url_for(path, query),
                content=body,
                headers=headers,
            )
        except Exception as e:
            # Bound ASGI subscribers re-raise their own exceptions through the transport
            logger.error(
                "Webhook forward failed",
                target=endpoint.name,
                error=str(e) or type(e).__name__,
                exc_info=not isinstance(e, httpx.HTTPError),
            )
            return {"target": endpoint.name, "status": 502, "error": str(e) or type(e).__name__}
        return {"target": endpoint.name, "status": response.status_code}
