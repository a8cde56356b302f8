"""
Injected capabilities
Account store, shared HTTP client and bound service endpoints
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx
from fastapi import Request

from edge_gateway.config import Settings
from edge_gateway.services.router import descriptor_for_service
from edge_gateway.utils.account_store import AccountStore

# Host used for requests sent to in-process bound services
INTERNAL_BASE_URL = "https://internal"


@dataclass(frozen=True)
class ServiceEndpoint:
    """A resolved backend: the client to send with and the base URL to join paths onto"""
    name: str
    client: httpx.AsyncClient
    base_url: str
    bound: bool = False

    def url_for(self, path: str, query: str = "") -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        url = f"{self.base_url.rstrip('/')}{path}"
        if query:
            url = f"{url}?{query}"
        return url


@dataclass
class GatewayCapabilities:
    accounts: AccountStore
    http_client: httpx.AsyncClient
    services: Dict[str, httpx.AsyncClient] = field(default_factory=dict)

    def bound_endpoint(self, service_key: Optional[str]) -> Optional[ServiceEndpoint]:
        if not service_key or service_key not in self.services:
            return None
        return ServiceEndpoint(service_key, self.services[service_key], INTERNAL_BASE_URL, bound=True)

    def url_endpoint(self, name: str, base_url: Optional[str]) -> Optional[ServiceEndpoint]:
        if not base_url:
            return None
        return ServiceEndpoint(name, self.http_client, base_url)

    def resolve_endpoint(self, service_key: str, settings: Settings) -> Optional[ServiceEndpoint]:
        """
        Resolve a service key to a live endpoint

        A bound in-process service wins; otherwise the base URL configured for
        the route that owns the service key is used.
        """
        endpoint = self.bound_endpoint(service_key)
        if endpoint:
            return endpoint
        descriptor = descriptor_for_service(service_key)
        if descriptor is None:
            return None
        return self.url_endpoint(service_key, settings.service_url(descriptor.target_env_key))


def bind_asgi_service(app, base_url: str = INTERNAL_BASE_URL) -> httpx.AsyncClient:
    """Wrap an in-process ASGI app so it can be bound as a service endpoint"""
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=base_url)


def get_capabilities(request: Request) -> GatewayCapabilities:
    """Dependency to get the capabilities built at startup"""
    return request.app.state.capabilities
