"""
Prefix router
Ordered route table and first-match lookup
"""

from typing import Optional, Tuple

from edge_gateway.models import RouteDescriptor, RouteTag


# First match wins, order matters
ROUTES: Tuple[RouteDescriptor, ...] = (
    RouteDescriptor("/build", RouteTag.BUILD, "build_service_url", "BUILD_SERVICE"),
    RouteDescriptor("/kv", RouteTag.KV, "kv_service_url", "KV_SERVICE"),
    RouteDescriptor("/core", RouteTag.CORE, "core_service_url", "CORE_SERVICE"),
    RouteDescriptor("/hq", RouteTag.BASE, "base_service_url", "BASE_SERVICE"),
)


def match_route(path: str, routes: Tuple[RouteDescriptor, ...] = ROUTES) -> Optional[RouteDescriptor]:
    """Return the first descriptor whose prefix the path starts with"""
    for descriptor in routes:
        if path.startswith(descriptor.prefix):
            return descriptor
    return None


def route_tag_for_path(path: str) -> RouteTag:
    """Route tag used to label errors raised outside a specific handler"""
    if path.startswith("/auth"):
        return RouteTag.AUTH
    if path.startswith("/webhooks"):
        return RouteTag.WEBHOOK
    descriptor = match_route(path)
    if descriptor:
        return descriptor.route_tag
    return RouteTag.CORE


def descriptor_for_service(service_key: str, routes: Tuple[RouteDescriptor, ...] = ROUTES) -> Optional[RouteDescriptor]:
    """Find the descriptor bound to a service key such as BASE_SERVICE"""
    for descriptor in routes:
        if descriptor.target_service_key == service_key:
            return descriptor
    return None
