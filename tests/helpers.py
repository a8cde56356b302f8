"""
Shared test helpers
"""

from typing import Callable, List, Optional

import httpx

from edge_gateway.models import RouteTag


def streamed(response: httpx.Response) -> httpx.Response:
    """Re-wrap an already-read fake response so the proxy can stream it"""
    return httpx.Response(
        response.status_code,
        headers=response.headers.multi_items(),
        stream=httpx.ByteStream(response.content),
    )


class RecordingBackend:
    """MockTransport handler that records every request it receives"""

    def __init__(self, handler: Optional[Callable[[httpx.Request], httpx.Response]] = None):
        self.requests: List[httpx.Request] = []
        self.handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.handler:
            return streamed(self.handler(request))
        return streamed(httpx.Response(200, text="ok"))

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def assert_envelope(response, status: int, code: str, route: RouteTag) -> dict:
    """Check a response carries a well-formed error envelope"""
    assert response.status_code == status
    body = response.json()
    assert body["status"] == status
    assert body["code"] == code
    assert body["routeTag"] == route.value
    assert body["message"]
    assert body["requestId"]
    assert body["timestamp"]
    return body
