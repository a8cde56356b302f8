"""
Gateway error hierarchy and error envelope responses

Every failure the gateway reports is a GatewayError subclass; the FastAPI
handlers in main.py turn them into ErrorEnvelope JSON bodies.
"""

from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from edge_gateway.models import ErrorEnvelope, RouteTag


JSON_HEADERS = {"Access-Control-Allow-Origin": "*"}


class GatewayError(Exception):
    """Base exception for all gateway errors"""

    status: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status: Optional[int] = None,
        route_tag: Optional[RouteTag] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status
        self.route_tag = route_tag
        self.details = details

    def to_envelope(self, default_route: RouteTag = RouteTag.CORE) -> ErrorEnvelope:
        return ErrorEnvelope(
            route_tag=self.route_tag or default_route,
            status=self.status,
            code=self.code,
            message=self.message,
            details=self.details,
        )


class ValidationError(GatewayError):
    status = 400
    code = "INVALID_REQUEST"


class AuthError(GatewayError):
    status = 401
    code = "UNAUTHORIZED"


class MissingToken(AuthError):
    status = 401
    code = "MISSING_TOKEN"


class InvalidToken(AuthError):
    status = 403
    code = "INVALID_TOKEN"


class RouteMismatch(InvalidToken):
    code = "ROUTE_MISMATCH"


class ConfigError(GatewayError):
    status = 500
    code = "CONFIG_ERROR"


class UpstreamError(GatewayError):
    status = 502
    code = "UPSTREAM_ERROR"


class NotFoundError(GatewayError):
    status = 404
    code = "NOT_FOUND"


class InternalError(GatewayError):
    status = 500
    code = "INTERNAL_ERROR"


def error_response(
    route_tag: RouteTag,
    status: int,
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Build an error envelope response"""
    envelope = ErrorEnvelope(
        route_tag=route_tag,
        status=status,
        code=code,
        message=message,
        details=details,
    )
    return JSONResponse(status_code=status, content=envelope.to_response(), headers=JSON_HEADERS)


def gateway_error_response(exc: GatewayError, default_route: RouteTag = RouteTag.CORE) -> JSONResponse:
    envelope = exc.to_envelope(default_route)
    return JSONResponse(status_code=envelope.status, content=envelope.to_response(), headers=JSON_HEADERS)


def json_response(body: Dict[str, Any], status: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status, content=body, headers=JSON_HEADERS)
