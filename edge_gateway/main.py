"""
Edge Gateway - Main Application
Token issuance, prefix routing to backend services and webhook fan-out
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from edge_gateway import __version__
from edge_gateway.config import Settings, get_settings
from edge_gateway.routes import auth, health, proxy, session, webhooks
from edge_gateway.services.router import route_tag_for_path
from edge_gateway.utils.account_store import InMemoryAccountStore, RedisAccountStore
from edge_gateway.utils.capabilities import GatewayCapabilities
from edge_gateway.utils.errors import GatewayError, error_response, gateway_error_response


def configure_logging(settings: Settings) -> None:
    """Configure structured logging"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s"
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(get_settings())
logger = structlog.get_logger(__name__)


def build_capabilities(settings: Settings) -> GatewayCapabilities:
    """Shared HTTP client and account store for the process"""
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.upstream_timeout_seconds),
        follow_redirects=False
    )
    if settings.accounts_redis_url:
        accounts = RedisAccountStore(settings.accounts_redis_url)
    else:
        logger.warning("No account store configured, admin logins will be rejected")
        accounts = InMemoryAccountStore()
    return GatewayCapabilities(accounts=accounts, http_client=http_client)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events"""
    settings = get_settings()
    logger.info("Starting Edge Gateway", version=__version__)

    if not hasattr(app.state, "capabilities"):
        app.state.capabilities = build_capabilities(settings)

    yield

    capabilities: GatewayCapabilities = app.state.capabilities
    await capabilities.http_client.aclose()
    if isinstance(capabilities.accounts, RedisAccountStore):
        await capabilities.accounts.close()
    logger.info("Edge Gateway shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Edge Gateway",
    description="Authenticating edge gateway for backend services and webhooks",
    version=__version__,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests"""
    response = await call_next(request)
    logger.info(
        "Request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        client_ip=request.client.host if request.client else "unknown"
    )
    return response


@app.middleware("http")
async def preflight(request: Request, call_next):
    """Answer every OPTIONS request as a permissive CORS preflight"""
    if request.method == "OPTIONS":
        return Response(
            status_code=204,
            headers={
                "Access-Control-Allow-Origin": "*",
                "Access-Control-Allow-Headers": "Authorization, Content-Type",
                "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS",
                "Access-Control-Max-Age": "86400",
            }
        )
    return await call_next(request)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    """Gateway errors become error envelopes"""
    log = logger.error if exc.status >= 500 else logger.warning
    log(
        "Request failed",
        error_code=exc.code,
        status_code=exc.status,
        method=request.method,
        path=request.url.path
    )
    return gateway_error_response(exc, route_tag_for_path(request.url.path))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed or missing body fields"""
    logger.warning("Validation error", path=request.url.path, errors=len(exc.errors()))
    return error_response(
        route_tag_for_path(request.url.path),
        400,
        "INVALID_REQUEST",
        "Invalid request data",
        details={
            "errors": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ]
        }
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    status = exc.status_code if 400 <= exc.status_code <= 599 else 500
    code = "NOT_FOUND" if status == 404 else "HTTP_ERROR"
    return error_response(route_tag_for_path(request.url.path), status, code, str(exc.detail) or "Request failed")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(
        "Unhandled exception",
        error=str(exc),
        method=request.method,
        path=request.url.path,
        exc_info=True
    )
    return error_response(
        route_tag_for_path(request.url.path),
        500,
        "INTERNAL_ERROR",
        "An unexpected error occurred"
    )


# Register routes; specific routes first, the proxy catch-all last
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, tags=["Auth"])
app.include_router(session.router, tags=["Session"])
app.include_router(webhooks.router, tags=["Webhooks"])
app.include_router(proxy.router, tags=["Proxy"])
