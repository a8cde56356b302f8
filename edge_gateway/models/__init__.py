from .gateway import (
    RouteTag,
    ELEVATED_ROUTES,
    Environment,
    RouteDescriptor,
    TokenClaims,
    ErrorEnvelope,
    AdminRecord,
    LoginRequest,
    GithubAuthRequest,
)

__all__ = [
    "RouteTag",
    "ELEVATED_ROUTES",
    "Environment",
    "RouteDescriptor",
    "TokenClaims",
    "ErrorEnvelope",
    "AdminRecord",
    "LoginRequest",
    "GithubAuthRequest",
]
