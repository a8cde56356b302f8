"""
FastAPI Dependencies
Settings, capabilities and service wiring
"""

from fastapi import Depends

from edge_gateway.config import Settings, get_settings
from edge_gateway.services.auth_service import AuthService
from edge_gateway.services.token_service import TokenService
from edge_gateway.services.webhook_service import WebhookService
from edge_gateway.utils.capabilities import GatewayCapabilities, get_capabilities


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService.from_settings(settings)


def get_auth_service(
    settings: Settings = Depends(get_settings),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(settings, tokens)


def get_webhook_service(settings: Settings = Depends(get_settings)) -> WebhookService:
    return WebhookService(settings)


__all__ = [
    "GatewayCapabilities",
    "get_capabilities",
    "get_settings",
    "get_token_service",
    "get_auth_service",
    "get_webhook_service",
]
