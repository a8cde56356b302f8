"""
Webhook Routes
Inbound webhook relay
"""

from fastapi import APIRouter, Depends, Request

from edge_gateway.services.webhook_service import WebhookService
from edge_gateway.utils.capabilities import GatewayCapabilities
from edge_gateway.utils.dependencies import get_capabilities, get_webhook_service
from edge_gateway.utils.errors import json_response

router = APIRouter()

WEBHOOK_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


@router.api_route("/webhooks/{source}", methods=WEBHOOK_METHODS)
async def relay_webhook(
    source: str,
    request: Request,
    webhooks: WebhookService = Depends(get_webhook_service),
    capabilities: GatewayCapabilities = Depends(get_capabilities),
):
    """Verify a webhook event and fan it out to subscribers"""
    result = await webhooks.dispatch(source, request, capabilities)
    return json_response(result, status=202)
