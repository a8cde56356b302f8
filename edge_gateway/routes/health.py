"""
Health check routes for the gateway
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from edge_gateway import __version__
from edge_gateway.config import Settings, get_settings
from edge_gateway.utils.errors import json_response

router = APIRouter()


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)):
    """Liveness probe"""
    return json_response({
        "status": "ok",
        "service": settings.service_name,
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat()
    })
