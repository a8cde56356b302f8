"""
Session Routes
Stateless session echo, refresh and logout for CORE tokens
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header

from edge_gateway.services.auth_service import AuthService
from edge_gateway.utils.dependencies import get_auth_service
from edge_gateway.utils.errors import json_response

router = APIRouter(prefix="/core")


@router.get("/session")
async def get_session(
    authorization: Optional[str] = Header(None),
    auth: AuthService = Depends(get_auth_service),
):
    """Verify the bearer token and echo the session"""
    return json_response(auth.session_get(authorization))


@router.post("/session/refresh")
async def refresh_session(
    authorization: Optional[str] = Header(None),
    auth: AuthService = Depends(get_auth_service),
):
    """Issue a fresh token for the same identity"""
    return json_response(auth.session_refresh(authorization))


@router.post("/logout")
async def logout():
    """Advisory logout; no server-side state to clear"""
    return json_response(AuthService.logout())
