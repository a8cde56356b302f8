"""
Auth Service
Admin login, guest tokens, GitHub OAuth exchange and session handling

The gateway keeps no session state: a session is just a signed token, so
refresh re-issues and logout is advisory.
"""

import base64
import hashlib
import hmac
import json
from typing import Any, Dict, Optional

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from edge_gateway.config import Settings
from edge_gateway.models import AdminRecord, Environment, RouteTag, TokenClaims
from edge_gateway.services.token_service import TokenService
from edge_gateway.utils.account_store import AccountStore, admin_record_key
from edge_gateway.utils.errors import (
    AuthError,
    ConfigError,
    MissingToken,
    UpstreamError,
)

logger = structlog.get_logger(__name__)


def hash_credential(salt: str, password: str) -> str:
    """base64(sha256(salt + password)), the stored admin hash format"""
    digest = hashlib.sha256(f"{salt}{password}".encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def normalize_route(value: Any) -> RouteTag:
    """Map a client-supplied route name onto a RouteTag, defaulting to BUILD"""
    return RouteTag.parse(value if isinstance(value, str) else None) or RouteTag.BUILD


class AuthService:
    """Token-issuing auth flows"""

    def __init__(self, settings: Settings, tokens: TokenService):
        self.settings = settings
        self.tokens = tokens

    def _issue(
        self,
        project_id: str,
        route: RouteTag,
        scopes,
        environment: Environment = Environment.PRODUCTION,
    ) -> str:
        return self.tokens.issue(TokenClaims(
            project_id=project_id,
            route_tag=route,
            scopes=list(scopes),
            environment=environment,
            issued_by=self.settings.token_issuer,
        ))

    async def _load_admin(self, accounts: AccountStore, username: str) -> Optional[AdminRecord]:
        raw = await accounts.get(admin_record_key(username))
        if raw is None:
            return None
        try:
            return AdminRecord.model_validate(json.loads(raw))
        except (ValueError, PydanticValidationError):
            logger.error("Malformed admin record", username=username)
            return None

    async def login(
        self,
        accounts: AccountStore,
        username: str,
        password: str,
        route: RouteTag = RouteTag.AUTH,
    ) -> Dict[str, Any]:
        """
        Authenticate an admin against the account store

        Unknown users and wrong passwords produce the same error.

        Raises:
            AuthError: INVALID_CREDENTIALS
        """
        record = await self._load_admin(accounts, username)
        computed = hash_credential(record.salt if record else "", password)
        expected = record.hash if record else ""
        if record is None or not hmac.compare_digest(computed.encode("utf-8"), expected.encode("utf-8")):
            logger.info("Admin login rejected", route=route.value)
            raise AuthError("Invalid credentials", code="INVALID_CREDENTIALS", route_tag=route)

        name = record.username or username
        role = record.role or "admin"
        token = self._issue(name, route, [role])
        logger.info("Admin login succeeded", username=name, route=route.value)
        return {
            "success": True,
            "token": token,
            "user": {"username": name, "role": role},
        }

    def guest_token(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Issue a staging guest token; never fails"""
        route = normalize_route(body.get("route") if isinstance(body, dict) else None)
        token = self._issue("guest", route, ["guest"], Environment.STAGING)
        logger.info("Guest token issued", route=route.value)
        return {"success": True, "token": token, "route": route.value}

    async def github_oauth(
        self,
        http_client: httpx.AsyncClient,
        code: str,
        redirect_uri: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Exchange a GitHub OAuth code for a CORE admin token

        Raises:
            ConfigError: GITHUB_NOT_CONFIGURED
            UpstreamError: GITHUB_AUTH_FAILED
        """
        if not self.settings.github_configured:
            raise ConfigError(
                "GitHub OAuth is not configured",
                code="GITHUB_NOT_CONFIGURED",
                status=500,
                route_tag=RouteTag.CORE,
            )

        payload = {
            "client_id": self.settings.github_client_id,
            "client_secret": self.settings.github_client_secret,
            "code": code,
        }
        if redirect_uri:
            payload["redirect_uri"] = redirect_uri

        access_token = await self._exchange_code(http_client, payload)
        profile = await self._fetch_profile(http_client, access_token)

        username = profile.get("login") or f"github-{code[-6:]}"
        token = self._issue(username, RouteTag.CORE, ["admin"])
        logger.info("GitHub login succeeded", username=username)
        return {
            "success": True,
            "token": token,
            "user": {
                "username": username,
                "role": "admin",
                "name": profile.get("name"),
                "email": profile.get("email"),
                "avatarUrl": profile.get("avatar_url"),
            },
        }

    async def _exchange_code(self, http_client: httpx.AsyncClient, payload: Dict[str, str]) -> str:
        try:
            response = await http_client.post(
                self.settings.github_token_url,
                json=payload,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("GitHub token exchange failed", error=str(e))
            raise self._github_failed()

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            logger.warning("GitHub token exchange returned no token", error=data.get("error") if isinstance(data, dict) else None)
            raise self._github_failed()
        return access_token

    async def _fetch_profile(self, http_client: httpx.AsyncClient, access_token: str) -> Dict[str, Any]:
        try:
            response = await http_client.get(
                self.settings.github_user_url,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/vnd.github+json",
                    "User-Agent": self.settings.app_name,
                },
            )
            response.raise_for_status()
            profile = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("GitHub profile fetch failed", error=str(e))
            raise self._github_failed()

        if not isinstance(profile, dict):
            raise self._github_failed()
        return profile

    @staticmethod
    def _github_failed() -> UpstreamError:
        return UpstreamError("GitHub authentication failed", code="GITHUB_AUTH_FAILED", route_tag=RouteTag.CORE)

    def session_get(self, authorization: Optional[str]) -> Dict[str, Any]:
        """Verify a CORE session token and echo it back"""
        claims = self._verify_session(authorization, "INVALID_SESSION", "Invalid session")
        token = authorization[len("Bearer "):].strip()
        return {
            "success": True,
            "token": token,
            "user": self._user_from_claims(claims),
            "route": claims.route_tag.value,
            "environment": claims.environment.value,
        }

    def session_refresh(self, authorization: Optional[str]) -> Dict[str, Any]:
        """Re-issue a CORE session token with the same identity"""
        claims = self._verify_session(authorization, "REFRESH_FAILED", "Unable to refresh session")
        scope = claims.scopes[0] if claims.scopes else "admin"
        token = self._issue(claims.project_id, RouteTag.CORE, [scope], claims.environment)
        logger.info("Session refreshed", username=claims.project_id)
        return {
            "success": True,
            "token": token,
            "user": self._user_from_claims(claims),
        }

    @staticmethod
    def logout() -> Dict[str, Any]:
        return {"success": True, "message": "Logged out; discard the token client-side"}

    def _verify_session(self, authorization: Optional[str], code: str, message: str) -> TokenClaims:
        try:
            return self.tokens.verify(authorization, RouteTag.CORE)
        except MissingToken:
            raise AuthError(message, code=code, status=401, route_tag=RouteTag.CORE)
        except AuthError:
            raise AuthError(message, code=code, status=403, route_tag=RouteTag.CORE)

    @staticmethod
    def _user_from_claims(claims: TokenClaims) -> Dict[str, str]:
        return {
            "username": claims.project_id,
            "role": claims.scopes[0] if claims.scopes else "admin",
        }
