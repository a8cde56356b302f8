"""
Token Service
Issues and verifies signed gateway bearer tokens
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from pydantic import ValidationError as PydanticValidationError

from edge_gateway.config import Settings
from edge_gateway.models import ELEVATED_ROUTES, RouteTag, TokenClaims
from edge_gateway.utils.errors import InvalidToken, MissingToken, RouteMismatch

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "


def extract_bearer(authorization: Optional[str]) -> str:
    """
    Pull the token out of an Authorization header

    Raises:
        MissingToken: header absent or not a Bearer credential
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise MissingToken("Missing bearer token")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise MissingToken("Missing bearer token")
    return token


class TokenService:
    """Signs and verifies gateway tokens with a shared symmetric secret"""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        issuer: str = "gateway.metacogna.ai",
        audience: str = "metacogna-clients",
        ttl_minutes: int = 60,
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.ttl = timedelta(minutes=ttl_minutes)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret=settings.gateway_jwt_secret,
            algorithm=settings.jwt_algorithm,
            issuer=settings.token_issuer,
            audience=settings.token_audience,
            ttl_minutes=settings.token_ttl_minutes,
        )

    def issue(self, claims: TokenClaims, now: Optional[datetime] = None) -> str:
        """
        Sign a token for the given claims

        Args:
            claims: Claims to embed; re-validated before signing
            now: Issue time, defaults to the current UTC time

        Returns:
            Compact JWT string
        """
        claims = TokenClaims.model_validate(claims.model_dump(by_alias=True))
        issued_at = now or datetime.now(timezone.utc)

        payload = claims.to_payload()
        payload.update({
            "iss": self.issuer,
            "aud": self.audience,
            "sub": claims.project_id,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.ttl).timestamp()),
        })
        return jwt.encode(payload, self.secret, algorithm=self.algorithm, headers={"typ": "JWT"})

    def decode(self, token: str) -> TokenClaims:
        """Verify signature and registered claims, return the gateway claims"""
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["exp", "iat", "iss", "aud", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info("Token expired")
            raise InvalidToken("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.info("Token rejected", reason=type(e).__name__)
            raise InvalidToken("Invalid token")

        try:
            return TokenClaims(
                project_id=payload.get("projectId"),
                route_tag=payload.get("routeTag"),
                scopes=payload.get("scopes") or [],
                environment=payload.get("environment") or "production",
                issued_by=payload.get("issuedBy") or self.issuer,
            )
        except PydanticValidationError:
            logger.info("Token claims failed validation")
            raise InvalidToken("Invalid token claims")

    def verify(self, authorization: Optional[str], expected_route: RouteTag) -> TokenClaims:
        """
        Verify an Authorization header for access to a route

        Raises:
            MissingToken: no bearer credential
            InvalidToken: bad signature, issuer, audience, expiry or claims
            RouteMismatch: token scoped to another, non-elevated route
        """
        token = extract_bearer(authorization)
        claims = self.decode(token)
        if claims.route_tag != expected_route and claims.route_tag not in ELEVATED_ROUTES:
            logger.info("Token route mismatch", token_route=claims.route_tag.value, route=expected_route.value)
            raise RouteMismatch("Token is not valid for this route")
        return claims
