"""
Gateway data models
Route tags, route descriptors, token claims, error envelopes and account records
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RouteTag(str, Enum):
    """Backend destination and authorization scope"""
    AUTH = "AUTH"
    KV = "KV"
    BUILD = "BUILD"
    CORE = "CORE"
    BASE = "BASE"
    WEBHOOK = "WEBHOOK"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["RouteTag"]:
        """Case-insensitive lookup, None when the value is not a known tag"""
        if not value or not isinstance(value, str):
            return None
        return cls.__members__.get(value.strip().upper())


# Tokens scoped to these routes are accepted on every route
ELEVATED_ROUTES = frozenset({RouteTag.CORE, RouteTag.AUTH})


class Environment(str, Enum):
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass(frozen=True)
class RouteDescriptor:
    """One entry of the prefix routing table"""
    prefix: str
    route_tag: RouteTag
    target_env_key: Optional[str] = None
    target_service_key: Optional[str] = None


class TokenClaims(BaseModel):
    """Claims carried inside a gateway bearer token"""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    project_id: str = Field(..., min_length=1, alias="projectId")
    route_tag: RouteTag = Field(..., alias="routeTag")
    scopes: List[str] = Field(default_factory=list)
    environment: Environment = Environment.PRODUCTION
    issued_by: str = Field(default="gateway.metacogna.ai", alias="issuedBy")

    @field_validator("scopes")
    @classmethod
    def unique_scopes(cls, v: List[str]) -> List[str]:
        """Scopes behave as a set; first occurrence order is kept"""
        seen: List[str] = []
        for scope in v:
            if not scope:
                raise ValueError("Scopes must be non-empty strings")
            if scope not in seen:
                seen.append(scope)
        return seen

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ErrorEnvelope(BaseModel):
    """Canonical error body returned for every 4xx/5xx response"""
    model_config = ConfigDict(populate_by_name=True)

    route_tag: RouteTag = Field(..., alias="routeTag")
    status: int = Field(..., ge=400, le=599)
    code: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    request_id: str = Field(default_factory=lambda: str(uuid4()), alias="requestId")
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    details: Optional[Dict[str, Any]] = None

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AdminRecord(BaseModel):
    """Admin account record as stored under auth/admins/{username}.json"""
    username: Optional[str] = None
    role: Optional[str] = None
    salt: str
    hash: str


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class GithubAuthRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(..., min_length=1)
    redirect_uri: Optional[str] = Field(default=None, alias="redirectUri")
