from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App config
    app_name: str = "Edge Gateway"
    service_name: str = "gateway"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    # Token signing
    gateway_jwt_secret: str = "change_me_gateway_jwt_secret"
    jwt_algorithm: str = "HS256"
    token_issuer: str = "gateway.metacogna.ai"
    token_audience: str = "metacogna-clients"
    token_ttl_minutes: int = 60

    # Backend base URLs, used when no in-process binding exists
    build_service_url: Optional[str] = None
    kv_service_url: Optional[str] = None
    core_service_url: Optional[str] = None
    base_service_url: Optional[str] = None
    upstream_timeout_seconds: float = 30.0

    # Account records
    accounts_redis_url: Optional[str] = None

    # GitHub OAuth
    github_client_id: Optional[str] = None
    github_client_secret: Optional[str] = None
    github_token_url: str = "https://github.com/login/oauth/access_token"
    github_user_url: str = "https://api.github.com/user"

    # Webhooks
    notion_webhook_secret: Optional[str] = None
    webhook_targets: Dict[str, List[str]] = {"notion": ["BASE_SERVICE"]}

    # CORS
    cors_origins: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        if v not in ("HS256", "HS384", "HS512"):
            raise ValueError("JWT algorithm must be one of HS256, HS384, HS512")
        return v

    @field_validator(
        "build_service_url", "kv_service_url", "core_service_url", "base_service_url",
        "accounts_redis_url", "github_client_id", "github_client_secret", "notion_webhook_secret",
        mode="before"
    )
    @classmethod
    def blank_to_none(cls, v):
        """Treat empty env values as unset"""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def service_url(self, env_key: Optional[str]) -> Optional[str]:
        """Look up a backend base URL by its settings key"""
        if not env_key:
            return None
        return getattr(self, env_key, None)

    @property
    def github_configured(self) -> bool:
        return bool(self.github_client_id and self.github_client_secret)


@lru_cache
def get_settings() -> Settings:
    return Settings()
