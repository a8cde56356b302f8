"""
Account record store
Key-value access to admin account records

Records live under auth/admins/{username}.json as JSON strings. The gateway
only reads them; put() exists for provisioning scripts and tests.
"""

from typing import Dict, Optional, Protocol

import redis.asyncio as aioredis
import structlog

logger = structlog.get_logger(__name__)


def admin_record_key(username: str) -> str:
    return f"auth/admins/{username}.json"


class AccountStore(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def put(self, key: str, value: str) -> None:
        ...


class InMemoryAccountStore:
    """Dict-backed store for local development and tests"""

    def __init__(self, records: Optional[Dict[str, str]] = None):
        self._records: Dict[str, str] = dict(records or {})

    async def get(self, key: str) -> Optional[str]:
        return self._records.get(key)

    async def put(self, key: str, value: str) -> None:
        self._records[key] = value


class RedisAccountStore:
    """Redis-backed store using redis.asyncio"""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.client: aioredis.Redis = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
            retry_on_timeout=True
        )

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def put(self, key: str, value: str) -> None:
        await self.client.set(key, value)

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("Account store connection closed")
