# ============================================================================
# Redis Connection
# ============================================================================
import json
from typing import Any, Optional

import redis.asyncio as redis
from learnlab_chatbot.config import get_settings

settings = get_settings()

redis_client = redis.from_url(
    settings.REDIS_URL,
    encoding="utf-8",
    decode_responses=True
)

class RedisCache:
    """Redis caching utility with a key prefix per use"""

    def __init__(self, client: redis.Redis, prefix: str = "learnlab"):
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(self._key(key))

    async def set(self, key: str, value: str, ttl: int = 3600) -> None:
        await self.client.setex(self._key(key), ttl, value)

    async def delete(self, key: str) -> None:
        await self.client.delete(self._key(key))

    async def get_json(self, key: str) -> Optional[Any]:
        data = await self.get(key)
        return json.loads(data) if data else None

    async def set_json(self, key: str, value: Any, ttl: int = 3600) -> None:
        await self.set(key, json.dumps(value), ttl)

    async def ping(self) -> bool:
        return bool(await self.client.ping())

cache = RedisCache(redis_client)
