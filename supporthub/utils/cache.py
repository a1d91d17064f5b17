import json
import asyncio
import logging
from typing import Any, Optional
from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class Cache:
    def __init__(self, redis_url: str = None, client: Redis = None) -> None:
        self._client = client or Redis.from_url(redis_url, decode_responses=True)
        self._lock = asyncio.Lock()

    async def ensure(self) -> bool:
        if not self._client:
            return False
        try:
            await self._client.ping()
            return True
        except Exception as err:
            logger.error("[Cache] Redis connection error: %s", err)
            return False

    async def get(self, key: str) -> Any:
        async with self._lock:
            raw = await self._client.get(key)
            return json.loads(raw) if raw else None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            raw = json.dumps(value)
        except TypeError as e:
            raise TypeError(f"Cache.set expects a JSON serializable value for '{key}'") from e

        async with self._lock:
            await self._client.set(key, raw, ex=ttl)

    async def delete(self, key: str) -> None:
        async with self._lock:
            await self._client.delete(key)

    async def close(self) -> None:
        await self._client.aclose()
