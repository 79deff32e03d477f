import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from src.fleet_journal.config import get_settings

logger = logging.getLogger(__name__)


class RedisManager:
    """
    Shared Redis connection for provider and geocoder response caching.
    Every call is a no-op while the client is not initialized.
    """

    def __init__(self):
        self.redis_client: Optional[redis.Redis] = None

    @property
    def enabled(self) -> bool:
        return self.redis_client is not None

    async def init_redis(self):
        """Initialize Redis connection"""
        settings = get_settings()
        self.redis_client = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            encoding="utf-8",
            decode_responses=True,
        )
        await self.redis_client.ping()
        logger.info(
            f"Redis cache connected at {settings.REDIS_HOST}:{settings.REDIS_PORT}"
        )

    async def close_redis(self):
        """Close Redis connection"""
        if self.redis_client:
            await self.redis_client.aclose()
            logger.info("Redis connection closed")
            self.redis_client = None

    async def is_healthy(self) -> bool:
        if not self.enabled:
            return False
        try:
            return bool(await self.redis_client.ping())
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def get_json(self, key: str) -> Any:
        cached = await self.redis_client.get(key)
        return json.loads(cached) if cached else None

    async def set_json(self, key: str, value: Any, ttl: int) -> None:
        await self.redis_client.setex(key, ttl, json.dumps(value))

    async def invalidate(self, prefix: str) -> int:
        """Drop every cached entry under a key prefix."""
        if not self.enabled:
            return 0
        removed = 0
        async for key in self.redis_client.scan_iter(match=f"{prefix}:*"):
            removed += await self.redis_client.delete(key)
        logger.info(f"Invalidated {removed} cached entries for {prefix}")
        return removed


redis_manager = RedisManager()
