import hashlib
import json
import logging
from functools import wraps

from redis.exceptions import RedisError

from src.fleet_journal.redis.redis import redis_manager

logger = logging.getLogger(__name__)


def build_cache_key(cache_key_prefix: str, key_args) -> str:
    digest = hashlib.md5(
        json.dumps(key_args, sort_keys=True, default=str).encode()
    ).hexdigest()
    return f"{cache_key_prefix}:{digest}"


def cache_api_call(cache_key_prefix: str, ttl: int = 3600, method: bool = False):
    """
    Cache the JSON result of an async provider call. With method=True the
    bound instance is left out of the key, so every client shares entries.
    Redis failures fall through to the wrapped call; empty results are not
    stored.
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            if not redis_manager.enabled:
                return await func(*args, **kwargs)

            key_args = [list(args[1:] if method else args), kwargs]
            cache_key = build_cache_key(cache_key_prefix, key_args)
            try:
                cached = await redis_manager.get_json(cache_key)
                if cached is not None:
                    logger.debug(f"Cache hit for {cache_key}")
                    return cached
            except (RedisError, ValueError) as e:
                logger.error(f"Failed to read {cache_key} from Redis: {str(e)}")

            result = await func(*args, **kwargs)
            if result:
                try:
                    await redis_manager.set_json(cache_key, result, ttl)
                except (RedisError, TypeError) as e:
                    logger.error(f"Failed to cache {cache_key} in Redis: {str(e)}")
            return result

        return wrapper

    return decorator
