import json
from unittest.mock import AsyncMock, MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

from src.fleet_journal.redis.decorators import build_cache_key, cache_api_call
from src.fleet_journal.redis.redis import RedisManager, redis_manager


# Dummy function to wrap
@cache_api_call("test_prefix", ttl=60)
async def dummy_function(x, y):
    return {"result": x + y}


class DummyClient:
    def __init__(self, name):
        self.name = name
        self.calls = 0

    @cache_api_call("dummy_method", ttl=60, method=True)
    async def lookup(self, key):
        self.calls += 1
        return {"key": key, "owner": self.name}


def key_for(prefix, *args, **kwargs):
    return build_cache_key(prefix, [list(args), kwargs])


async def test_cache_disabled_when_redis_not_initialized():
    redis_manager.redis_client = None
    result = await dummy_function(1, 2)
    assert result == {"result": 3}


async def test_cache_hit():
    mock_redis = AsyncMock()
    mock_redis.get.return_value = json.dumps({"result": 42})
    redis_manager.redis_client = mock_redis

    result = await dummy_function(1, 2)
    assert result == {"result": 42}
    mock_redis.get.assert_awaited_once_with(key_for("test_prefix", 1, 2))
    mock_redis.setex.assert_not_called()


async def test_cache_miss():
    mock_redis = AsyncMock()
    mock_redis.get.return_value = None
    redis_manager.redis_client = mock_redis

    result = await dummy_function(3, 4)
    assert result == {"result": 7}
    mock_redis.setex.assert_awaited_once_with(
        key_for("test_prefix", 3, 4), 60, json.dumps({"result": 7})
    )


async def test_keyword_arguments_are_part_of_the_key():
    mock_redis = AsyncMock()
    mock_redis.get.return_value = None
    redis_manager.redis_client = mock_redis

    await dummy_function(1, y=2)

    mock_redis.get.assert_awaited_once_with(key_for("test_prefix", 1, y=2))


async def test_redis_get_raises_error():
    mock_redis = AsyncMock()
    mock_redis.get.side_effect = RedisConnectionError("Redis get failed")
    redis_manager.redis_client = mock_redis

    result = await dummy_function(2, 3)
    assert result == {"result": 5}
    mock_redis.setex.assert_awaited()


async def test_corrupt_cache_entry_is_ignored():
    mock_redis = AsyncMock()
    mock_redis.get.return_value = "{not json"
    redis_manager.redis_client = mock_redis

    assert await dummy_function(2, 2) == {"result": 4}


async def test_redis_set_raises_error():
    mock_redis = AsyncMock()
    mock_redis.get.return_value = None
    mock_redis.setex.side_effect = RedisConnectionError("Redis set failed")
    redis_manager.redis_client = mock_redis

    result = await dummy_function(4, 5)
    assert result == {"result": 9}


async def test_method_cache_key_ignores_instance():
    mock_redis = AsyncMock()
    mock_redis.get.return_value = None
    redis_manager.redis_client = mock_redis

    await DummyClient("a").lookup("k1")
    await DummyClient("b").lookup("k1")

    keys = [call.args[0] for call in mock_redis.get.await_args_list]
    assert keys == [key_for("dummy_method", "k1")] * 2


async def test_empty_result_is_not_cached():
    @cache_api_call("empty", ttl=60)
    async def nothing():
        return []

    mock_redis = AsyncMock()
    mock_redis.get.return_value = None
    redis_manager.redis_client = mock_redis

    assert await nothing() == []
    mock_redis.setex.assert_not_called()


@patch("src.fleet_journal.redis.redis.get_settings")
@patch("src.fleet_journal.redis.redis.redis.Redis")
async def test_init_redis(mock_redis_class, mock_get_settings):
    mock_get_settings.return_value.REDIS_HOST = "localhost"
    mock_get_settings.return_value.REDIS_PORT = 6379
    mock_get_settings.return_value.REDIS_DB = 2
    mock_redis_class.return_value = AsyncMock()

    manager = RedisManager()
    await manager.init_redis()

    mock_redis_class.assert_called_once_with(
        host="localhost", port=6379, db=2, encoding="utf-8", decode_responses=True
    )
    manager.redis_client.ping.assert_awaited_once()
    assert manager.enabled


async def test_close_redis():
    mock_client = AsyncMock()
    manager = RedisManager()
    manager.redis_client = mock_client

    await manager.close_redis()

    mock_client.aclose.assert_awaited_once()
    assert manager.redis_client is None


async def test_health_reflects_ping():
    manager = RedisManager()
    assert await manager.is_healthy() is False

    manager.redis_client = AsyncMock()
    manager.redis_client.ping.side_effect = RedisConnectionError("refused")
    assert await manager.is_healthy() is False

    manager.redis_client.ping.side_effect = None
    manager.redis_client.ping.return_value = True
    assert await manager.is_healthy() is True


async def test_invalidate_deletes_prefixed_keys():
    async def scan_iter(match):
        for key in ("gps_device_list:a", "gps_device_list:b"):
            yield key

    manager = RedisManager()
    manager.redis_client = MagicMock()
    manager.redis_client.scan_iter = scan_iter
    manager.redis_client.delete = AsyncMock(return_value=1)

    assert await manager.invalidate("gps_device_list") == 2
    manager.redis_client.delete.assert_any_await("gps_device_list:a")


async def test_invalidate_without_redis_is_noop():
    assert await RedisManager().invalidate("gps_device_list") == 0
