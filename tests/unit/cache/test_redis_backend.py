import json
from unittest.mock import AsyncMock, Mock, patch

import pytest

pytest.importorskip("redis")

from redis.exceptions import ConnectionError as RedisConnectionError  # noqa: E402

from request_governor.cache.redis import RedisCacheBackend  # noqa: E402


class TestRedisCacheBackend:
    @pytest.fixture
    def mock_redis(self):
        mock = AsyncMock()
        mock.ping.return_value = True
        return mock

    @pytest.fixture
    def backend(self, mock_redis):
        return RedisCacheBackend(redis_client=mock_redis, namespace="test")

    def test_init_defaults(self, monkeypatch):
        monkeypatch.delenv("REDIS_URL", raising=False)
        backend = RedisCacheBackend()
        assert backend.redis_url == "redis://localhost:6379"
        assert backend.namespace == "request_governor"
        assert backend.key_ttl == 86400

    def test_init_from_env(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://cache:6380")
        assert RedisCacheBackend().redis_url == "redis://cache:6380"

    def test_invalid_key_ttl(self):
        with pytest.raises(ValueError):
            RedisCacheBackend(key_ttl=0)

    @pytest.mark.asyncio
    async def test_set_serializes_with_namespace_and_ttl(self, backend, mock_redis):
        await backend.set("doc-1", {"payload": [1, 2]})
        mock_redis.set.assert_awaited_once_with(
            "test:cache:doc-1", json.dumps({"payload": [1, 2]}), ex=86400
        )

    @pytest.mark.asyncio
    async def test_get(self, backend, mock_redis):
        mock_redis.get.return_value = json.dumps({"payload": "x"})
        assert await backend.get("doc-1") == {"payload": "x"}
        mock_redis.get.assert_awaited_once_with("test:cache:doc-1")

    @pytest.mark.asyncio
    async def test_get_missing(self, backend, mock_redis):
        mock_redis.get.return_value = None
        assert await backend.get("doc-1") is None

    @pytest.mark.asyncio
    async def test_get_undecodable(self, backend, mock_redis):
        mock_redis.get.return_value = "{not json"
        assert await backend.get("doc-1") is None

    @pytest.mark.asyncio
    async def test_delete(self, backend, mock_redis):
        mock_redis.delete.return_value = 1
        assert await backend.delete("doc-1") is True
        mock_redis.delete.return_value = 0
        assert await backend.delete("doc-1") is False

    @pytest.mark.asyncio
    async def test_clear_scans_namespace(self, backend, mock_redis):
        async def scan_iter(match):
            assert match == "test:cache:*"
            for key in ("test:cache:a", "test:cache:b"):
                yield key

        mock_redis.scan_iter = Mock(side_effect=scan_iter)
        await backend.clear()
        mock_redis.delete.assert_awaited_once_with("test:cache:a", "test:cache:b")

    @pytest.mark.asyncio
    async def test_health_check(self, backend, mock_redis):
        assert (await backend.health_check()).healthy

        mock_redis.ping.side_effect = RedisConnectionError("down")
        result = await backend.health_check()
        assert not result.healthy
        assert "down" in result.error

    @pytest.mark.asyncio
    async def test_client_created_from_url(self, mock_redis):
        with patch(
            "request_governor.cache.redis.Redis.from_url", return_value=mock_redis
        ) as from_url:
            backend = RedisCacheBackend(redis_url="redis://localhost:6379")
            await backend.set("doc-1", {})
        from_url.assert_called_once_with("redis://localhost:6379", decode_responses=True)

        await backend.close()
        mock_redis.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self, backend, mock_redis):
        await backend.close()
        mock_redis.aclose.assert_not_awaited()
