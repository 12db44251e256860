"""Tests for the YouTube response cache."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

from redis.exceptions import ConnectionError as RedisConnectionError

from mediagrab.trailers.cache import ResponseCache

PARAMS = {"part": "snippet", "q": "Blade Runner trailer", "key": "k1"}


class TestResponseCache:
    def test_signature_ignores_api_key(self, mock_redis: AsyncMock) -> None:
        cache = ResponseCache(mock_redis)

        assert cache.signature("search", PARAMS) == cache.signature("search", {**PARAMS, "key": "k2"})
        assert cache.signature("search", PARAMS) != cache.signature("videos", PARAMS)
        assert cache.signature("search", PARAMS).startswith("mediagrab:yt:")

    async def test_miss(self, mock_redis: AsyncMock) -> None:
        assert await ResponseCache(mock_redis).get("search", PARAMS) is None

    async def test_hit(self, mock_redis: AsyncMock) -> None:
        mock_redis.get.return_value = json.dumps({"items": [1]})

        assert await ResponseCache(mock_redis).get("search", PARAMS) == {"items": [1]}

    async def test_set_uses_ttl(self, mock_redis: AsyncMock) -> None:
        cache = ResponseCache(mock_redis, ttl=600)

        await cache.set("search", PARAMS, {"items": []})

        mock_redis.setex.assert_awaited_once_with(cache.signature("search", PARAMS), 600, '{"items": []}')

    async def test_redis_failure_is_a_miss(self, mock_redis: AsyncMock) -> None:
        mock_redis.get.side_effect = RedisConnectionError("down")
        mock_redis.setex.side_effect = RedisConnectionError("down")
        cache = ResponseCache(mock_redis)

        assert await cache.get("search", PARAMS) is None
        await cache.set("search", PARAMS, {"items": []})
