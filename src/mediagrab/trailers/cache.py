"""Redis TTL cache for video-search API responses."""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any

from redis import asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class ResponseCache:
    """Redis-backed cache keyed by request signature.

    The API key never takes part in the signature, so rotating keys does not
    invalidate cached responses. Redis failures degrade to cache misses.
    """

    def __init__(self, redis: aioredis.Redis, ttl: int = 86400) -> None:
        """Initialize the response cache.

        Args:
            redis: Redis client instance
            ttl: Time-to-live in seconds (default: 86400 = 24 hours)
        """
        self.redis = redis
        self.ttl = ttl
        self.key_prefix = "mediagrab:yt:"

    def signature(self, endpoint: str, params: dict[str, Any]) -> str:
        payload = json.dumps(
            {"endpoint": endpoint, "params": {k: v for k, v in params.items() if k != "key"}},
            sort_keys=True,
            ensure_ascii=False,
        )
        return self.key_prefix + hashlib.sha256(payload.encode()).hexdigest()

    async def get(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any] | None:
        try:
            raw = await self.redis.get(self.signature(endpoint, params))
        except RedisError as exc:
            logger.warning("response cache read failed: %s", exc)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, endpoint: str, params: dict[str, Any], data: dict[str, Any]) -> None:
        try:
            await self.redis.setex(self.signature(endpoint, params), self.ttl, json.dumps(data, ensure_ascii=False))
        except RedisError as exc:
            logger.warning("response cache write failed: %s", exc)
