"""Redis connection for the YouTube response cache."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import redis.asyncio as aioredis
from redis.exceptions import RedisError

if TYPE_CHECKING:
    from mediagrab.config import Settings

logger = logging.getLogger(__name__)


async def connect_redis(settings: Settings) -> aioredis.Redis | None:
    """Open a client and ping it.

    Redis only backs the trailer cache, so an unreachable server is logged and
    reported as ``None`` rather than failing startup.
    """
    client: aioredis.Redis = aioredis.from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning("redis unavailable at %s, trailer cache disabled: %s", settings.redis_url, exc)
        await client.aclose()
        return None
    return client
