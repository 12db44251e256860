"""YouTube Data API v3 client with key rotation and response caching."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from mediagrab.shared.exceptions import ApiKeyInvalidError, RateLimitedError, TrailerSearchError
from mediagrab.shared.retry import is_transient, retry_after_seconds, retrying
from mediagrab.trailers.cache import ResponseCache
from mediagrab.trailers.key_pool import ApiKeyPool

logger = logging.getLogger(__name__)

# Quota units charged by YouTube per call.
SEARCH_COST = 100
VIDEOS_COST = 1

QUOTA_REASONS = frozenset({"quotaExceeded", "dailyLimitExceeded"})
RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})
INVALID_KEY_REASONS = frozenset({"keyInvalid", "keyExpired", "accessNotConfigured", "ipRefererBlocked"})

_VIDEO_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")


def is_valid_video_id(video_id: str) -> bool:
    return bool(_VIDEO_ID.match(video_id or ""))


class YouTubeClient:
    """Search and video-details calls against the YouTube Data API.

    Every call draws a key from the pool. A quota-exhaustion 403 retires the
    key and the call is repeated with the next one; an invalid-key response
    raises ``ApiKeyInvalidError``. 429, rate-limit 403s and transient failures
    are retried with backoff without retiring the key. Responses are cached
    when a cache is configured.
    """

    def __init__(
        self,
        pool: ApiKeyPool,
        *,
        base_url: str = "https://www.googleapis.com/youtube/v3",
        cache: ResponseCache | None = None,
        region: str = "RU",
        language: str = "ru",
        timeout: int = 10,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._pool = pool
        self._base_url = base_url.rstrip("/")
        self._cache = cache
        self._region = region
        self._language = language
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._sleep = sleep

    async def search(self, query: str, *, max_results: int = 10) -> list[dict[str, Any]]:
        """Return raw ``search#result`` items for a video query."""
        params: dict[str, Any] = {
            "part": "snippet",
            "q": query.strip(),
            "type": "video",
            "maxResults": max_results,
            "regionCode": self._region,
            "relevanceLanguage": self._language,
            "safeSearch": "moderate",
            "order": "relevance",
            "videoEmbeddable": "true",
        }
        data = await self._get("search", params, SEARCH_COST)
        return [item for item in data.get("items", []) if is_valid_video_id(item.get("id", {}).get("videoId", ""))]

    async def videos(self, video_ids: list[str]) -> list[dict[str, Any]]:
        """Return raw ``video`` resources with snippet, contentDetails and status."""
        ids = [v for v in video_ids if is_valid_video_id(v)]
        if not ids:
            return []
        params: dict[str, Any] = {"part": "snippet,contentDetails,status", "id": ",".join(ids)}
        data = await self._get("videos", params, VIDEOS_COST)
        return data.get("items", [])

    async def _get(self, endpoint: str, params: dict[str, Any], cost: int) -> dict[str, Any]:
        if self._cache is not None:
            cached = await self._cache.get(endpoint, params)
            if cached is not None:
                logger.debug("youtube %s served from cache", endpoint)
                return cached

        try:
            async for attempt in retrying(
                max_attempts=self._max_attempts,
                base_delay=self._base_delay,
                is_retryable=is_transient,
                sleep=self._sleep,
            ):
                with attempt:
                    data = await self._request(endpoint, params, cost)
        except httpx.HTTPStatusError as exc:
            raise TrailerSearchError(
                f"YouTube returned {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TrailerSearchError(f"YouTube request failed: {exc}") from exc

        if self._cache is not None:
            await self._cache.set(endpoint, params, data)
        return data

    async def _request(self, endpoint: str, params: dict[str, Any], cost: int) -> dict[str, Any]:
        url = f"{self._base_url}/{endpoint}"
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            while True:
                key = self._pool.get_available_key()
                resp = await client.get(url, params={**params, "key": key}, headers={"Accept": "application/json"})
                if resp.status_code == 200:
                    self._pool.increment_usage(key, cost)
                    return resp.json()

                reason = _error_reason(resp)
                if resp.status_code == 403 and reason in QUOTA_REASONS:
                    logger.warning("youtube key quota exhausted (%s), rotating", reason)
                    self._pool.mark_exhausted(key)
                    continue
                if reason in INVALID_KEY_REASONS or (resp.status_code == 400 and "api key" in resp.text.lower()):
                    raise ApiKeyInvalidError(f"YouTube rejected the API key: {reason or resp.status_code}")
                if resp.status_code == 429 or (resp.status_code == 403 and reason in RATE_LIMIT_REASONS):
                    raise RateLimitedError("YouTube rate limited", retry_after=retry_after_seconds(resp))
                if resp.status_code >= 500:
                    resp.raise_for_status()
                raise TrailerSearchError(f"YouTube returned {resp.status_code}: {resp.text[:200]}")


def _error_reason(resp: httpx.Response) -> str | None:
    try:
        errors = resp.json().get("error", {}).get("errors", [])
    except ValueError:
        return None
    if errors and isinstance(errors[0], dict):
        return errors[0].get("reason")
    return None
