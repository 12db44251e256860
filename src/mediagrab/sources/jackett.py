"""Jackett adapter: one JSON API in front of many indexers."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from mediagrab.shared.exceptions import SourceBlockedError, SourceError
from mediagrab.shared.models import TransferCandidate
from mediagrab.shared.retry import is_transient, retry_after_seconds, retrying
from mediagrab.sources.base import make_candidate, search_variants
from mediagrab.sources.parsing import build_query_variants

logger = logging.getLogger(__name__)

# Torznab categories: Movies and TV.
CATEGORIES = (2000, 5000)


class JackettSource:
    """Search every indexer configured in a Jackett instance.

    Implements the ``CandidateSource`` protocol. Results without a magnet URI
    fall back to Jackett's proxied ``.torrent`` link, which the transfer step
    downloads and submits as a file.
    """

    name = "jackett"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: int = 30,
        limit: int = 50,
        max_attempts: int = 3,
        base_delay: float = 2.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._limit = limit
        self._max_attempts = max_attempts
        self._base_delay = base_delay

    async def search(
        self,
        title: str,
        alternate_title: str | None = None,
        language: str = "ru",
        *,
        year: int | None = None,
    ) -> list[TransferCandidate]:
        variants = build_query_variants(title, alternate_title, year=year)
        return await search_variants(
            self.name, variants, self._search_query, language=language, limit=self._limit
        )

    async def _search_query(self, query: str) -> list[TransferCandidate]:
        """Query Jackett's unified endpoint and return normalised candidates.

        Raises:
            SourceError: If the HTTP request fails after retries.
        """
        url = f"{self._base_url}/api/v2.0/indexers/all/results"
        params: dict[str, Any] = {
            "apikey": self._api_key,
            "Query": query,
            "Category[]": list(CATEGORIES),
        }

        try:
            async for attempt in retrying(
                max_attempts=self._max_attempts,
                base_delay=self._base_delay,
                is_retryable=is_transient,
            ):
                with attempt:
                    async with httpx.AsyncClient(timeout=self._timeout) as client:
                        resp = await client.get(url, params=params)
                        if resp.status_code == 429:
                            raise SourceBlockedError("jackett rate limited", retry_after=retry_after_seconds(resp))
                        resp.raise_for_status()
                        data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise SourceError(f"Jackett returned {exc.response.status_code}: {exc.response.text[:200]}") from exc
        except httpx.HTTPError as exc:
            raise SourceError(f"Jackett request failed: {exc}") from exc

        results: list[TransferCandidate] = []
        for item in data.get("Results", [])[: self._limit]:
            locator = item.get("MagnetUri") or item.get("Link") or ""
            size = int(item.get("Size") or 0)
            if not locator or size <= 0:
                continue
            results.append(
                make_candidate(
                    title=item.get("Title", ""),
                    size=size,
                    seeders=int(item.get("Seeders") or 0),
                    locator=locator,
                    source=self.name,
                )
            )

        logger.info("jackett returned %d results for query=%r", len(results), query)
        return results
