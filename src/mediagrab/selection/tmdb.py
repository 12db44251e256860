"""Release metadata lookup via the TMDB v3 API."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx

from mediagrab.shared.exceptions import MetadataError
from mediagrab.shared.models import ReleaseInfo

logger = logging.getLogger(__name__)


class TmdbClient:
    """Metadata lookup implementation using TMDB's ``/search/movie``.

    Implements the ``ReleaseLookup`` protocol.
    """

    def __init__(self, base_url: str, api_key: str, *, language: str = "ru-RU", timeout: int = 15) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._language = language
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def search_movie(self, query: str) -> list[ReleaseInfo]:
        """Search TMDB for a title.

        Args:
            query: Title to search for.

        Returns:
            Matching releases in TMDB relevance order. ``release_date`` is None
            when TMDB has no date or an unparseable one.

        Raises:
            MetadataError: If the TMDB request fails.
        """
        params: dict[str, Any] = {"api_key": self._api_key, "query": query, "language": self._language}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(f"{self._base_url}/search/movie", params=params)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise MetadataError(f"TMDB returned {exc.response.status_code}: {exc.response.text[:200]}") from exc
        except httpx.HTTPError as exc:
            raise MetadataError(f"TMDB request failed: {exc}") from exc

        results = [
            ReleaseInfo(
                title=item.get("title") or "",
                original_title=item.get("original_title"),
                release_date=_parse_date(item.get("release_date")),
            )
            for item in data.get("results", [])
        ]
        logger.debug("tmdb returned %d result(s) for %r", len(results), query)
        return results


def _parse_date(raw: Any) -> date | None:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None
