"""Helpers shared by the index adapters."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from mediagrab.shared.exceptions import SourceAuthError, SourceBlockedError, SourceError
from mediagrab.shared.models import TransferCandidate
from mediagrab.sources.fetcher import PageFetcher
from mediagrab.sources.parsing import detect_quality, is_russian_content, is_series_title

logger = logging.getLogger(__name__)


def make_candidate(*, title: str, size: int, seeders: int, locator: str, source: str) -> TransferCandidate:
    """Build a candidate, inferring quality, language and series flags from the title."""
    return TransferCandidate(
        title=title,
        size=size,
        seeders=seeders,
        quality=detect_quality(title),
        is_russian=is_russian_content(title),
        is_series=is_series_title(title),
        locator=locator,
        source=source,
    )


def find_magnet(html: str) -> str | None:
    """Return the first magnet link on a detail page."""
    soup = BeautifulSoup(html, "lxml")
    tag = soup.select_one("a.magnet-link[href^='magnet:']") or soup.select_one("a[href^='magnet:']")
    if tag is None:
        return None
    href = tag.get("href")
    return href if isinstance(href, str) else None


async def resolve_detail_magnet(fetcher: PageFetcher, detail_url: str, *, referer: str | None = None) -> str | None:
    """Follow a result's detail page and return its magnet link, if any."""
    html = await fetcher.get_text(detail_url, referer=referer)
    return find_magnet(html)


def absolute(base_url: str, href: str) -> str:
    return urljoin(f"{base_url.rstrip('/')}/", href)


def matches_language(candidate: TransferCandidate, language: str) -> bool:
    """A Russian preference admits only Russian releases; any other accepts all."""
    return language != "ru" or candidate.is_russian


async def search_variants(
    source: str,
    variants: list[str],
    run_query: Callable[[str], Awaitable[list[TransferCandidate]]],
    *,
    language: str = "ru",
    limit: int = 50,
) -> list[TransferCandidate]:
    """Run query variants in order until one yields a valid candidate.

    Results are de-duplicated by locator and filtered by ``language`` (see
    ``matches_language``). A block or a failed login aborts the whole
    adapter (it is raised to the caller); any other per-query failure is logged and the
    next variant is tried.
    """
    found: dict[str, TransferCandidate] = {}
    for query in variants:
        try:
            results = await run_query(query)
        except (SourceBlockedError, SourceAuthError):
            raise
        except SourceError as exc:
            logger.warning("%s query %r failed: %s", source, query, exc)
            continue

        for candidate in results:
            if candidate.locator and candidate.size > 0 and matches_language(candidate, language):
                found.setdefault(candidate.locator, candidate)

        logger.info("%s query %r returned %d result(s)", source, query, len(results))
        if any(c.is_valid for c in found.values()) or len(found) >= limit:
            break

    return list(found.values())[:limit]
