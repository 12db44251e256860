"""RuTracker index adapter."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any

from bs4 import BeautifulSoup, Tag

from mediagrab.shared.exceptions import SourceAuthError, SourceBlockedError, SourceError
from mediagrab.shared.models import TransferCandidate
from mediagrab.sources.base import absolute, make_candidate, resolve_detail_magnet, search_variants
from mediagrab.sources.fetcher import PageFetcher
from mediagrab.sources.parsing import build_query_variants, parse_int, parse_size

logger = logging.getLogger(__name__)

MAX_RESULTS = 15
MIN_SIZE_BYTES = 500 * 1024**2
MAX_SIZE_BYTES = 20 * 1024**3
MIN_SEEDERS = 2


class RuTrackerSource:
    """Search rutracker.org with a logged-in browser session.

    Implements the ``CandidateSource`` protocol. Search requires the session
    cookies to be seeded on the fetcher (``bb_session``); a redirect to the
    login form raises ``SourceAuthError``. Rows outside 500 MB–20 GB or with
    fewer than two seeders are dropped before their topic pages are fetched.
    """

    name = "rutracker"

    def __init__(
        self,
        base_url: str,
        *,
        fetcher: PageFetcher,
        max_results: int = MAX_RESULTS,
        detail_delay: tuple[float, float] = (1.0, 3.0),
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._fetcher = fetcher
        self._max_results = max_results
        self._detail_delay = detail_delay
        self._sleep = sleep
        self._rng = rng or random.Random()

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
            self.name, variants, self._search_query, language=language, limit=self._max_results
        )

    async def _search_query(self, query: str) -> list[TransferCandidate]:
        html = await self._fetcher.get_text(
            f"{self._base_url}/forum/tracker.php",
            params={"nm": query},
            referer=f"{self._base_url}/forum/index.php",
        )
        if 'name="login_username"' in html:
            raise SourceAuthError("rutracker session expired: search redirected to the login form")

        rows = [r for r in parse_search_page(html, self._base_url) if is_acceptable(r["size"], r["seeders"])]
        results: list[TransferCandidate] = []
        for row in rows[: self._max_results]:
            await self._sleep(self._rng.uniform(*self._detail_delay))
            try:
                magnet = await resolve_detail_magnet(self._fetcher, row["detail_url"], referer=self._base_url)
            except SourceBlockedError:
                raise
            except SourceError as exc:
                logger.warning("rutracker topic %s failed: %s", row["detail_url"], exc)
                continue
            if magnet:
                results.append(
                    make_candidate(
                        title=row["title"],
                        size=row["size"],
                        seeders=row["seeders"],
                        locator=magnet,
                        source=self.name,
                    )
                )
        return results


def is_acceptable(size: int, seeders: int) -> bool:
    return MIN_SIZE_BYTES <= size <= MAX_SIZE_BYTES and seeders >= MIN_SEEDERS


def parse_search_page(html: str, base_url: str) -> list[dict[str, Any]]:
    """Parse the tracker.php result table into raw rows."""
    soup = BeautifulSoup(html, "lxml")
    rows: list[dict[str, Any]] = []
    for tr in soup.select("#tor-tbl tr.tCenter, table.forumline tr.tCenter, tr.hl-tr"):
        parsed = _parse_row(tr, base_url)
        if parsed is not None and all(p["detail_url"] != parsed["detail_url"] for p in rows):
            rows.append(parsed)
    return rows


def _parse_row(tr: Tag, base_url: str) -> dict[str, Any] | None:
    topic = tr.select_one("td.t-title-col a.t-title") or tr.select_one("a.tLink")
    if topic is None:
        return None
    href = topic.get("href")
    title = topic.get_text(strip=True)
    if not title or not isinstance(href, str):
        return None

    size_cell = tr.select_one("td.tor-size")
    size = 0
    if size_cell is not None:
        # data-ts_text carries the exact byte count; the visible text is rounded.
        raw = size_cell.get("data-ts_text")
        size = int(raw) if isinstance(raw, str) and raw.isdigit() else parse_size(size_cell.get_text(" ", strip=True))

    seeders_tag = tr.select_one("b.seedmed") or tr.select_one("td.seedmed")
    return {
        "title": title,
        "detail_url": absolute(f"{base_url}/forum", href),
        "size": size,
        "seeders": parse_int(seeders_tag.get_text(strip=True)) if seeders_tag is not None else 0,
    }
