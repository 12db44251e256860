"""Rutor index adapter."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import quote

from bs4 import BeautifulSoup, Tag

from mediagrab.shared.models import TransferCandidate
from mediagrab.sources.base import absolute, make_candidate, resolve_detail_magnet, search_variants
from mediagrab.sources.fetcher import PageFetcher
from mediagrab.sources.parsing import build_query_variants, parse_int, parse_size

logger = logging.getLogger(__name__)

NEXT_PAGE_TEXT = "следующая"


class RutorSource:
    """Search rutor.info result pages.

    Implements the ``CandidateSource`` protocol. Magnet links are read from the
    result table; the detail page is only fetched for rows that lack one.
    """

    name = "rutor"

    def __init__(
        self,
        base_url: str,
        *,
        fetcher: PageFetcher,
        max_pages: int = 5,
        page_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._fetcher = fetcher
        self._max_pages = max_pages
        self._page_delay = page_delay
        self._sleep = sleep

    async def search(
        self,
        title: str,
        alternate_title: str | None = None,
        language: str = "ru",
        *,
        year: int | None = None,
    ) -> list[TransferCandidate]:
        variants = build_query_variants(title, alternate_title, year=year)
        return await search_variants(self.name, variants, self._search_query, language=language)

    async def _search_query(self, query: str) -> list[TransferCandidate]:
        results: list[TransferCandidate] = []
        for page in range(self._max_pages):
            if page:
                await self._sleep(self._page_delay)
            url = f"{self._base_url}/search/{page}/0/000/0/{quote(query)}"
            html = await self._fetcher.get_text(url, referer=self._base_url)
            rows, has_next = parse_search_page(html, self._base_url)

            for row in rows:
                candidate = await self._complete(row)
                if candidate is not None:
                    results.append(candidate)

            if not has_next:
                break
        return results

    async def _complete(self, row: dict[str, Any]) -> TransferCandidate | None:
        locator = row["magnet"]
        if not locator and row["detail_url"]:
            locator = await resolve_detail_magnet(self._fetcher, row["detail_url"], referer=self._base_url)
        if not locator or row["size"] <= 0:
            return None
        return make_candidate(
            title=row["title"],
            size=row["size"],
            seeders=row["seeders"],
            locator=locator,
            source=self.name,
        )


def parse_search_page(html: str, base_url: str) -> tuple[list[dict[str, Any]], bool]:
    """Parse one result page into raw rows and report whether a next page exists."""
    soup = BeautifulSoup(html, "lxml")
    table = soup.select_one("#index")
    rows: list[dict[str, Any]] = []
    if table is None:
        return rows, False

    for tr in table.select("tr"):
        parsed = _parse_row(tr, base_url)
        if parsed is not None:
            rows.append(parsed)

    has_next = any(NEXT_PAGE_TEXT in a.get_text(strip=True).lower() for a in soup.select("a"))
    return rows, has_next


def _parse_row(tr: Tag, base_url: str) -> dict[str, Any] | None:
    cells = tr.find_all("td", recursive=False)
    if len(cells) < 4:
        return None

    name_cell = cells[1]
    topic = name_cell.select_one("a[href^='/torrent/']")
    if topic is None:
        return None
    title = topic.get_text(strip=True)
    if not title:
        return None

    magnet_tag = name_cell.select_one("a[href^='magnet:']")
    magnet = magnet_tag.get("href") if magnet_tag is not None else None
    href = topic.get("href")

    # Rows with a comment counter have one extra column; size and peers are always last.
    size = parse_size(cells[-2].get_text(" ", strip=True))
    seeders_tag = cells[-1].select_one("span.green")
    seeders = parse_int(seeders_tag.get_text() if seeders_tag else cells[-1].get_text(" ", strip=True))

    return {
        "title": title,
        "magnet": magnet if isinstance(magnet, str) else None,
        "detail_url": absolute(base_url, href) if isinstance(href, str) else None,
        "size": size,
        "seeders": seeders,
    }
