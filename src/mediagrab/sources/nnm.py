"""NNM-Club index adapter."""

from __future__ import annotations

import logging
from typing import Any

from bs4 import BeautifulSoup, Tag

from mediagrab.shared.exceptions import SourceBlockedError, SourceError
from mediagrab.shared.models import TransferCandidate
from mediagrab.sources.base import absolute, make_candidate, resolve_detail_magnet, search_variants
from mediagrab.sources.fetcher import PageFetcher
from mediagrab.sources.parsing import build_query_variants, parse_int, parse_size

logger = logging.getLogger(__name__)


class NnmClubSource:
    """Search the NNM-Club tracker.

    Implements the ``CandidateSource`` protocol. The result table carries no
    magnet links, so each row's topic page is fetched to resolve one.
    """

    name = "nnm"

    def __init__(self, base_url: str, *, fetcher: PageFetcher, max_results: int = 20) -> None:
        self._base_url = base_url.rstrip("/")
        self._fetcher = fetcher
        self._max_results = max_results

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
        results: list[TransferCandidate] = []
        for row in parse_search_page(html, self._base_url)[: self._max_results]:
            if row["seeders"] <= 0 or row["size"] <= 0:
                continue
            try:
                magnet = await resolve_detail_magnet(self._fetcher, row["detail_url"], referer=self._base_url)
            except SourceBlockedError:
                raise
            except SourceError as exc:
                logger.warning("nnm detail page %s failed: %s", row["detail_url"], exc)
                continue
            if not magnet:
                continue
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


def parse_search_page(html: str, base_url: str) -> list[dict[str, Any]]:
    """Parse the tracker.php result table into raw rows."""
    soup = BeautifulSoup(html, "lxml")
    rows: list[dict[str, Any]] = []
    for tr in soup.select("tr.prow1, tr.prow2"):
        parsed = _parse_row(tr, base_url)
        if parsed is not None:
            rows.append(parsed)
    return rows


def _parse_row(tr: Tag, base_url: str) -> dict[str, Any] | None:
    topic = tr.select_one("a.genmed[href*='viewtopic.php']") or tr.select_one("a[href*='viewtopic.php?t=']")
    if topic is None:
        return None
    href = topic.get("href")
    title = topic.get_text(strip=True)
    if not title or not isinstance(href, str):
        return None

    cells = tr.find_all("td", recursive=False)
    size_text = cells[5].get_text(" ", strip=True) if len(cells) > 5 else ""
    seeders_tag = tr.select_one("td.seedmed") or (cells[7] if len(cells) > 7 else None)

    return {
        "title": title,
        "detail_url": absolute(f"{base_url}/forum", href),
        "size": parse_size(size_text),
        "seeders": parse_int(seeders_tag.get_text(" ", strip=True)) if seeders_tag is not None else 0,
    }
