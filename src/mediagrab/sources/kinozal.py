"""Kinozal index adapter."""

from __future__ import annotations

import io
import logging
import re
from typing import Any

from bs4 import BeautifulSoup, Tag
from torf import Torrent, TorfError

from mediagrab.shared.exceptions import SourceAuthError, SourceBlockedError, SourceError
from mediagrab.shared.models import TransferCandidate
from mediagrab.sources.base import absolute, make_candidate, search_variants
from mediagrab.sources.fetcher import PageFetcher
from mediagrab.sources.parsing import build_query_variants, parse_int, parse_size

logger = logging.getLogger(__name__)

CATEGORIES = (1002, 8, 6, 15, 17)
_DETAILS_ID = re.compile(r"details\.php\?id=(\d+)")


class KinozalSource:
    """Search kinozal.tv as a logged-in member.

    Implements the ``CandidateSource`` protocol. Kinozal only hands out
    ``.torrent`` files to members, so each accepted row's file is downloaded
    with the session cookies and converted into a magnet URI (with its
    announce list) at search time.
    """

    name = "kinozal"

    def __init__(
        self,
        base_url: str,
        *,
        fetcher: PageFetcher,
        username: str = "",
        password: str = "",
        categories: tuple[int, ...] = CATEGORIES,
        max_results: int = 15,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._fetcher = fetcher
        self._username = username
        self._password = password
        self._categories = categories
        self._max_results = max_results
        self._logged_in = False

    async def search(
        self,
        title: str,
        alternate_title: str | None = None,
        language: str = "ru",
        *,
        year: int | None = None,
    ) -> list[TransferCandidate]:
        await self._ensure_login()
        variants = build_query_variants(title, alternate_title, year=year)
        return await search_variants(
            self.name, variants, self._search_query, language=language, limit=self._max_results
        )

    async def _ensure_login(self) -> None:
        if self._logged_in:
            return
        if _has_session(self._fetcher.cookies):
            self._logged_in = True
            return
        if not (self._username and self._password):
            raise SourceAuthError("kinozal requires credentials or session cookies")

        resp = await self._fetcher.post_form(
            f"{self._base_url}/takelogin.php",
            {"username": self._username, "password": self._password},
            referer=f"{self._base_url}/login.php",
        )
        if not _has_session(self._fetcher.cookies):
            raise SourceAuthError(f"kinozal login failed (status={resp.status_code})")
        self._logged_in = True
        logger.info("kinozal login successful")

    async def _search_query(self, query: str) -> list[TransferCandidate]:
        rows: list[dict[str, Any]] = []
        for category in self._categories:
            html = await self._fetcher.get_text(
                f"{self._base_url}/browse.php",
                params={"s": query, "c": category},
                referer=self._base_url,
            )
            if "takelogin.php" in html and "Выход" not in html:
                self._logged_in = False
                raise SourceAuthError("kinozal session expired")
            for row in parse_search_page(html, self._base_url):
                if row["detail_url"] not in {r["detail_url"] for r in rows}:
                    rows.append(row)
            if len(rows) >= self._max_results:
                break

        results: list[TransferCandidate] = []
        for row in rows[: self._max_results]:
            if row["seeders"] <= 0 or row["size"] <= 0:
                continue
            try:
                magnet = await self._resolve_magnet(row["detail_url"])
            except SourceBlockedError:
                raise
            except SourceError as exc:
                logger.warning("kinozal details %s failed: %s", row["detail_url"], exc)
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

    async def _resolve_magnet(self, detail_url: str) -> str | None:
        html = await self._fetcher.get_text(detail_url, referer=self._base_url)
        soup = BeautifulSoup(html, "lxml")
        tag = soup.select_one("#download_url") or soup.select_one("a[href*='download.php?id=']")
        href = tag.get("href") if tag is not None else None
        if not isinstance(href, str):
            return None
        data = await self._fetcher.get_bytes(absolute(self._base_url, href), referer=detail_url)
        return magnet_from_torrent(data)


def magnet_from_torrent(data: bytes) -> str | None:
    """Convert raw ``.torrent`` bytes into a magnet URI; None if unreadable."""
    try:
        torrent = Torrent.read_stream(io.BytesIO(data), validate=False)
        return str(torrent.magnet())
    except TorfError as exc:
        logger.warning("unreadable torrent file (%d bytes): %s", len(data), exc)
        return None


def parse_search_page(html: str, base_url: str) -> list[dict[str, Any]]:
    """Parse the browse.php result table into raw rows."""
    soup = BeautifulSoup(html, "lxml")
    rows: list[dict[str, Any]] = []
    for tr in soup.select(".bx1 tr:not(.bg), table.t_peer tr.bg"):
        parsed = _parse_row(tr, base_url)
        if parsed is not None:
            rows.append(parsed)
    return rows


def _parse_row(tr: Tag, base_url: str) -> dict[str, Any] | None:
    link = tr.select_one(".nam a")
    if link is None:
        return None
    href = link.get("href")
    title = link.get_text(strip=True)
    if not title or not isinstance(href, str) or not _DETAILS_ID.search(href):
        return None

    cells = tr.find_all("td", recursive=False)
    size_text = cells[3].get_text(" ", strip=True) if len(cells) > 3 else ""
    seeders_text = cells[4].get_text(" ", strip=True) if len(cells) > 4 else ""
    return {
        "title": title,
        "detail_url": absolute(base_url, href),
        "size": parse_size(size_text),
        "seeders": parse_int(seeders_text),
    }


def _has_session(cookies: dict[str, str]) -> bool:
    return bool(cookies.get("uid")) and bool(cookies.get("pass"))
