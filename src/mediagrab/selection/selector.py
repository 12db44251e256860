"""Rank transfer candidates and pick the best one."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime

from pydantic import BaseModel

from mediagrab.selection.interfaces import ReleaseLookup
from mediagrab.selection.title_match import title_score
from mediagrab.shared.enums import Quality
from mediagrab.shared.exceptions import MetadataError
from mediagrab.shared.models import TransferCandidate, utc_now
from mediagrab.sources.parsing import extract_year

logger = logging.getLogger(__name__)

GIB = 1024**3
MAX_MOVIE_SIZE = 5 * GIB

# Expected (min, max) byte size per quality tier.
OPTIMAL_SIZE: dict[Quality, tuple[float, float]] = {
    Quality.UHD_4K: (2 * GIB, 5 * GIB),
    Quality.FHD_1080P: (1.5 * GIB, 4 * GIB),
    Quality.HD: (1 * GIB, 3 * GIB),
    Quality.HD_720P: (0.7 * GIB, 2.5 * GIB),
    Quality.SD_480P: (0.5 * GIB, 1.5 * GIB),
}
DEFAULT_SIZE_RANGE = (0.5 * GIB, 5 * GIB)


def quality_score(quality: Quality) -> int:
    """4K=6, 1080p=5, HD=3, 720p=2, 480p=1, unknown=0."""
    return quality.rank


def size_fits(candidate: TransferCandidate) -> bool:
    low, high = OPTIMAL_SIZE.get(candidate.quality, DEFAULT_SIZE_RANGE)
    return low <= candidate.size <= high


class RankedCandidate(BaseModel):
    """A candidate with the components of its ranking."""

    model_config = {"frozen": True}

    candidate: TransferCandidate
    title_score: float
    year_match: bool
    quality_score: int
    size_fit: bool

    @property
    def sort_key(self) -> tuple:
        # Ascending sort puts the best first; title and locator make the order total.
        c = self.candidate
        return (
            -self.title_score,
            not self.year_match,
            -self.quality_score,
            not self.size_fit,
            -c.seeders,
            c.size,
            c.title,
            c.locator,
        )


class CandidateSelector:
    """Pick the best transfer candidate for a title.

    Candidates are first checked against release metadata: an unreleased or
    unknown title rejects everything, and candidates whose bracketed year is
    more than one year off the release year are dropped. Non-series releases
    above 5 GiB are dropped. The rest are ranked by title similarity, year
    match, quality tier, size fitness for that tier, seeders and finally
    smaller size.
    """

    def __init__(
        self,
        *,
        releases: ReleaseLookup | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._releases = releases
        self._clock = clock

    async def select(
        self,
        candidates: list[TransferCandidate],
        original_title: str | None = None,
        query_title: str | None = None,
    ) -> TransferCandidate | None:
        """Return the top-ranked candidate, or None if none qualifies."""
        if not candidates:
            return None

        now = self._clock()
        release_year: int | None = None
        if self._releases is not None and self._releases.configured:
            query = query_title or original_title or candidates[0].title
            try:
                releases = await self._releases.search_movie(query)
            except MetadataError as exc:
                logger.warning("release lookup failed for %r, skipping year check: %s", query, exc)
            else:
                if not releases:
                    logger.info("no release metadata for %r", query)
                    return None
                release_date = releases[0].release_date
                if release_date is None:
                    logger.info("release metadata for %r has no valid date", query)
                    return None
                if release_date > now.date():
                    logger.info("%r is not released yet (%s)", query, release_date.isoformat())
                    return None
                release_year = release_date.year

        pool = list(candidates)
        if release_year is not None:
            allowed = {release_year - 1, release_year, release_year + 1}
            pool = [c for c in pool if _year_of(c, now) in allowed]
            if not pool:
                logger.info("no candidates within a year of %d", release_year)
                return None

        pool = [c for c in pool if c.is_series or c.size <= MAX_MOVIE_SIZE]
        if not pool:
            logger.info("no candidates within the %d GiB movie size limit", MAX_MOVIE_SIZE // GIB)
            return None

        ranked = self.rank(pool, original_title or query_title, target_year=release_year, now=now)
        best = ranked[0].candidate
        logger.info(
            "selected %r (quality=%s, size=%.2f GiB, seeders=%d, source=%s)",
            best.title,
            best.quality.value,
            best.size / GIB,
            best.seeders,
            best.source,
        )
        return best

    def rank(
        self,
        candidates: list[TransferCandidate],
        wanted_title: str | None,
        *,
        target_year: int | None = None,
        now: datetime | None = None,
    ) -> list[RankedCandidate]:
        """Rank candidates best-first.

        Without a known release year, the most common detectable year among the
        candidates is preferred.
        """
        now = now or self._clock()
        if target_year is None:
            years = Counter(y for y in (_year_of(c, now) for c in candidates) if y is not None)
            if years:
                # Ties resolve to the earliest year so the choice is stable.
                target_year = min(years, key=lambda y: (-years[y], y))

        ranked = [
            RankedCandidate(
                candidate=c,
                title_score=title_score(c.title, wanted_title),
                year_match=target_year is not None and _year_of(c, now) == target_year,
                quality_score=quality_score(c.quality),
                size_fit=size_fits(c),
            )
            for c in candidates
        ]
        ranked.sort(key=lambda r: r.sort_key)
        return ranked


def _year_of(candidate: TransferCandidate, now: datetime) -> int | None:
    return extract_year(candidate.title, now=now, bare=True)


def confidence_score(candidate: TransferCandidate) -> int:
    """0-100 confidence stored with published content.

    Quality tier is worth up to 60, a size that fits the tier 20, and seeders
    one point each up to 20.
    """
    score = quality_score(candidate.quality) * 10
    if size_fits(candidate):
        score += 20
    score += min(candidate.seeders, 20)
    return min(score, 100)
