"""Find an official trailer for a title."""

from __future__ import annotations

import logging

from mediagrab.shared.enums import ContentType, Quality
from mediagrab.shared.models import ContentDescriptor
from mediagrab.trailers.scoring import VideoDetails, confidence, detect_russian, is_eligible, rank_results
from mediagrab.trailers.youtube import YouTubeClient

logger = logging.getLogger(__name__)

# Top-ranked search hits whose details are fetched (one videos call).
DETAIL_CANDIDATES = 3


class TrailerFinder:
    """Search, rank and validate trailer candidates for a title."""

    def __init__(self, client: YouTubeClient, *, detail_candidates: int = DETAIL_CANDIDATES) -> None:
        self._client = client
        self._detail_candidates = detail_candidates

    async def find_trailer(self, title: str) -> ContentDescriptor | None:
        """Return a TRAILER descriptor for ``title``, or None if nothing qualifies.

        Raises:
            QuotaExhaustedError: If every API key is exhausted.
            ApiKeyInvalidError: If the provider rejects the API key.
            TrailerSearchError: If the provider request fails.
        """
        items = await self._client.search(f"{title} trailer official movie")
        if not items:
            logger.info("no trailer results for %r, relaxing query", title)
            items = await self._client.search(f"{title} trailer movie")
        if not items:
            return None

        hits = rank_results(items, title)
        if not hits:
            logger.info("no trailer result for %r scored high enough", title)
            return None

        shortlisted = hits[: self._detail_candidates]
        resources = await self._client.videos([h.video_id for h in shortlisted])
        by_id = {d.video_id: d for d in (VideoDetails.from_api(item) for item in resources)}

        for hit in shortlisted:
            details = by_id.get(hit.video_id)
            if details is None:
                continue
            if not is_eligible(details):
                logger.debug(
                    "trailer %s rejected (duration=%ds, privacy=%s)",
                    hit.video_id,
                    details.duration,
                    details.privacy_status,
                )
                continue
            descriptor = ContentDescriptor(
                url=details.url,
                quality=Quality.HD if details.definition == "hd" else Quality.SD_480P,
                type=ContentType.TRAILER,
                format="mp4",
                score=confidence(details),
                is_russian=detect_russian(details.title, details.description),
                title=details.title,
                description=details.description,
                duration=details.duration,
            )
            logger.info("trailer for %r: %s (score=%d)", title, descriptor.url, descriptor.score)
            return descriptor

        logger.info("no eligible trailer for %r", title)
        return None
