"""Per-title acquisition state machine."""

from __future__ import annotations

import logging

import asyncpg

from mediagrab.pipeline.context import RunContext
from mediagrab.pipeline.run_status import RunRecorder
from mediagrab.publisher.publisher import RemotePublisher
from mediagrab.selection.selector import CandidateSelector, confidence_score
from mediagrab.shared.enums import ContentStatus, ContentType, MediaStatus
from mediagrab.shared.exceptions import HostingPayloadTooLargeError
from mediagrab.shared.models import ContentDescriptor, Media, TransferCandidate, VideoContent
from mediagrab.shared.repository import PLAYABLE_TYPES, MediaRepository, VideoContentRepository
from mediagrab.sources.chain import SourceChain
from mediagrab.trailers.finder import TrailerFinder
from mediagrab.trailers.scoring import revalidate
from mediagrab.transfer.orchestrator import TransferOrchestrator

logger = logging.getLogger(__name__)

# Selected candidates tried per title before giving up.
MAX_TRANSFER_TRIES = 3


class PipelineCoordinator:
    """Move one Media through trailer discovery and full-content acquisition.

    Flow per item:
    1. Skip if a non-ERROR FULL_MOVIE/EPISODE record already exists.
    2. Find a trailer if there is none, or swap a stale / wrong-language one.
    3. Search sources, select, transfer, transcode and publish full content.
    4. Store the result and set READY, or TRAILER / NO_VIDEO when nothing
       qualified.

    Any exception is logged to the parser log, recorded on the run context,
    turns the item into ERROR and is re-raised.
    """

    def __init__(
        self,
        *,
        media_repo: MediaRepository,
        content_repo: VideoContentRepository,
        recorder: RunRecorder,
        sources: SourceChain,
        selector: CandidateSelector,
        transfer: TransferOrchestrator,
        publisher: RemotePublisher,
        trailers: TrailerFinder | None = None,
        preferred_language: str = "ru",
        max_transfer_tries: int = MAX_TRANSFER_TRIES,
    ) -> None:
        self._media_repo = media_repo
        self._content_repo = content_repo
        self._recorder = recorder
        self._sources = sources
        self._selector = selector
        self._transfer = transfer
        self._publisher = publisher
        self._trailers = trailers
        self._preferred_language = preferred_language
        self._max_transfer_tries = max_transfer_tries

    async def process(self, media: Media, ctx: RunContext, *, refresh: bool = False) -> MediaStatus:
        """Run the state machine for one item and return its resulting status."""
        try:
            return await self._process(media, refresh=refresh)
        except Exception as exc:
            message = f"failed to process {media.title!r} ({media.id})"
            logger.exception("%s", message)
            ctx.record_error(f"{media.title}: {type(exc).__name__}: {exc}")
            await self._recorder.log(message, exc)
            try:
                await self._media_repo.update_status(media.id, MediaStatus.ERROR)
            except (asyncpg.PostgresError, OSError) as status_exc:
                logger.warning("failed to mark %s as ERROR: %s", media.id, status_exc)
            raise

    async def _process(self, media: Media, *, refresh: bool) -> MediaStatus:
        if refresh:
            removed = await self._content_repo.delete(media.id, status=ContentStatus.ERROR)
            if removed:
                logger.info("removed %d errored content record(s) for %s", removed, media.id)

        existing = await self._content_repo.find(media.id)
        playable = [c for c in existing if c.type in PLAYABLE_TYPES and c.status != ContentStatus.ERROR]
        if playable:
            logger.info("%r already has %d playable record(s), skipping", media.title, len(playable))
            if refresh or media.status != MediaStatus.READY:
                await self._media_repo.update_status(media.id, MediaStatus.READY)
            return MediaStatus.READY

        trailers = [c for c in existing if c.type == ContentType.TRAILER]
        has_trailer = await self._ensure_trailer(media, trailers[-1] if trailers else None)

        descriptor = await self._acquire_full_content(media)
        if descriptor is not None:
            await self._content_repo.delete(media.id, types=PLAYABLE_TYPES)
            await self._content_repo.create_many([descriptor.to_content(media.id)])
            await self._media_repo.update_status(media.id, MediaStatus.READY)
            await self._recorder.log(f"published {media.title!r}: {descriptor.url}")
            return MediaStatus.READY

        final = MediaStatus.TRAILER if has_trailer else MediaStatus.NO_VIDEO
        await self._media_repo.update_status(media.id, final)
        logger.info("no full content for %r, status=%s", media.title, final.value)
        return final

    def _is_preferred(self, is_russian: bool) -> bool:
        return is_russian if self._preferred_language == "ru" else not is_russian

    async def _ensure_trailer(self, media: Media, current: VideoContent | None) -> bool:
        """Make sure the item has the best trailer available; return whether it has a valid one.

        A valid trailer in the preferred language is never replaced. A valid
        trailer in another language is only replaced by one in the preferred
        language. An invalid trailer is replaced by anything found.
        """
        current_valid = current is not None and revalidate(current)
        if current is not None and current_valid and self._is_preferred(current.is_russian):
            return True
        if self._trailers is None:
            return current_valid

        found = await _find_trailer(self._trailers, media)
        if found is None:
            return current_valid
        if current is not None and current_valid and not self._is_preferred(found.is_russian):
            logger.info("keeping existing trailer for %r, replacement is not in the preferred language", media.title)
            return True

        await self._content_repo.delete(media.id, types=(ContentType.TRAILER,))
        await self._content_repo.create_many([found.to_content(media.id)])
        await self._media_repo.update_status(media.id, MediaStatus.TRAILER)
        logger.info("%s trailer for %r: %s", "replaced" if current else "stored", media.title, found.url)
        return True

    async def _acquire_full_content(self, media: Media) -> ContentDescriptor | None:
        alternate = media.original_title if media.original_title != media.title else None
        candidates = await self._sources.search(
            media.title, alternate, self._preferred_language, year=media.release_year
        )
        if not candidates:
            logger.info("no valid candidates for %r", media.title)
            return None

        remaining = list(candidates)
        for _ in range(self._max_transfer_tries):
            best = await self._selector.select(remaining, media.original_title, media.title)
            if best is None:
                return None
            remaining = [c for c in remaining if c.locator != best.locator]

            descriptor = await self._transfer_and_publish(media, best)
            if descriptor is not None:
                return descriptor
            if not remaining:
                return None
        return None

    async def _transfer_and_publish(self, media: Media, candidate: TransferCandidate) -> ContentDescriptor | None:
        path = await self._transfer.acquire(candidate)
        if path is None:
            logger.info("transfer of %r produced no usable file", candidate.title)
            return None
        try:
            published = await self._publisher.publish(path, media.is_series)
        except HostingPayloadTooLargeError as exc:
            logger.warning("host rejected %r as too large: %s", candidate.title, exc)
            return None
        if published is None:
            return None
        return published.model_copy(
            update={
                "quality": candidate.quality,
                "is_russian": candidate.is_russian,
                "title": candidate.title,
                "score": confidence_score(candidate),
            }
        )


async def _find_trailer(finder: TrailerFinder, media: Media) -> ContentDescriptor | None:
    found = await finder.find_trailer(media.title)
    if found is None and media.original_title and media.original_title != media.title:
        found = await finder.find_trailer(media.original_title)
    return found
