"""Sequential batch driver over the catalog."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from mediagrab.pipeline.context import RunContext
from mediagrab.pipeline.coordinator import PipelineCoordinator
from mediagrab.pipeline.run_status import RunRecorder
from mediagrab.shared.enums import MediaStatus, ParserState
from mediagrab.shared.models import Media, utc_now
from mediagrab.shared.repository import MediaRepository

logger = logging.getLogger(__name__)

ITEM_DELAY_SECONDS = 20
REFRESH_AFTER_DAYS = 30

# Phases after the READY refresh, in processing order.
STATUS_ORDER = (MediaStatus.TRAILER, MediaStatus.INACTIVE, MediaStatus.NO_VIDEO, MediaStatus.ERROR)


class BatchDriver:
    """Walk every actionable Media once, one at a time.

    Order: READY items needing a refresh, then TRAILER, INACTIVE, NO_VIDEO and
    ERROR. The phases are snapshotted up front so an item that changes status
    mid-run is not picked up twice. A fixed delay separates items and the
    context's running flag is checked before each one.
    """

    def __init__(
        self,
        *,
        media_repo: MediaRepository,
        coordinator: PipelineCoordinator,
        recorder: RunRecorder,
        item_delay: float = ITEM_DELAY_SECONDS,
        refresh_after_days: int = REFRESH_AFTER_DAYS,
        retry_errors: bool = True,
        limit: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._media_repo = media_repo
        self._coordinator = coordinator
        self._recorder = recorder
        self._item_delay = item_delay
        self._refresh_after = timedelta(days=refresh_after_days)
        self._retry_errors = retry_errors
        self._limit = limit
        self._sleep = sleep
        self._clock = clock

    async def collect(self) -> list[tuple[Media, bool]]:
        """Return ``(media, refresh)`` pairs in processing order, deduplicated by id."""
        stale_before = self._clock() - self._refresh_after
        phases: list[tuple[list[Media], bool]] = [
            (await self._media_repo.list_ready_needing_refresh(stale_before, limit=self._limit), True),
        ]
        for status in STATUS_ORDER:
            if status == MediaStatus.ERROR and not self._retry_errors:
                continue
            phases.append((await self._media_repo.list_by_status(status, limit=self._limit), False))

        seen: set = set()
        queue: list[tuple[Media, bool]] = []
        for items, refresh in phases:
            for media in items:
                if media.id in seen:
                    continue
                seen.add(media.id)
                queue.append((media, refresh))
        return queue

    async def run(self, ctx: RunContext) -> dict[str, int]:
        """Process the batch and return per-outcome counts.

        Per-item failures are already recorded by the coordinator; the batch
        moves on to the next item.
        """
        stats = {"total": 0, "ready": 0, "trailer": 0, "no_video": 0, "error": 0}
        queue = await self.collect()
        stats["total"] = len(queue)
        logger.info("batch started with %d item(s)", len(queue))
        await self._recorder.save(ctx, ParserState.ACTIVE)

        for index, (media, refresh) in enumerate(queue):
            if not ctx.running:
                logger.info("batch stopped after %d item(s)", ctx.processed)
                break
            if index > 0:
                await self._sleep(self._item_delay)
                if not ctx.running:
                    logger.info("batch stopped after %d item(s)", ctx.processed)
                    break

            try:
                result = await self._coordinator.process(media, ctx, refresh=refresh)
            except Exception:
                stats["error"] += 1
            else:
                key = result.value.lower()
                stats[key] = stats.get(key, 0) + 1
            ctx.record_processed()
            await self._recorder.save(ctx, ParserState.ACTIVE)

        await self._recorder.save(ctx, ParserState.INACTIVE)
        logger.info("batch finished: %s", stats)
        return stats
