"""Start/stop control and run history for the acquisition worker."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from mediagrab.pipeline.batch import BatchDriver
from mediagrab.pipeline.context import RunContext
from mediagrab.pipeline.coordinator import PipelineCoordinator
from mediagrab.pipeline.run_status import RunRecorder
from mediagrab.shared.enums import MediaStatus, ParserState
from mediagrab.shared.models import utc_now
from mediagrab.shared.repository import MediaRepository
from mediagrab.trailers.key_pool import ApiKeyPool

logger = logging.getLogger(__name__)

HISTORY_SIZE = 20
RECENT_LOGS = 10


class RunRecord(BaseModel):
    """Summary of one finished batch run."""

    model_config = {"frozen": True}

    started_at: datetime
    finished_at: datetime = Field(default_factory=utc_now)
    processed: int = 0
    errors: list[str] = Field(default_factory=list)
    stats: dict[str, int] = Field(default_factory=dict)


class ParserController:
    """Owns at most one running batch and exposes single-item processing.

    ``start()`` launches the batch as a background task; ``stop()`` clears the
    running flag so the batch halts before its next item.
    """

    def __init__(
        self,
        *,
        batch: BatchDriver,
        coordinator: PipelineCoordinator,
        media_repo: MediaRepository,
        recorder: RunRecorder,
        key_pool: ApiKeyPool | None = None,
        history_size: int = HISTORY_SIZE,
    ) -> None:
        self._batch = batch
        self._coordinator = coordinator
        self._media_repo = media_repo
        self._recorder = recorder
        self._key_pool = key_pool
        self._history: deque[RunRecord] = deque(maxlen=history_size)
        self._ctx: RunContext | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def history(self) -> list[RunRecord]:
        """Finished runs, most recent first."""
        return list(reversed(self._history))

    def start(self) -> bool:
        """Launch a batch run. Returns False if one is already running."""
        if self.running:
            return False
        self._ctx = RunContext()
        self._task = asyncio.create_task(self._run(self._ctx))
        logger.info("batch run started")
        return True

    def stop(self) -> bool:
        """Ask the running batch to halt. Returns False if nothing is running."""
        if not self.running or self._ctx is None:
            return False
        self._ctx.stop()
        logger.info("batch run stop requested")
        return True

    async def wait(self) -> None:
        """Block until the current batch run, if any, has finished."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def process_one(self, media_id: uuid.UUID) -> MediaStatus | None:
        """Run the coordinator for one Media outside a batch.

        Returns:
            The resulting status, or None if the Media does not exist.

        Raises:
            RuntimeError: If a batch run is in progress.
        """
        if self.running:
            raise RuntimeError("a batch run is in progress")
        media = await self._media_repo.find_by_id(media_id)
        if media is None:
            return None
        ctx = RunContext()
        result = await self._coordinator.process(media, ctx, refresh=media.status == MediaStatus.READY)
        ctx.record_processed()
        return result

    async def status(self) -> dict[str, Any]:
        persisted = await self._recorder.current()
        logs = await self._recorder.recent_logs(RECENT_LOGS)
        return {
            "status": persisted.status.value,
            "last_run": persisted.last_run.isoformat() if persisted.last_run else None,
            "processed_items": persisted.processed_items,
            "errors": persisted.errors,
            "running": self.running,
            "current_processed": self._ctx.processed if self.running and self._ctx else None,
            "history": [r.model_dump(mode="json") for r in self.history],
            "recent_logs": [entry.model_dump(mode="json") for entry in logs],
            "youtube_quota": self._key_pool.quota_status() if self._key_pool is not None else None,
        }

    async def _run(self, ctx: RunContext) -> None:
        stats: dict[str, int] = {}
        try:
            stats = await self._batch.run(ctx)
        except Exception as exc:
            logger.exception("batch run failed: %s", exc)
            ctx.record_error(f"{type(exc).__name__}: {exc}")
            await self._recorder.log("batch run failed", exc)
            await self._recorder.save(ctx, ParserState.ERROR)
        finally:
            ctx.stop()
            self._history.append(
                RunRecord(started_at=ctx.started_at, processed=ctx.processed, errors=ctx.errors, stats=stats)
            )
