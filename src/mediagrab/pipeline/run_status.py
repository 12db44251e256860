"""Persist run progress and the parser audit log."""

from __future__ import annotations

import logging

import asyncpg

from mediagrab.pipeline.context import ERROR_TEXT_LIMIT, RunContext
from mediagrab.shared.enums import ParserState
from mediagrab.shared.models import ParserLog, ParserRunStatus
from mediagrab.shared.repository import ParserLogRepository, ParserStatusRepository

logger = logging.getLogger(__name__)


class RunRecorder:
    """Writes ``ParserRunStatus`` snapshots and ``ParserLog`` entries.

    Persistence failures here are logged and swallowed so that bookkeeping
    never takes down a run.
    """

    def __init__(self, *, status_repo: ParserStatusRepository, log_repo: ParserLogRepository) -> None:
        self._status_repo = status_repo
        self._log_repo = log_repo

    async def save(self, ctx: RunContext, state: ParserState) -> ParserRunStatus:
        snapshot = ctx.snapshot(state)
        try:
            await self._status_repo.upsert(snapshot)
        except (asyncpg.PostgresError, OSError) as exc:
            logger.warning("failed to persist run status: %s", exc)
        return snapshot

    async def log(self, message: str, error: BaseException | None = None) -> None:
        entry = ParserLog(
            message=message,
            error=f"{type(error).__name__}: {error}"[:ERROR_TEXT_LIMIT] if error is not None else None,
        )
        try:
            await self._log_repo.append(entry)
        except (asyncpg.PostgresError, OSError) as exc:
            logger.warning("failed to append parser log: %s", exc)

    async def current(self) -> ParserRunStatus:
        return await self._status_repo.get() or ParserRunStatus()

    async def recent_logs(self, limit: int = 50) -> list[ParserLog]:
        return await self._log_repo.recent(limit)
