"""Tests for BatchDriver."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from mediagrab.pipeline.batch import BatchDriver
from mediagrab.pipeline.context import RunContext
from mediagrab.shared.enums import MediaStatus, ParserState
from mediagrab.shared.models import Media

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _media(n: int, status: MediaStatus) -> Media:
    return Media(id=uuid.UUID(int=n), title=f"Title {n}", status=status)


@pytest.fixture
def media_repo() -> AsyncMock:
    repo = AsyncMock()
    by_status = {
        MediaStatus.TRAILER: [_media(2, MediaStatus.TRAILER)],
        MediaStatus.INACTIVE: [_media(3, MediaStatus.INACTIVE), _media(2, MediaStatus.TRAILER)],
        MediaStatus.NO_VIDEO: [_media(4, MediaStatus.NO_VIDEO)],
        MediaStatus.ERROR: [_media(5, MediaStatus.ERROR)],
    }
    repo.list_ready_needing_refresh.return_value = [_media(1, MediaStatus.READY)]
    repo.list_by_status.side_effect = lambda status, limit=None: by_status[status]
    return repo


@pytest.fixture
def coordinator() -> AsyncMock:
    mock = AsyncMock()
    mock.process.return_value = MediaStatus.READY
    return mock


def _driver(media_repo: AsyncMock, coordinator: AsyncMock, **kwargs) -> BatchDriver:
    kwargs.setdefault("sleep", AsyncMock())
    return BatchDriver(
        media_repo=media_repo,
        coordinator=coordinator,
        recorder=AsyncMock(),
        clock=lambda: NOW,
        **kwargs,
    )


class TestCollect:
    async def test_order_and_dedup(self, media_repo: AsyncMock, coordinator: AsyncMock) -> None:
        queue = await _driver(media_repo, coordinator, refresh_after_days=30).collect()

        assert [(m.id.int, refresh) for m, refresh in queue] == [
            (1, True),
            (2, False),
            (3, False),
            (4, False),
            (5, False),
        ]
        media_repo.list_ready_needing_refresh.assert_awaited_once_with(NOW - timedelta(days=30), limit=None)

    async def test_skip_errors(self, media_repo: AsyncMock, coordinator: AsyncMock) -> None:
        queue = await _driver(media_repo, coordinator, retry_errors=False).collect()

        assert [m.id.int for m, _ in queue] == [1, 2, 3, 4]
        statuses = [call.args[0] for call in media_repo.list_by_status.await_args_list]
        assert MediaStatus.ERROR not in statuses


class TestRun:
    async def test_processes_everything(self, media_repo: AsyncMock, coordinator: AsyncMock) -> None:
        coordinator.process.side_effect = [
            MediaStatus.READY,
            MediaStatus.READY,
            MediaStatus.TRAILER,
            RuntimeError("boom"),
            MediaStatus.NO_VIDEO,
        ]
        sleep = AsyncMock()
        driver = _driver(media_repo, coordinator, item_delay=20, sleep=sleep)
        ctx = RunContext()

        stats = await driver.run(ctx)

        assert stats == {"total": 5, "ready": 2, "trailer": 1, "no_video": 1, "error": 1}
        assert ctx.processed == 5
        assert sleep.await_count == 4
        sleep.assert_awaited_with(20)
        first = coordinator.process.await_args_list[0]
        assert first.kwargs == {"refresh": True}

    async def test_persists_progress(self, media_repo: AsyncMock, coordinator: AsyncMock) -> None:
        recorder = AsyncMock()
        driver = BatchDriver(
            media_repo=media_repo, coordinator=coordinator, recorder=recorder, sleep=AsyncMock(), clock=lambda: NOW
        )

        await driver.run(RunContext())

        states = [call.args[1] for call in recorder.save.await_args_list]
        assert states[0] == ParserState.ACTIVE
        assert states[-1] == ParserState.INACTIVE
        assert len(states) == 1 + 5 + 1

    async def test_stop_flag_halts_before_next_item(self, media_repo: AsyncMock, coordinator: AsyncMock) -> None:
        ctx = RunContext()

        async def process(media: Media, run_ctx: RunContext, *, refresh: bool) -> MediaStatus:
            if media.id.int == 2:
                run_ctx.stop()
            return MediaStatus.READY

        coordinator.process.side_effect = process

        stats = await _driver(media_repo, coordinator).run(ctx)

        assert coordinator.process.await_count == 2
        assert ctx.processed == 2
        assert stats["total"] == 5

    async def test_stop_during_delay(self, media_repo: AsyncMock, coordinator: AsyncMock) -> None:
        ctx = RunContext()

        async def sleep(delay: float) -> None:
            ctx.stop()

        await _driver(media_repo, coordinator, sleep=sleep).run(ctx)

        assert coordinator.process.await_count == 1

    async def test_empty_catalog(self, coordinator: AsyncMock) -> None:
        repo = AsyncMock()
        repo.list_ready_needing_refresh.return_value = []
        repo.list_by_status.return_value = []

        stats = await _driver(repo, coordinator).run(RunContext())

        assert stats["total"] == 0
        coordinator.process.assert_not_awaited()
