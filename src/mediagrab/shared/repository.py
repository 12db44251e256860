"""Async repository layer for PostgreSQL operations.

Only the reads and writes the acquisition pipeline needs: catalog lookups and
status transitions, video content replacement, the parser status singleton and
the append-only parser log.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import asyncpg

from mediagrab.shared.enums import ContentStatus, ContentType, MediaStatus
from mediagrab.shared.models import Media, ParserLog, ParserRunStatus, VideoContent

logger = logging.getLogger(__name__)

PLAYABLE_TYPES = (ContentType.FULL_MOVIE, ContentType.EPISODE)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MediaRepository:
    """Reads and status transitions for the ``media`` table."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def find_by_id(self, media_id: uuid.UUID) -> Media | None:
        """Fetch a single media entry by primary key."""
        row = await self._pool.fetchrow("SELECT * FROM media WHERE id = $1", media_id)
        if row is None:
            return None
        return _media_from_row(row)

    async def find(
        self,
        *,
        title: str | None = None,
        source_id: str | None = None,
        source_type: str | None = None,
    ) -> list[Media]:
        """Return media matching every given filter (case-insensitive title)."""
        rows = await self._pool.fetch(
            """
            SELECT * FROM media
             WHERE ($1::text IS NULL OR lower(title) = lower($1))
               AND ($2::text IS NULL OR source_id = $2)
               AND ($3::text IS NULL OR source_type = $3)
             ORDER BY created_at
            """,
            title,
            source_id,
            source_type,
        )
        return [_media_from_row(row) for row in rows]

    async def create(self, media: Media) -> Media:
        """Insert a new media row and return the persisted model."""
        row = await self._pool.fetchrow(
            """
            INSERT INTO media (id, title, original_title, type, release_date, year,
                               status, source_id, source_type, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            RETURNING *
            """,
            media.id,
            media.title,
            media.original_title,
            media.type.value,
            media.release_date,
            media.year,
            media.status.value,
            media.source_id,
            media.source_type,
            media.created_at,
            media.updated_at,
        )
        logger.info("created media %s (%s)", media.id, media.title)
        return _media_from_row(row)

    async def update_status(self, media_id: uuid.UUID, new_status: MediaStatus) -> None:
        """Set the status and bump updated_at for a media entry."""
        await self._pool.execute(
            "UPDATE media SET status = $1, updated_at = $2 WHERE id = $3",
            new_status.value,
            _utc_now(),
            media_id,
        )

    async def list_by_status(self, status: MediaStatus, *, limit: int | None = None) -> list[Media]:
        """Return media in ``status``, least recently touched first."""
        rows = await self._pool.fetch(
            """
            SELECT * FROM media
             WHERE status = $1
             ORDER BY updated_at NULLS FIRST, created_at
             LIMIT $2
            """,
            status.value,
            limit,
        )
        return [_media_from_row(row) for row in rows]

    async def list_ready_needing_refresh(self, stale_before: datetime, *, limit: int | None = None) -> list[Media]:
        """Return READY media that carry an error marker or have gone stale.

        A READY entry needs a refresh when any of its content records is in
        ERROR, when it has no usable full-content record left, or when it was
        last touched before ``stale_before``.
        """
        rows = await self._pool.fetch(
            """
            SELECT m.* FROM media m
             WHERE m.status = $1
               AND (
                    EXISTS (SELECT 1 FROM video_content v
                             WHERE v.media_id = m.id AND v.status = $2)
                 OR NOT EXISTS (SELECT 1 FROM video_content v
                                 WHERE v.media_id = m.id
                                   AND v.type = ANY($3::text[])
                                   AND v.status <> $2)
                 OR m.updated_at < $4
               )
             ORDER BY m.updated_at NULLS FIRST
             LIMIT $5
            """,
            MediaStatus.READY.value,
            ContentStatus.ERROR.value,
            [t.value for t in PLAYABLE_TYPES],
            stale_before,
            limit,
        )
        return [_media_from_row(row) for row in rows]


class VideoContentRepository:
    """Replacement-style writes for the ``video_content`` table."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def find(
        self,
        media_id: uuid.UUID,
        *,
        types: tuple[ContentType, ...] | None = None,
    ) -> list[VideoContent]:
        """Return content owned by ``media_id``, optionally restricted to ``types``."""
        rows = await self._pool.fetch(
            """
            SELECT * FROM video_content
             WHERE media_id = $1
               AND ($2::text[] IS NULL OR type = ANY($2::text[]))
             ORDER BY created_at
            """,
            media_id,
            [t.value for t in types] if types else None,
        )
        return [_content_from_row(row) for row in rows]

    async def create_many(self, records: list[VideoContent]) -> list[VideoContent]:
        """Insert all records in one transaction."""
        created: list[VideoContent] = []
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                for record in records:
                    row = await conn.fetchrow(
                        """
                        INSERT INTO video_content (id, media_id, url, quality, type, format, status,
                                                   score, is_russian, title, description, duration,
                                                   size, created_at)
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
                        RETURNING *
                        """,
                        record.id,
                        record.media_id,
                        record.url,
                        record.quality.value,
                        record.type.value,
                        record.format,
                        record.status.value,
                        record.score,
                        record.is_russian,
                        record.title,
                        record.description,
                        record.duration,
                        record.size,
                        record.created_at,
                    )
                    created.append(_content_from_row(row))
        logger.info("stored %d content record(s)", len(created))
        return created

    async def delete(
        self,
        media_id: uuid.UUID,
        *,
        types: tuple[ContentType, ...] | None = None,
        status: ContentStatus | None = None,
    ) -> int:
        """Delete content owned by ``media_id`` matching the filters; return the row count."""
        tag = await self._pool.execute(
            """
            DELETE FROM video_content
             WHERE media_id = $1
               AND ($2::text[] IS NULL OR type = ANY($2::text[]))
               AND ($3::text IS NULL OR status = $3)
            """,
            media_id,
            [t.value for t in types] if types else None,
            status.value if status else None,
        )
        return _rows_from_tag(tag)


class ParserStatusRepository:
    """The single-row ``parser_run_status`` table."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def get(self) -> ParserRunStatus | None:
        row = await self._pool.fetchrow("SELECT * FROM parser_run_status WHERE id = 1")
        if row is None:
            return None
        return _status_from_row(row)

    async def upsert(self, status: ParserRunStatus) -> None:
        """Create the singleton on first use, overwrite it afterwards."""
        await self._pool.execute(
            """
            INSERT INTO parser_run_status (id, status, last_run, processed_items, errors)
            VALUES (1, $1, $2, $3, $4::jsonb)
            ON CONFLICT (id) DO UPDATE
               SET status = EXCLUDED.status,
                   last_run = EXCLUDED.last_run,
                   processed_items = EXCLUDED.processed_items,
                   errors = EXCLUDED.errors
            """,
            status.status.value,
            status.last_run,
            status.processed_items,
            status.errors,
        )


class ParserLogRepository:
    """Append-only writes for the ``parser_logs`` table."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def append(self, entry: ParserLog) -> None:
        await self._pool.execute(
            "INSERT INTO parser_logs (id, message, error, created_at) VALUES ($1, $2, $3, $4)",
            entry.id,
            entry.message,
            entry.error,
            entry.created_at,
        )

    async def recent(self, limit: int = 50) -> list[ParserLog]:
        """Return the newest entries first."""
        rows = await self._pool.fetch(
            "SELECT * FROM parser_logs ORDER BY created_at DESC LIMIT $1",
            limit,
        )
        return [ParserLog.model_validate(dict(row)) for row in rows]


def _media_from_row(row: asyncpg.Record) -> Media:
    """Convert an asyncpg Record to a Media model."""
    return Media.model_validate(dict(row))


def _content_from_row(row: asyncpg.Record) -> VideoContent:
    """Convert an asyncpg Record to a VideoContent model."""
    return VideoContent.model_validate(dict(row))


def _status_from_row(row: asyncpg.Record) -> ParserRunStatus:
    data: dict[str, Any] = dict(row)
    data.pop("id", None)
    # errors may come back as a JSON string when no jsonb codec is registered
    if isinstance(data.get("errors"), str):
        data["errors"] = json.loads(data["errors"])
    return ParserRunStatus.model_validate(data)


def _rows_from_tag(tag: str) -> int:
    parts = tag.split()
    if len(parts) < 2:
        return 0
    try:
        return int(parts[-1])
    except ValueError:
        return 0
