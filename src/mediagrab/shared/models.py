"""Frozen Pydantic domain models shared by all modules."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from pydantic import BaseModel, Field

from mediagrab.shared.enums import (
    ContentStatus,
    ContentType,
    MediaStatus,
    MediaType,
    ParserState,
    Quality,
)


def utc_now() -> datetime:
    """Return timezone-aware UTC timestamps for model defaults."""
    return datetime.now(timezone.utc)


class Media(BaseModel):
    """A catalog entry whose playable content the pipeline acquires."""

    model_config = {"frozen": True}

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    title: str
    original_title: str | None = None
    type: MediaType = MediaType.MOVIE
    release_date: date | None = None
    year: int | None = None
    status: MediaStatus = MediaStatus.INACTIVE
    source_id: str | None = None
    source_type: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime | None = None

    @property
    def is_series(self) -> bool:
        return self.type == MediaType.SERIES

    @property
    def release_year(self) -> int | None:
        if self.year:
            return self.year
        return self.release_date.year if self.release_date else None


class VideoContent(BaseModel):
    """A playable or trailer asset owned by exactly one Media."""

    model_config = {"frozen": True}

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    media_id: uuid.UUID
    url: str
    quality: Quality = Quality.UNKNOWN
    type: ContentType
    format: str = "mp4"
    status: ContentStatus = ContentStatus.READY
    score: int = 0
    is_russian: bool = False
    title: str | None = None
    description: str | None = None
    duration: int | None = None
    size: int | None = None
    created_at: datetime = Field(default_factory=utc_now)


class ContentDescriptor(BaseModel):
    """A published asset not yet attached to a Media."""

    model_config = {"frozen": True}

    url: str
    quality: Quality = Quality.UNKNOWN
    type: ContentType
    format: str = "mp4"
    score: int = 0
    is_russian: bool = False
    title: str | None = None
    description: str | None = None
    duration: int | None = None
    size: int | None = None

    def to_content(self, media_id: uuid.UUID) -> VideoContent:
        """Attach the descriptor to a Media as a READY record."""
        return VideoContent(media_id=media_id, status=ContentStatus.READY, **self.model_dump())


class TransferCandidate(BaseModel):
    """An unverified reference to content found on an index."""

    model_config = {"frozen": True}

    title: str
    size: int = 0
    seeders: int = 0
    quality: Quality = Quality.UNKNOWN
    is_russian: bool = False
    is_series: bool = False
    locator: str
    source: str = ""

    @property
    def is_valid(self) -> bool:
        """Whether the candidate can be handed to the selector."""
        return self.seeders > 0 and self.quality != Quality.UNKNOWN and self.size > 0 and bool(self.locator)


class ReleaseInfo(BaseModel):
    """Release metadata for a title from the metadata provider."""

    model_config = {"frozen": True}

    title: str
    original_title: str | None = None
    release_date: date | None = None

    @property
    def year(self) -> int | None:
        return self.release_date.year if self.release_date else None


class ParserRunStatus(BaseModel):
    """Singleton progress record for the acquisition worker."""

    model_config = {"frozen": True}

    status: ParserState = ParserState.INACTIVE
    last_run: datetime | None = None
    processed_items: int = 0
    errors: list[str] = Field(default_factory=list)


class ParserLog(BaseModel):
    """Append-only audit entry written on every caught failure."""

    model_config = {"frozen": True}

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    message: str
    error: str | None = None
    created_at: datetime = Field(default_factory=utc_now)


class TorrentStatus(BaseModel):
    """Snapshot of one transfer as reported by the torrent daemon."""

    model_config = {"frozen": True}

    hash: str
    name: str = ""
    progress: float = 0.0
    state: str = "unknown"
    save_path: str = ""
    content_path: str | None = None


class TorrentFile(BaseModel):
    """One file inside a transfer, relative to its save path."""

    model_config = {"frozen": True}

    name: str
    size: int = 0
