"""Tests for frozen Pydantic domain models."""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from pydantic import ValidationError

from mediagrab.shared.enums import ContentStatus, ContentType, MediaStatus, MediaType, Quality
from mediagrab.shared.models import ContentDescriptor, Media, TransferCandidate, VideoContent


class TestMedia:
    def test_create_with_defaults(self) -> None:
        media = Media(title="Бегущий по лезвию")
        assert media.type == MediaType.MOVIE
        assert media.status == MediaStatus.INACTIVE
        assert media.original_title is None
        assert isinstance(media.id, uuid.UUID)
        assert not media.is_series

    def test_series(self) -> None:
        assert Media(title="Тьма", type=MediaType.SERIES).is_series

    def test_frozen_raises_on_mutation(self) -> None:
        media = Media(title="Бегущий по лезвию")
        with pytest.raises(ValidationError):
            media.title = "changed"  # type: ignore[misc]

    def test_model_copy_returns_new_instance(self) -> None:
        media = Media(title="Бегущий по лезвию")
        updated = media.model_copy(update={"status": MediaStatus.READY})
        assert updated.status == MediaStatus.READY
        assert media.status == MediaStatus.INACTIVE

    def test_rejects_unknown_status(self) -> None:
        with pytest.raises(ValidationError):
            Media(title="x", status="DOWNLOADED")  # type: ignore[arg-type]

    def test_release_year(self) -> None:
        assert Media(title="x", year=1982).release_year == 1982
        assert Media(title="x", release_date=date(1982, 6, 25)).release_year == 1982
        assert Media(title="x").release_year is None


class TestContentDescriptor:
    def test_to_content(self) -> None:
        media_id = uuid.uuid4()
        descriptor = ContentDescriptor(
            url="https://dood.test/e/abc",
            type=ContentType.FULL_MOVIE,
            quality=Quality.FHD_1080P,
            score=80,
            size=42,
        )

        content = descriptor.to_content(media_id)

        assert isinstance(content, VideoContent)
        assert content.media_id == media_id
        assert content.status == ContentStatus.READY
        assert content.quality == Quality.FHD_1080P
        assert content.score == 80
        assert content.size == 42
        assert content.format == "mp4"

    def test_each_conversion_gets_a_new_id(self) -> None:
        descriptor = ContentDescriptor(url="u", type=ContentType.TRAILER)
        media_id = uuid.uuid4()
        assert descriptor.to_content(media_id).id != descriptor.to_content(media_id).id


class TestTransferCandidate:
    def _candidate(self, **kwargs) -> TransferCandidate:
        data = {"title": "Blade Runner 1080p", "size": 10, "seeders": 1, "quality": Quality.FHD_1080P, "locator": "m"}
        data.update(kwargs)
        return TransferCandidate(**data)

    def test_valid(self) -> None:
        assert self._candidate().is_valid

    @pytest.mark.parametrize(
        "override",
        [{"seeders": 0}, {"quality": Quality.UNKNOWN}, {"size": 0}, {"locator": ""}],
    )
    def test_invalid(self, override: dict) -> None:
        assert not self._candidate(**override).is_valid
