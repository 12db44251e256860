"""Shared pytest fixtures for the mediagrab test suite."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock

import pytest

from mediagrab.config import Settings
from mediagrab.shared.enums import MediaStatus, MediaType, Quality
from mediagrab.shared.models import Media, TransferCandidate

GIB = 1024**3


@pytest.fixture()
def settings() -> Settings:
    """Return a Settings instance with test defaults."""
    return Settings(
        db_host="localhost",
        db_port=5432,
        db_user="test",
        db_password="test",
        db_name="mediagrab_test",
        redis_url="redis://localhost:6379/1",
    )


@pytest.fixture()
def sample_media() -> Media:
    return Media(
        id=uuid.UUID("00000000-0000-0000-0000-000000000010"),
        title="Бегущий по лезвию",
        original_title="Blade Runner",
        type=MediaType.MOVIE,
        year=1982,
        status=MediaStatus.INACTIVE,
    )


@pytest.fixture()
def sample_candidate() -> TransferCandidate:
    return TransferCandidate(
        title="Бегущий по лезвию / Blade Runner (1982) BDRip 1080p",
        size=3 * GIB,
        seeders=42,
        quality=Quality.FHD_1080P,
        is_russian=True,
        locator="magnet:?xt=urn:btih:da39a3ee5e6b4b0d3255bfef95601890afd80709&dn=Blade+Runner",
        source="rutor",
    )


@pytest.fixture()
def mock_redis() -> AsyncMock:
    """Mock async Redis client."""
    mock = AsyncMock()
    mock.get = AsyncMock(return_value=None)
    mock.setex = AsyncMock()
    return mock


def bencode(value: object) -> bytes:
    """Minimal bencoder for building ``.torrent`` fixtures."""
    if isinstance(value, int):
        return b"i%de" % value
    if isinstance(value, str):
        value = value.encode("utf-8")
    if isinstance(value, bytes):
        return b"%d:%s" % (len(value), value)
    if isinstance(value, list):
        return b"l" + b"".join(bencode(v) for v in value) + b"e"
    if isinstance(value, dict):
        items = sorted((k.encode("utf-8") if isinstance(k, str) else k, v) for k, v in value.items())
        return b"d" + b"".join(bencode(k) + bencode(v) for k, v in items) + b"e"
    raise TypeError(f"cannot bencode {type(value).__name__}")


@pytest.fixture()
def torrent_bytes() -> bytes:
    """A valid single-file ``.torrent`` with one piece and one tracker."""
    return bencode(
        {
            "announce": "http://tracker.test:6969/announce",
            "info": {
                "name": "Blade.Runner.1982.1080p.mkv",
                "length": 1024,
                "piece length": 16384,
                "pieces": b"\x01" * 20,
            },
        }
    )
