"""Tests for pipeline wiring."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

from mediagrab.config import Settings
from mediagrab.pipeline.control import ParserController
from mediagrab.pipeline.factory import (
    build_controller,
    build_key_pool,
    build_source,
    build_sources,
    build_torrent_daemon,
    build_trailer_finder,
)
from mediagrab.sources.jackett import JackettSource
from mediagrab.sources.kinozal import KinozalSource
from mediagrab.sources.rutracker import RuTrackerSource
from mediagrab.trailers.finder import TrailerFinder
from mediagrab.trailers.key_pool import ApiKeyPool
from mediagrab.transfer.qbittorrent import QBitClient


class TestBuildSource:
    def test_known_adapters(self, settings: Settings) -> None:
        for name in ("rutor", "nnm", "rutracker", "kinozal"):
            adapter = build_source(name, settings)
            assert adapter is not None
            assert adapter.name == name

        assert isinstance(build_source("rutracker", settings), RuTrackerSource)
        assert isinstance(build_source("kinozal", settings), KinozalSource)

    def test_jackett_requires_key(self, settings: Settings) -> None:
        assert build_source("jackett", settings) is None

        configured = settings.model_copy(update={"jackett_api_key": "secret"})
        assert isinstance(build_source("jackett", configured), JackettSource)

    def test_unknown_adapter(self, settings: Settings) -> None:
        assert build_source("thepiratebay", settings) is None

    def test_chain_follows_configured_order(self, settings: Settings) -> None:
        configured = settings.model_copy(update={"sources": "kinozal, bogus ,rutor"})

        chain = build_sources(configured)

        assert [a.name for a in chain.adapters] == ["kinozal", "rutor"]


class TestBuildTrailerFinder:
    def test_disabled_without_keys(self, settings: Settings) -> None:
        assert build_key_pool(settings) is None
        assert build_trailer_finder(settings, None, None) is None

    def test_with_keys(self, settings: Settings, mock_redis: AsyncMock) -> None:
        configured = settings.model_copy(update={"youtube_api_keys": "k1,k2"})
        pool = build_key_pool(configured)

        assert isinstance(pool, ApiKeyPool)
        assert len(pool) == 2
        assert isinstance(build_trailer_finder(configured, pool, mock_redis), TrailerFinder)
        assert isinstance(build_trailer_finder(configured, pool, None), TrailerFinder)


class TestBuildController:
    def test_torrent_daemon(self, settings: Settings) -> None:
        assert isinstance(build_torrent_daemon(settings), QBitClient)

    def test_wires_everything(self, settings: Settings) -> None:
        controller = build_controller(settings, MagicMock(), None)

        assert isinstance(controller, ParserController)
        assert not controller.running
