"""Wire the pipeline from settings and live connections."""

from __future__ import annotations

import logging

import asyncpg
import redis.asyncio as aioredis

from mediagrab.config import Settings, parse_csv
from mediagrab.pipeline.batch import BatchDriver
from mediagrab.pipeline.control import ParserController
from mediagrab.pipeline.coordinator import PipelineCoordinator
from mediagrab.pipeline.run_status import RunRecorder
from mediagrab.publisher.chunking import MIB
from mediagrab.publisher.doodstream import DoodStreamClient
from mediagrab.publisher.publisher import RemotePublisher
from mediagrab.selection.selector import CandidateSelector
from mediagrab.selection.tmdb import TmdbClient
from mediagrab.shared.cookies import load_session_cookies
from mediagrab.shared.repository import (
    MediaRepository,
    ParserLogRepository,
    ParserStatusRepository,
    VideoContentRepository,
)
from mediagrab.sources.chain import SourceChain
from mediagrab.sources.fetcher import PageFetcher
from mediagrab.sources.flaresolverr_client import FlareSolverrSession
from mediagrab.sources.interfaces import CandidateSource
from mediagrab.sources.jackett import JackettSource
from mediagrab.sources.kinozal import KinozalSource
from mediagrab.sources.nnm import NnmClubSource
from mediagrab.sources.rutor import RutorSource
from mediagrab.sources.rutracker import RuTrackerSource
from mediagrab.trailers.cache import ResponseCache
from mediagrab.trailers.finder import TrailerFinder
from mediagrab.trailers.key_pool import ApiKeyPool
from mediagrab.trailers.youtube import YouTubeClient
from mediagrab.transfer.orchestrator import TransferOrchestrator
from mediagrab.transfer.qbittorrent import QBitClient
from mediagrab.transfer.transcoder import FFmpegTranscoder

logger = logging.getLogger(__name__)


def _fetcher(settings: Settings, *, encoding: str | None = None) -> PageFetcher:
    solver = FlareSolverrSession(settings.flaresolverr_url) if settings.flaresolverr_url else None
    return PageFetcher(
        solver=solver,
        proxies=parse_csv(settings.source_proxies),
        timeout=settings.source_timeout,
        min_interval=settings.source_min_interval_seconds,
        encoding=encoding,
    )


def build_source(name: str, settings: Settings) -> CandidateSource | None:
    """Build one adapter by name, or None if it is unknown or unconfigured."""
    if name == "rutor":
        return RutorSource(settings.rutor_url, fetcher=_fetcher(settings))
    if name == "nnm":
        return NnmClubSource(settings.nnm_url, fetcher=_fetcher(settings))
    if name == "rutracker":
        fetcher = _fetcher(settings, encoding="cp1251")
        fetcher.seed_cookies(
            load_session_cookies(
                settings.rutracker_url,
                cookie_header=settings.rutracker_cookie_header,
                cookie_file=settings.rutracker_cookie_file,
            )
        )
        return RuTrackerSource(settings.rutracker_url, fetcher=fetcher)
    if name == "kinozal":
        fetcher = _fetcher(settings)
        fetcher.seed_cookies(
            load_session_cookies(
                settings.kinozal_url,
                cookie_header=settings.kinozal_cookie_header,
                cookie_file=settings.kinozal_cookie_file,
            )
        )
        return KinozalSource(
            settings.kinozal_url,
            fetcher=fetcher,
            username=settings.kinozal_user,
            password=settings.kinozal_password,
        )
    if name == "jackett":
        if not settings.jackett_api_key:
            logger.warning("jackett listed in sources but no API key is configured, skipping")
            return None
        return JackettSource(settings.jackett_url, settings.jackett_api_key, timeout=settings.source_timeout)
    logger.warning("unknown source adapter %r, skipping", name)
    return None


def build_sources(settings: Settings) -> SourceChain:
    adapters = [a for a in (build_source(n, settings) for n in parse_csv(settings.sources)) if a is not None]
    logger.info("source chain: %s", ", ".join(a.name for a in adapters) or "(empty)")
    return SourceChain(adapters)


def build_key_pool(settings: Settings) -> ApiKeyPool | None:
    """Return the YouTube key pool, or None when no API key is configured."""
    keys = parse_csv(settings.youtube_api_keys)
    if not keys:
        logger.warning("no YouTube API keys configured, trailer discovery disabled")
        return None
    return ApiKeyPool(
        keys,
        quota_per_key=settings.youtube_quota_per_key,
        reset_hours=settings.youtube_quota_reset_hours,
    )


def build_trailer_finder(
    settings: Settings, key_pool: ApiKeyPool | None, redis: aioredis.Redis | None
) -> TrailerFinder | None:
    if key_pool is None:
        return None
    cache = ResponseCache(redis, ttl=settings.youtube_cache_ttl_seconds) if redis is not None else None
    client = YouTubeClient(
        key_pool,
        cache=cache,
        region=settings.youtube_region,
        language=settings.youtube_language,
    )
    return TrailerFinder(client)


def build_torrent_daemon(settings: Settings) -> QBitClient:
    return QBitClient(
        settings.qbit_url,
        settings.qbit_user,
        settings.qbit_password,
        download_dir=settings.download_dir,
    )


def build_controller(settings: Settings, pool: asyncpg.Pool, redis: aioredis.Redis | None) -> ParserController:
    """Assemble repositories, pipeline stages, the batch driver and its controller."""
    media_repo = MediaRepository(pool)
    content_repo = VideoContentRepository(pool)
    recorder = RunRecorder(status_repo=ParserStatusRepository(pool), log_repo=ParserLogRepository(pool))

    daemon = build_torrent_daemon(settings)
    key_pool = build_key_pool(settings)
    transcoder = FFmpegTranscoder(
        output_dir=settings.transcode_dir,
        mode=settings.transcode_mode,
        ffmpeg_bin=settings.ffmpeg_bin,
        timeout=settings.transcode_timeout_seconds,
    )
    transfer = TransferOrchestrator(
        daemon,
        transcoder=transcoder,
        poll_interval=settings.qbit_poll_interval,
        max_attempts=settings.qbit_max_poll_attempts,
        stuck_threshold=settings.qbit_stuck_threshold,
    )
    publisher = RemotePublisher(
        DoodStreamClient(settings.doodstream_url, settings.doodstream_api_key),
        chunk_size=settings.doodstream_chunk_size_mb * MIB,
        max_concurrency=settings.doodstream_max_concurrency,
    )
    selector = CandidateSelector(releases=TmdbClient(settings.tmdb_url, settings.tmdb_api_key))

    coordinator = PipelineCoordinator(
        media_repo=media_repo,
        content_repo=content_repo,
        recorder=recorder,
        sources=build_sources(settings),
        selector=selector,
        transfer=transfer,
        publisher=publisher,
        trailers=build_trailer_finder(settings, key_pool, redis),
        preferred_language=settings.preferred_language,
    )
    batch = BatchDriver(
        media_repo=media_repo,
        coordinator=coordinator,
        recorder=recorder,
        item_delay=settings.item_delay_seconds,
        refresh_after_days=settings.refresh_after_days,
        retry_errors=settings.retry_errors,
    )
    return ParserController(
        batch=batch,
        coordinator=coordinator,
        media_repo=media_repo,
        recorder=recorder,
        key_pool=key_pool,
    )
