"""Periodic batch worker for the acquisition pipeline."""

from __future__ import annotations

import asyncio
import logging

from mediagrab.config import Settings, get_settings
from mediagrab.pipeline.factory import build_controller, build_torrent_daemon
from mediagrab.shared.db import create_pool
from mediagrab.shared.exceptions import TransferError
from mediagrab.shared.redis_client import connect_redis

logger = logging.getLogger(__name__)


async def run_loop(settings: Settings, *, interval: int | None = None) -> None:
    """Run one batch, sleep, repeat.

    Returns early if qBittorrent fails its startup health check.

    Args:
        settings: Application settings.
        interval: Seconds between batch starts (default: ``batch_interval_seconds``).
    """
    interval = interval if interval is not None else settings.batch_interval_seconds
    try:
        await build_torrent_daemon(settings).health_check()
    except TransferError as exc:
        logger.error("qBittorrent health check failed: %s", exc)
        return

    pool = await create_pool(settings)
    redis = await connect_redis(settings)

    try:
        controller = build_controller(settings, pool, redis)
        logger.info("mediagrab worker started (interval=%ds)", interval)

        while True:
            try:
                controller.start()
                await controller.wait()
                history = controller.history
                if history:
                    logger.info("batch result: %s", history[0].stats)
            except Exception as exc:
                logger.exception("batch error: %s", exc)
            await asyncio.sleep(interval)

    finally:
        if redis is not None:
            await redis.aclose()
        await pool.close()


def main() -> None:
    """Entry point for ``python -m mediagrab.pipeline.worker``."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = get_settings()
    asyncio.run(run_loop(settings))


if __name__ == "__main__":
    main()
