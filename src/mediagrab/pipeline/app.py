"""FastAPI application factory for the parser control API."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from mediagrab.config import Settings, get_settings
from mediagrab.pipeline.control import ParserController
from mediagrab.pipeline.factory import build_controller
from mediagrab.pipeline.routes import router
from mediagrab.shared.db import create_pool
from mediagrab.shared.redis_client import connect_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the pipeline on startup unless a controller was injected."""
    if app.state.controller is not None:
        yield
        return

    settings: Settings = app.state.settings
    pool = await create_pool(settings)
    redis_client = await connect_redis(settings)

    controller = build_controller(settings, pool, redis_client)
    app.state.controller = controller
    try:
        yield
    finally:
        if controller.stop():
            await controller.wait()
        if redis_client is not None:
            await redis_client.aclose()
        await pool.close()


def create_app(controller: ParserController | None = None, settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="mediagrab parser control", lifespan=lifespan)
    app.state.settings = settings or get_settings()
    app.state.controller = controller
    app.include_router(router)
    return app


def main() -> None:
    """Entry point for ``python -m mediagrab.pipeline.app``."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = get_settings()
    uvicorn.run(create_app(settings=settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
