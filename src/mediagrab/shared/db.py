"""asyncpg connection pool factory."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import asyncpg

if TYPE_CHECKING:
    from mediagrab.config import Settings


async def init_connection(conn: asyncpg.Connection) -> None:
    """Decode ``jsonb`` columns into Python objects."""
    await conn.set_type_codec("jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog")


async def create_pool(settings: Settings) -> asyncpg.Pool:
    """Create and return an asyncpg connection pool."""
    pool: asyncpg.Pool = await asyncpg.create_pool(
        dsn=settings.dsn,
        min_size=1,
        max_size=5,
        init=init_connection,
    )
    return pool
