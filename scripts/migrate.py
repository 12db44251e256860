#!/usr/bin/env python3
"""Apply numbered .sql files from ``migrations/`` in order, once each."""

from __future__ import annotations

import asyncio
import glob
import logging
import os

import asyncpg

from mediagrab.config import get_settings

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

MIGRATIONS_DIR = os.path.join(os.path.dirname(__file__), "..", "migrations")


async def run_migrations(dsn: str) -> list[str]:
    """Apply pending migrations and return the filenames applied."""
    conn: asyncpg.Connection = await asyncpg.connect(dsn)
    newly_applied: list[str] = []
    try:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                filename TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )
        applied = {row["filename"] for row in await conn.fetch("SELECT filename FROM schema_migrations")}

        for path in sorted(glob.glob(os.path.join(MIGRATIONS_DIR, "*.sql"))):
            name = os.path.basename(path)
            if name in applied:
                logger.info("skip  %s", name)
                continue

            with open(path, encoding="utf-8") as f:
                sql = f.read()
            async with conn.transaction():
                await conn.execute(sql)
                await conn.execute("INSERT INTO schema_migrations (filename) VALUES ($1)", name)
            logger.info("apply %s", name)
            newly_applied.append(name)

        logger.info("migrations complete (%d applied)", len(newly_applied))
        return newly_applied
    finally:
        await conn.close()


def main() -> None:
    asyncio.run(run_migrations(get_settings().dsn))


if __name__ == "__main__":
    main()
