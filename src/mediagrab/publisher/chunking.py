"""Split a local file into upload chunks."""

from __future__ import annotations

import aiofiles  # type: ignore[import-untyped]
from pydantic import BaseModel

MIB = 1024**2


class Chunk(BaseModel):
    """A byte range of the source file."""

    model_config = {"frozen": True}

    index: int
    offset: int
    length: int


def plan_chunks(total_size: int, chunk_size: int = 100 * MIB) -> list[Chunk]:
    """Cover ``total_size`` bytes with consecutive chunks of at most ``chunk_size``.

    ``plan_chunks(250 * MIB)`` yields 100, 100 and 50 MiB chunks.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    chunks: list[Chunk] = []
    offset = 0
    while offset < total_size:
        length = min(chunk_size, total_size - offset)
        chunks.append(Chunk(index=len(chunks), offset=offset, length=length))
        offset += length
    return chunks


async def read_chunk(path: str, chunk: Chunk) -> bytes:
    async with aiofiles.open(path, "rb") as f:
        await f.seek(chunk.offset)
        return await f.read(chunk.length)
