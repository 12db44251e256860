"""Publish a local media file to the video host."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from mediagrab.publisher.chunking import MIB, Chunk, plan_chunks, read_chunk
from mediagrab.publisher.interfaces import HostingClient
from mediagrab.shared.enums import ContentType
from mediagrab.shared.exceptions import (
    HostingAuthError,
    HostingPayloadTooLargeError,
    HostingStorageError,
    PublishError,
)
from mediagrab.shared.models import ContentDescriptor
from mediagrab.shared.retry import call_with_retry, is_transient

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024**3
STORAGE_HIGH_WATER = 95.0


def is_retryable_upload(exc: BaseException) -> bool:
    """Network faults and provider hiccups; never auth, storage or size rejections."""
    if isinstance(exc, (HostingAuthError, HostingStorageError, HostingPayloadTooLargeError)):
        return False
    return is_transient(exc) or isinstance(exc, PublishError)


class RemotePublisher:
    """Upload a file in bounded-concurrency chunks and return its descriptor.

    Files up to ``chunk_size`` go up in one request; larger files are split and
    at most ``max_concurrency`` chunks are in flight at once. Each request is
    retried up to ``max_attempts`` times with exponential backoff. The local
    file is deleted once every chunk has been accepted.
    """

    def __init__(
        self,
        client: HostingClient,
        *,
        chunk_size: int = 100 * MIB,
        max_concurrency: int = 3,
        max_attempts: int = 5,
        base_delay: float = 5.0,
        max_file_size: int = MAX_FILE_SIZE,
        storage_high_water: float = STORAGE_HIGH_WATER,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._chunk_size = chunk_size
        self._max_concurrency = max_concurrency
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_file_size = max_file_size
        self._storage_high_water = storage_high_water
        self._sleep = sleep

    async def publish(self, local_path: str, is_series: bool = False) -> ContentDescriptor | None:
        """Upload ``local_path`` and return a FULL_MOVIE or EPISODE descriptor.

        Returns:
            The descriptor, or None if the file is missing, empty or too large.

        Raises:
            HostingAuthError: If the host rejects the credentials.
            HostingStorageError: If the account storage is above the high-water mark.
            HostingPayloadTooLargeError: If the host rejects a request body as too large.
            PublishError: If any chunk still fails after its retries.
        """
        if not os.path.isfile(local_path):
            logger.error("file to publish does not exist: %s", local_path)
            return None
        size = os.path.getsize(local_path)
        if size == 0:
            logger.error("file to publish is empty: %s", local_path)
            return None
        if size > self._max_file_size:
            logger.error("file %s is %.2f GiB, above the upload limit", local_path, size / 1024**3)
            return None

        account = await self._client.account_info()
        if account.storage_used_percent is not None and account.storage_used_percent > self._storage_high_water:
            raise HostingStorageError(f"hosting storage at {account.storage_used_percent:.1f}%")

        server = await self._retry(self._client.upload_server)
        filename = Path(local_path).name
        chunks = plan_chunks(size, self._chunk_size)
        if len(chunks) == 1:
            url = await self._upload_chunk(server, local_path, filename, chunks[0], 1)
        else:
            logger.info("uploading %s in %d chunks", filename, len(chunks))
            sem = asyncio.Semaphore(self._max_concurrency)

            async def bounded(chunk: Chunk) -> str:
                async with sem:
                    return await self._upload_chunk(server, local_path, filename, chunk, len(chunks))

            # A failed chunk cancels its siblings; callers see the chunk's own error.
            try:
                async with asyncio.TaskGroup() as group:
                    tasks = [group.create_task(bounded(c)) for c in chunks]
            except ExceptionGroup as eg:
                raise eg.exceptions[0] from None
            url = tasks[-1].result()

        try:
            os.remove(local_path)
        except OSError as exc:
            logger.warning("failed to delete published file %s: %s", local_path, exc)

        logger.info("published %s → %s", filename, url)
        return ContentDescriptor(
            url=url,
            type=ContentType.EPISODE if is_series else ContentType.FULL_MOVIE,
            format="mp4",
            size=size,
        )

    async def _upload_chunk(self, server: str, path: str, filename: str, chunk: Chunk, total: int) -> str:
        payload = await read_chunk(path, chunk)
        name = filename if total == 1 else f"{filename}.part{chunk.index + 1:03d}"
        logger.debug("uploading chunk %d/%d (%.1f MiB)", chunk.index + 1, total, chunk.length / MIB)
        return await self._retry(self._client.upload, server, name, payload)

    async def _retry(self, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        return await call_with_retry(
            func,
            *args,
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
            is_retryable=is_retryable_upload,
            sleep=self._sleep,
        )
