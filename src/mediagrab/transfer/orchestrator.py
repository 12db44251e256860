"""Drive one candidate through the torrent daemon to a local MP4."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import httpx

from mediagrab.shared.exceptions import TransferError, TransferStateError, TransferTimeoutError
from mediagrab.shared.models import TorrentStatus, TransferCandidate
from mediagrab.transfer.file_locator import find_main_video_file, is_video, largest_video
from mediagrab.transfer.interfaces import TorrentDaemon, Transcoder

logger = logging.getLogger(__name__)

COMPLETE_STATES = frozenset(
    {
        "completed",
        "downloading",
        "seeding",
        "stalledUP",
        "uploading",
        "pausedUP",
        "stoppedUP",
        "queuedUP",
        "forcedUP",
        "checkingUP",
    }
)
ERROR_STATES = frozenset({"error", "missingFiles"})
COMPLETE_PROGRESS = 0.9999
# Progress deltas below this many percentage points count as a stuck poll.
STUCK_DELTA = 0.1


class TransferOrchestrator:
    """Submit a candidate, wait for it, and hand back a publishable file.

    Polls the daemon every ``poll_interval`` seconds for at most
    ``max_attempts`` polls. After ``stuck_threshold`` consecutive polls without
    progress the transfer is paused and resumed once and the counter starts
    over.
    """

    def __init__(
        self,
        daemon: TorrentDaemon,
        *,
        transcoder: Transcoder | None = None,
        poll_interval: float = 30,
        max_attempts: int = 720,
        stuck_threshold: int = 10,
        restart_delay: float = 5,
        settle_delay: float = 5,
        download_timeout: int = 30,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._daemon = daemon
        self._transcoder = transcoder
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts
        self._stuck_threshold = stuck_threshold
        self._restart_delay = restart_delay
        self._settle_delay = settle_delay
        self._download_timeout = download_timeout
        self._sleep = sleep

    async def acquire(self, candidate: TransferCandidate) -> str | None:
        """Download ``candidate`` and return the path of the file to publish.

        Returns:
            Path to the (transcoded) media file, or None if no usable file
            could be found after the transfer finished.

        Raises:
            TransferStateError: If the daemon reports an error state.
            TransferTimeoutError: If the transfer does not finish in time.
            TransferError: If the daemon cannot be reached.
        """
        torrent_hash = await self.submit(candidate.locator)
        logger.info("transfer %s started for %r", torrent_hash, candidate.title)

        status = await self.wait_complete(torrent_hash)
        await self._sleep(self._settle_delay)

        path = await self.locate_file(status)
        if path is None:
            logger.warning("no video file found for transfer %s", torrent_hash)
            return None
        if not _is_usable(path):
            logger.warning("video file %s is empty or unreadable", path)
            return None

        try:
            await self._daemon.delete(torrent_hash, delete_files=False)
        except TransferError as exc:
            logger.warning("failed to remove transfer %s from daemon: %s", torrent_hash, exc)

        if self._transcoder is None:
            return path
        return await self._transcoder.transcode(path)

    async def submit(self, locator: str) -> str:
        """Add a magnet or a ``.torrent`` URL to the daemon and return its hash."""
        if locator.startswith("magnet:"):
            return await self._daemon.add_magnet(locator)

        try:
            async with httpx.AsyncClient(timeout=self._download_timeout, follow_redirects=True) as client:
                resp = await client.get(locator)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransferError(f"torrent file download failed: {exc}") from exc
        filename = Path(locator.split("?", 1)[0]).name or "upload.torrent"
        return await self._daemon.add_torrent_file(resp.content, filename)

    async def wait_complete(self, torrent_hash: str) -> TorrentStatus:
        """Poll until the transfer is complete, restarting it when it stalls."""
        last_progress = 0.0
        stuck = 0

        for attempt in range(1, self._max_attempts + 1):
            status = await self._daemon.info(torrent_hash)
            if status is None:
                raise TransferStateError(f"torrent {torrent_hash} not found in daemon")
            if status.state in ERROR_STATES:
                raise TransferStateError(f"torrent {torrent_hash} in error state: {status.state}")

            progress = status.progress * 100
            if abs(progress - last_progress) < STUCK_DELTA:
                stuck += 1
                if stuck >= self._stuck_threshold:
                    logger.warning("torrent %s stuck at %.2f%%, restarting", torrent_hash, progress)
                    await self.restart(torrent_hash)
                    stuck = 0
            else:
                stuck = 0
            last_progress = progress

            if status.progress >= COMPLETE_PROGRESS and status.state in COMPLETE_STATES:
                logger.info("torrent %s complete after %d poll(s)", torrent_hash, attempt)
                return status

            logger.debug("torrent %s progress=%.2f%% state=%s", torrent_hash, progress, status.state)
            await self._sleep(self._poll_interval)

        raise TransferTimeoutError(f"torrent {torrent_hash} did not complete after {self._max_attempts} polls")

    async def restart(self, torrent_hash: str) -> None:
        await self._daemon.pause(torrent_hash)
        await self._sleep(self._restart_delay)
        await self._daemon.resume(torrent_hash)

    async def locate_file(self, status: TorrentStatus) -> str | None:
        """Resolve the main video file from the daemon, falling back to a disk scan."""
        content = status.content_path
        if content:
            if os.path.isfile(content) and is_video(content):
                return content
            if os.path.isdir(content):
                from_daemon = await self._largest_listed_video(status)
                if from_daemon:
                    return from_daemon
                found = largest_video(content)
                if found:
                    return found

        logger.info("content path unusable for %s, scanning %s", status.hash, status.save_path)
        return find_main_video_file(status.save_path, status.name)

    async def _largest_listed_video(self, status: TorrentStatus) -> str | None:
        try:
            files = await self._daemon.files(status.hash)
        except TransferError as exc:
            logger.warning("could not list files of %s: %s", status.hash, exc)
            return None
        videos = sorted((f for f in files if is_video(f.name)), key=lambda f: (-f.size, f.name))
        for item in videos:
            path = os.path.join(status.save_path, item.name)
            if os.path.isfile(path):
                return path
        return None


def _is_usable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.R_OK) and os.path.getsize(path) > 0
