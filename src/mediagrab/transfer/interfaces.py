"""Interfaces for the transfer module."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from mediagrab.shared.models import TorrentFile, TorrentStatus


@runtime_checkable
class TorrentDaemon(Protocol):
    """Protocol for torrent daemon clients."""

    async def add_magnet(self, uri: str) -> str:
        """Add a magnet URI to the daemon.

        Args:
            uri: Magnet URI to add.

        Returns:
            Torrent hash identifier.
        """
        ...

    async def add_torrent_file(self, data: bytes, filename: str = "upload.torrent") -> str:
        """Upload a ``.torrent`` payload.

        Args:
            data: Raw bencoded torrent file.
            filename: Name reported in the multipart upload.

        Returns:
            Torrent hash identifier.
        """
        ...

    async def info(self, torrent_hash: str) -> TorrentStatus | None:
        """Fetch current progress and state, or None if the hash is unknown."""
        ...

    async def files(self, torrent_hash: str) -> list[TorrentFile]:
        """List the files of a transfer."""
        ...

    async def pause(self, torrent_hash: str) -> None: ...

    async def resume(self, torrent_hash: str) -> None: ...

    async def delete(self, torrent_hash: str, delete_files: bool = False) -> None:
        """Remove a transfer from the daemon.

        Args:
            torrent_hash: Hash of the transfer to remove.
            delete_files: Whether to delete downloaded files (default: False).
        """
        ...


@runtime_checkable
class Transcoder(Protocol):
    """Protocol for converting a downloaded file into a streamable MP4."""

    async def transcode(self, input_path: str) -> str:
        """Convert a media file.

        Args:
            input_path: Path to the downloaded media file.

        Returns:
            Path to the MP4 to publish (the input itself if already MP4).
        """
        ...
