"""QBittorrent client implementation via Web API."""

from __future__ import annotations

import base64
import binascii
import io
import logging
import re
from typing import Any

import httpx
from torf import Torrent, TorfError

from mediagrab.shared.exceptions import TransferError
from mediagrab.shared.models import TorrentFile, TorrentStatus
from mediagrab.shared.retry import is_transient, retrying

logger = logging.getLogger(__name__)

# qBittorrent Web API docs:
# https://github.com/qbittorrent/qBittorrent/wiki/WebUI-API-(qBittorrent-4.1)

_BTIH = re.compile(r"btih:([a-fA-F0-9]{40}|[a-zA-Z2-7]{32})(?:&|$)")


class QBitClient:
    """Torrent daemon implementation using qBittorrent Web API.

    Implements the ``TorrentDaemon`` protocol. Every call logs in first and
    is retried on transient network failures.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        *,
        download_dir: str = "/downloads",
        timeout: int = 30,
        max_attempts: int = 3,
        base_delay: float = 1.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._username = username
        self._password = password
        self._download_dir = download_dir
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._sid: str | None = None

    async def _login(self, client: httpx.AsyncClient) -> None:
        """Authenticate and store the session cookie."""
        resp = await client.post(
            f"{self._base_url}/api/v2/auth/login",
            data={"username": self._username, "password": self._password},
        )
        if resp.text.strip().upper() != "OK.":
            raise TransferError(f"qBittorrent login failed: {resp.text[:200]}")
        self._sid = resp.cookies.get("SID") or self._sid

    def _cookies(self) -> dict[str, str]:
        if self._sid:
            return {"SID": self._sid}
        return {}

    async def _call(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        allow_404: bool = False,
    ) -> httpx.Response:
        try:
            async for attempt in retrying(
                max_attempts=self._max_attempts,
                base_delay=self._base_delay,
                is_retryable=is_transient,
            ):
                with attempt:
                    async with httpx.AsyncClient(timeout=self._timeout) as client:
                        await self._login(client)
                        resp = await client.request(
                            method,
                            f"{self._base_url}/api/v2/{path}",
                            params=params,
                            data=data,
                            files=files,
                            cookies=self._cookies(),
                        )
                        if resp.status_code == 404 and allow_404:
                            return resp
                        resp.raise_for_status()
                        return resp
        except httpx.HTTPStatusError as exc:
            raise TransferError(
                f"qBittorrent {path} returned {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransferError(f"qBittorrent request failed: {exc}") from exc
        raise TransferError(f"qBittorrent {path} failed")  # pragma: no cover

    async def health_check(self) -> str:
        """Verify qBittorrent API reachability and authentication.

        Returns:
            qBittorrent version string from ``/api/v2/app/version``.

        Raises:
            TransferError: If the endpoint is unreachable, not qBittorrent, or auth fails.
        """
        resp = await self._call("GET", "app/version", allow_404=True)
        if resp.status_code == 404:
            raise TransferError(
                f"qBittorrent health check failed: {self._base_url} does not expose /api/v2/app/version (404)"
            )
        version = resp.text.strip()
        if not version or "<html" in version.lower():
            raise TransferError("qBittorrent health check failed: invalid version response body")
        logger.info("qBittorrent health check ok (version=%s)", version)
        return version

    async def add_magnet(self, uri: str) -> str:
        """Add a magnet URI and return the torrent hash from its ``btih`` value."""
        torrent_hash = extract_hash(uri)
        if not torrent_hash:
            raise TransferError(f"Cannot extract hash from magnet URI: {uri[:80]}")

        resp = await self._call("POST", "torrents/add", data={"urls": uri, "savepath": self._download_dir})
        if "fails" in resp.text.lower():
            raise TransferError(f"qBittorrent add_magnet failed: {resp.text[:200]}")

        logger.info("added magnet %s", torrent_hash)
        return torrent_hash

    async def add_torrent_file(self, data: bytes, filename: str = "upload.torrent") -> str:
        """Upload a ``.torrent`` payload and return its info hash."""
        torrent_hash = torrent_file_hash(data)
        resp = await self._call(
            "POST",
            "torrents/add",
            data={"savepath": self._download_dir},
            files={"torrents": (filename, data, "application/x-bittorrent")},
        )
        if "fails" in resp.text.lower():
            raise TransferError(f"qBittorrent add_torrent_file failed: {resp.text[:200]}")

        logger.info("added torrent file %s", torrent_hash)
        return torrent_hash

    async def info(self, torrent_hash: str) -> TorrentStatus | None:
        """Return the transfer's status, or None if the daemon does not know it."""
        resp = await self._call("GET", "torrents/info", params={"hashes": torrent_hash})
        torrents = resp.json()
        if not torrents:
            return None
        item = torrents[0]
        return TorrentStatus(
            hash=item.get("hash", torrent_hash),
            name=item.get("name", ""),
            progress=float(item.get("progress", 0.0)),
            state=item.get("state", "unknown"),
            save_path=item.get("save_path", self._download_dir),
            content_path=item.get("content_path") or None,
        )

    async def files(self, torrent_hash: str) -> list[TorrentFile]:
        resp = await self._call("GET", "torrents/files", params={"hash": torrent_hash})
        return [TorrentFile(name=f.get("name", ""), size=int(f.get("size", 0))) for f in resp.json()]

    async def pause(self, torrent_hash: str) -> None:
        await self._toggle(torrent_hash, legacy="pause", current="stop")

    async def resume(self, torrent_hash: str) -> None:
        await self._toggle(torrent_hash, legacy="resume", current="start")

    async def _toggle(self, torrent_hash: str, *, legacy: str, current: str) -> None:
        # qBittorrent 5 renamed pause/resume to stop/start.
        resp = await self._call("POST", f"torrents/{legacy}", data={"hashes": torrent_hash}, allow_404=True)
        if resp.status_code == 404:
            await self._call("POST", f"torrents/{current}", data={"hashes": torrent_hash})
        logger.info("torrent %s: %s", torrent_hash, current)

    async def delete(self, torrent_hash: str, delete_files: bool = False) -> None:
        """Remove a transfer, keeping its files unless ``delete_files``."""
        await self._call(
            "POST",
            "torrents/delete",
            data={"hashes": torrent_hash, "deleteFiles": "true" if delete_files else "false"},
        )
        logger.info("deleted torrent %s (files=%s)", torrent_hash, delete_files)


def extract_hash(magnet_uri: str) -> str | None:
    """Extract the info hash from a magnet URI as 40-char lowercase hex."""
    match = _BTIH.search(magnet_uri)
    if not match:
        return None
    value = match.group(1)
    if len(value) == 32:
        try:
            return base64.b32decode(value.upper()).hex()
        except binascii.Error:
            return None
    return value.lower()


def torrent_file_hash(data: bytes) -> str:
    """SHA-1 of the bencoded ``info`` dictionary of a ``.torrent`` payload."""
    try:
        torrent = Torrent.read_stream(io.BytesIO(data), validate=False)
        return torrent.infohash.lower()
    except TorfError as exc:
        raise TransferError(f"invalid torrent file: {exc}") from exc
