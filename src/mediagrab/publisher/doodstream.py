"""DoodStream hosting API client."""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx
from pydantic import BaseModel

from mediagrab.shared.exceptions import (
    HostingAuthError,
    HostingPayloadTooLargeError,
    PublishError,
)

logger = logging.getLogger(__name__)

_API_KEY = re.compile(r"^[A-Za-z0-9]{20,}$")


def validate_api_key(key: str) -> bool:
    """DoodStream keys are alphanumeric and at least 20 characters long."""
    return bool(_API_KEY.match(key or ""))


class AccountInfo(BaseModel):
    """Subset of ``/api/account/info`` the publisher relies on."""

    model_config = {"frozen": True}

    email: str | None = None
    storage_used_percent: float | None = None


class DoodStreamClient:
    """Thin async client for the DoodStream upload API.

    Every request failure is raised as a ``PublishError`` subclass: 403 as
    ``HostingAuthError`` and 413 as ``HostingPayloadTooLargeError``.
    """

    def __init__(self, base_url: str, api_key: str, *, timeout: int = 30, upload_timeout: int = 3600) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._upload_timeout = upload_timeout

    async def account_info(self) -> AccountInfo:
        """Return account details; raise ``HostingAuthError`` if the key is rejected."""
        if not validate_api_key(self._api_key):
            raise HostingAuthError("DoodStream API key is missing or malformed")
        data = await self._get_json("/api/account/info")
        if data.get("status") != 200 or data.get("msg") != "OK":
            raise HostingAuthError(f"DoodStream rejected the API key: {str(data.get('msg'))[:200]}")
        result = data.get("result") or {}
        return AccountInfo(email=result.get("email"), storage_used_percent=_used_percent(result))

    async def upload_server(self) -> str:
        """Return the upload endpoint assigned to this account."""
        data = await self._get_json("/api/upload/server")
        server = data.get("result")
        if data.get("status") != 200 or not isinstance(server, str) or not server:
            raise PublishError(f"DoodStream returned no upload server: {str(data)[:200]}")
        return server

    async def upload(self, server: str, filename: str, payload: bytes) -> str:
        """Upload one payload and return its embed URL."""
        url = f"{server}?{self._api_key}"
        try:
            async with httpx.AsyncClient(timeout=self._upload_timeout, follow_redirects=True) as client:
                resp = await client.post(
                    url,
                    data={"api_key": self._api_key},
                    files={"file": (filename, payload, "video/mp4")},
                )
        except httpx.HTTPError as exc:
            raise PublishError(f"DoodStream upload failed: {exc}") from exc

        self._check_status(resp)
        data = resp.json()
        embed = _embed_url(data.get("result"))
        if data.get("status") != 200 or not embed:
            raise PublishError(f"DoodStream upload rejected: {str(data.get('msg') or data)[:200]}")
        logger.info("uploaded %s (%d bytes) → %s", filename, len(payload), embed)
        return embed

    async def _get_json(self, path: str) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(
                    f"{self._base_url}{path}",
                    params={"key": self._api_key},
                    headers={"Accept": "application/json", "Cache-Control": "no-cache"},
                )
        except httpx.HTTPError as exc:
            raise PublishError(f"DoodStream request failed: {exc}") from exc
        self._check_status(resp)
        return resp.json()

    @staticmethod
    def _check_status(resp: httpx.Response) -> None:
        if resp.status_code == 403:
            raise HostingAuthError("DoodStream authorization failed (403)")
        if resp.status_code == 413:
            raise HostingPayloadTooLargeError("DoodStream rejected the payload as too large (413)")
        if resp.status_code >= 400:
            raise PublishError(f"DoodStream returned {resp.status_code}: {resp.text[:200]}")


def _used_percent(result: dict[str, Any]) -> float | None:
    storage = result.get("storage")
    if isinstance(storage, dict) and storage.get("used_percent") is not None:
        return float(storage["used_percent"])
    try:
        used = float(result["storage_used"])
        left = float(result["storage_left"])
    except (KeyError, TypeError, ValueError):
        return None
    total = used + left
    return used / total * 100 if total > 0 else None


def _embed_url(result: Any) -> str | None:
    if isinstance(result, list):
        result = result[0] if result else None
    if not isinstance(result, dict):
        return None
    return result.get("embed_url") or result.get("protected_embed") or result.get("download_url")
