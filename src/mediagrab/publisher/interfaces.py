"""Interfaces for the publisher module."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from mediagrab.publisher.doodstream import AccountInfo


@runtime_checkable
class HostingClient(Protocol):
    """Protocol for video hosting providers."""

    async def account_info(self) -> AccountInfo:
        """Fetch account health.

        Raises:
            HostingAuthError: If the credentials are rejected.
        """
        ...

    async def upload_server(self) -> str:
        """Return the URL uploads should be posted to."""
        ...

    async def upload(self, server: str, filename: str, payload: bytes) -> str:
        """Upload one payload.

        Args:
            server: Upload endpoint from ``upload_server``.
            filename: Name reported to the provider.
            payload: File bytes (whole file or one chunk).

        Returns:
            Playback URL for the uploaded payload.
        """
        ...
