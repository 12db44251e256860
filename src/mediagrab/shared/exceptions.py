"""Hierarchical exception types for the mediagrab pipeline."""

from __future__ import annotations


class MediagrabError(Exception):
    """Base exception for all mediagrab errors."""


# ── Sources ─────────────────────────────────────────────────────


class SourceError(MediagrabError):
    """Index fetch or parse failed."""


class SourceBlockedError(SourceError):
    """Index answered with an anti-automation response (403/429/CAPTCHA)."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class SourceAuthError(SourceError):
    """Login to a tracker failed."""


class MetadataError(MediagrabError):
    """Release-metadata lookup failed."""


# ── Transfer ────────────────────────────────────────────────────


class TransferError(MediagrabError):
    """Torrent daemon request failed."""


class TransferStateError(TransferError):
    """Torrent daemon reported its own error state for a transfer."""


class TransferTimeoutError(TransferError):
    """Transfer did not complete within the polling ceiling."""


class TranscodeError(MediagrabError):
    """FFmpeg transcode failed."""


# ── Publisher ───────────────────────────────────────────────────


class PublishError(MediagrabError):
    """Upload to the hosting provider failed."""


class HostingAuthError(PublishError):
    """Hosting provider rejected the API key."""


class HostingStorageError(PublishError):
    """Hosting provider storage is above the high-water mark."""


class HostingPayloadTooLargeError(PublishError):
    """Hosting provider rejected the request body as too large."""


# ── Trailers ────────────────────────────────────────────────────


class TrailerSearchError(MediagrabError):
    """Video-search provider request failed."""


class QuotaExhaustedError(TrailerSearchError):
    """Every API key in the pool has used up its quota."""


class ApiKeyInvalidError(TrailerSearchError):
    """API key is invalid or the service is not enabled for it."""


class RateLimitedError(TrailerSearchError):
    """Provider answered 429."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after
