"""Domain enumerations used across all modules."""

from __future__ import annotations

from enum import Enum, unique


@unique
class MediaType(str, Enum):
    """Kind of catalog entry."""

    MOVIE = "MOVIE"
    SERIES = "SERIES"


@unique
class MediaStatus(str, Enum):
    """Acquisition lifecycle states for a catalog entry."""

    INACTIVE = "INACTIVE"
    TRAILER = "TRAILER"
    READY = "READY"
    NO_VIDEO = "NO_VIDEO"
    ERROR = "ERROR"


@unique
class ContentType(str, Enum):
    """Kind of playable asset."""

    TRAILER = "TRAILER"
    FULL_MOVIE = "FULL_MOVIE"
    EPISODE = "EPISODE"


@unique
class ContentStatus(str, Enum):
    """Availability states for a playable asset."""

    PENDING = "PENDING"
    READY = "READY"
    ERROR = "ERROR"


@unique
class Quality(str, Enum):
    """Coarse resolution tier inferred from release text."""

    UHD_4K = "4K"
    FHD_1080P = "1080p"
    HD = "HD"
    HD_720P = "720p"
    SD_480P = "480p"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int:
        return _QUALITY_RANK[self]


_QUALITY_RANK: dict[Quality, int] = {
    Quality.UHD_4K: 6,
    Quality.FHD_1080P: 5,
    Quality.HD: 3,
    Quality.HD_720P: 2,
    Quality.SD_480P: 1,
    Quality.UNKNOWN: 0,
}


@unique
class ParserState(str, Enum):
    """Run states reported through the parser status singleton."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"
