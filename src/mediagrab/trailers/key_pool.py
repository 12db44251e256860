"""Rotating pool of video-search API keys with per-key quota tracking."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from pydantic import BaseModel

from mediagrab.shared.exceptions import QuotaExhaustedError
from mediagrab.shared.models import utc_now

logger = logging.getLogger(__name__)


class ApiKeyQuota(BaseModel):
    """Usage counter for one key. Lives in memory only."""

    key: str
    used: int = 0
    last_reset: datetime
    exhausted: bool = False


class ApiKeyPool:
    """Hand out the first key that still has quota, cycling through the pool.

    A key's counter resets once ``reset_hours`` have passed since its last
    reset. A key is exhausted when its usage reaches ``quota_per_key`` or when
    the provider says so (``mark_exhausted``).
    """

    def __init__(
        self,
        keys: list[str],
        *,
        quota_per_key: int = 10000,
        reset_hours: int = 24,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not keys:
            raise ValueError("at least one API key is required")
        self._quota_per_key = quota_per_key
        self._reset_after = timedelta(hours=reset_hours)
        self._clock = clock
        now = clock()
        self._usage = [ApiKeyQuota(key=k, last_reset=now) for k in keys]
        self._index = 0

    def __len__(self) -> int:
        return len(self._usage)

    def get_available_key(self) -> str:
        """Return the current key if usable, else the next usable one.

        Raises:
            QuotaExhaustedError: If every key in the pool is exhausted.
        """
        now = self._clock()
        for _ in range(len(self._usage)):
            usage = self._usage[self._index]
            if now - usage.last_reset >= self._reset_after:
                usage.used = 0
                usage.exhausted = False
                usage.last_reset = now
            if not usage.exhausted and usage.used < self._quota_per_key:
                return usage.key
            self._index = (self._index + 1) % len(self._usage)
        raise QuotaExhaustedError(f"all {len(self._usage)} API keys have exhausted their quota")

    def increment_usage(self, key: str, cost: int = 1) -> None:
        usage = self._find(key)
        usage.used += cost
        if usage.used >= self._quota_per_key:
            self.mark_exhausted(key)

    def mark_exhausted(self, key: str) -> None:
        """Retire ``key`` until its quota window resets and move to the next key."""
        usage = self._find(key)
        usage.used = max(usage.used, self._quota_per_key)
        usage.exhausted = True
        usage.last_reset = self._clock()
        if self._usage[self._index].key == key:
            self._index = (self._index + 1) % len(self._usage)
        logger.warning("API key #%d exhausted", self._usage.index(usage))

    def quota_status(self) -> dict[str, int]:
        total = self._quota_per_key * len(self._usage)
        used = sum(min(u.used, self._quota_per_key) for u in self._usage)
        return {"available": total - used, "total": total, "keys": len(self._usage)}

    def _find(self, key: str) -> ApiKeyQuota:
        for usage in self._usage:
            if usage.key == key:
                return usage
        raise KeyError("unknown API key")
