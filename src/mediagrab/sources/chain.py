"""Ordered fallback across candidate sources."""

from __future__ import annotations

import logging

from mediagrab.shared.exceptions import SourceError
from mediagrab.shared.models import TransferCandidate
from mediagrab.sources.base import matches_language
from mediagrab.sources.interfaces import CandidateSource

logger = logging.getLogger(__name__)


class SourceChain:
    """Query adapters in order until one yields a valid candidate.

    A failing adapter never aborts the search; its error is logged and the next
    adapter is tried. An adapter that fails ``max_failures`` searches in a row is
    parked for the rest of the chain's lifetime (one batch run).
    """

    def __init__(self, adapters: list[CandidateSource], *, max_failures: int = 3) -> None:
        self._adapters = list(adapters)
        self._max_failures = max_failures
        self._failures: dict[str, int] = {}

    @property
    def adapters(self) -> list[CandidateSource]:
        return list(self._adapters)

    def is_parked(self, name: str) -> bool:
        return self._failures.get(name, 0) >= self._max_failures

    async def search(
        self,
        title: str,
        alternate_title: str | None = None,
        language: str = "ru",
        *,
        year: int | None = None,
    ) -> list[TransferCandidate]:
        """Return the valid candidates of the first adapter that has any.

        Candidates outside the preferred ``language`` never count as valid, even
        when an adapter returns them.
        """
        for adapter in self._adapters:
            if self.is_parked(adapter.name):
                logger.debug("skipping parked source %s", adapter.name)
                continue
            try:
                candidates = await adapter.search(title, alternate_title, language, year=year)
            except SourceError as exc:
                self._failures[adapter.name] = self._failures.get(adapter.name, 0) + 1
                logger.warning(
                    "source %s failed for %r (%d in a row): %s",
                    adapter.name,
                    title,
                    self._failures[adapter.name],
                    str(exc)[:200],
                )
                continue

            self._failures[adapter.name] = 0
            valid = [c for c in candidates if c.is_valid and matches_language(c, language)]
            logger.info("source %s: %d candidate(s), %d valid for %r", adapter.name, len(candidates), len(valid), title)
            if valid:
                return valid

        return []
