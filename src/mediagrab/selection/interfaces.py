"""Interfaces for the candidate selector."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from mediagrab.shared.models import ReleaseInfo


@runtime_checkable
class ReleaseLookup(Protocol):
    """Protocol for release-metadata providers."""

    @property
    def configured(self) -> bool:
        """Whether the provider has credentials and should be queried."""
        ...

    async def search_movie(self, query: str) -> list[ReleaseInfo]:
        """Search releases by title.

        Args:
            query: Title to search for.

        Returns:
            Matching releases, most relevant first.
        """
        ...
