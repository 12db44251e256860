"""Interfaces for the candidate source adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from mediagrab.shared.models import TransferCandidate

if TYPE_CHECKING:
    from mediagrab.sources.flaresolverr_client import SolvedPage


@runtime_checkable
class CandidateSource(Protocol):
    """One torrent index, queried by title."""

    name: str

    async def search(
        self,
        title: str,
        alternate_title: str | None = None,
        language: str = "ru",
        *,
        year: int | None = None,
    ) -> list[TransferCandidate]:
        """Search the index for a title.

        Args:
            title: Primary (usually localised) title.
            alternate_title: Original or alternative title, if known.
            language: Preferred audio language tag. ``"ru"`` keeps only Russian releases.
            year: Release year, added as a "title year" query variant.

        Returns:
            Candidates with a resolvable locator and nonzero size in the preferred
            language. Empty when nothing was found or the markup could not be parsed.

        Raises:
            SourceError: If the index could not be queried at all.
        """
        ...


@runtime_checkable
class ChallengeSolver(Protocol):
    """Protocol for anti-bot challenge solvers (FlareSolverr)."""

    async def solve(self, url: str, *, cookies: dict[str, str] | None = None) -> SolvedPage:
        """Fetch ``url`` through a real browser.

        Args:
            url: Target page URL.
            cookies: Cookies to seed the browser session with.

        Returns:
            The solved page with its clearance cookies.
        """
        ...
