"""Tests for SourceChain fallback."""

from __future__ import annotations

from unittest.mock import AsyncMock

from mediagrab.shared.enums import Quality
from mediagrab.shared.exceptions import SourceBlockedError
from mediagrab.shared.models import TransferCandidate
from mediagrab.sources.chain import SourceChain


def _candidate(
    locator: str, *, seeders: int = 5, quality: Quality = Quality.FHD_1080P, is_russian: bool = True
) -> TransferCandidate:
    return TransferCandidate(
        title="Blade Runner (1982) 1080p",
        size=2 * 1024**3,
        seeders=seeders,
        quality=quality,
        is_russian=is_russian,
        locator=locator,
    )


def _adapter(name: str, **kwargs) -> AsyncMock:
    adapter = AsyncMock()
    adapter.name = name
    adapter.search = AsyncMock(**kwargs)
    return adapter


class TestSourceChain:
    async def test_first_adapter_with_valid_candidates_wins(self) -> None:
        first = _adapter("rutor", return_value=[_candidate("m1")])
        second = _adapter("nnm", return_value=[_candidate("m2")])

        result = await SourceChain([first, second]).search("Blade Runner", "Бегущий по лезвию")

        assert [c.locator for c in result] == ["m1"]
        first.search.assert_awaited_once_with("Blade Runner", "Бегущий по лезвию", "ru", year=None)
        second.search.assert_not_awaited()

    async def test_invalid_candidates_fall_through(self) -> None:
        first = _adapter("rutor", return_value=[_candidate("m1", seeders=0), _candidate("m2", quality=Quality.UNKNOWN)])
        second = _adapter("nnm", return_value=[_candidate("m3")])

        result = await SourceChain([first, second]).search("Blade Runner")

        assert [c.locator for c in result] == ["m3"]

    async def test_non_russian_candidates_fall_through_under_ru(self) -> None:
        first = _adapter("jackett", return_value=[_candidate("m1", is_russian=False)])
        second = _adapter("rutor", return_value=[_candidate("m2")])

        result = await SourceChain([first, second]).search("Blade Runner", language="ru")

        assert [c.locator for c in result] == ["m2"]

    async def test_other_language_accepts_any_release(self) -> None:
        first = _adapter("jackett", return_value=[_candidate("m1", is_russian=False), _candidate("m2")])

        result = await SourceChain([first]).search("Blade Runner", language="en")

        assert [c.locator for c in result] == ["m1", "m2"]

    async def test_year_forwarded_to_adapters(self) -> None:
        first = _adapter("rutor", return_value=[_candidate("m1")])

        await SourceChain([first]).search("Blade Runner", "Бегущий по лезвию", "ru", year=1982)

        first.search.assert_awaited_once_with("Blade Runner", "Бегущий по лезвию", "ru", year=1982)

    async def test_failing_adapter_is_skipped(self) -> None:
        first = _adapter("rutor", side_effect=SourceBlockedError("rutor answered 403"))
        second = _adapter("nnm", return_value=[_candidate("m2")])

        result = await SourceChain([first, second]).search("Blade Runner")

        assert [c.locator for c in result] == ["m2"]

    async def test_parks_adapter_after_repeated_failures(self) -> None:
        first = _adapter("rutor", side_effect=SourceBlockedError("rutor answered 403"))
        second = _adapter("nnm", return_value=[])
        chain = SourceChain([first, second], max_failures=2)

        for _ in range(3):
            assert await chain.search("Blade Runner") == []

        assert chain.is_parked("rutor")
        assert not chain.is_parked("nnm")
        assert first.search.await_count == 2
        assert second.search.await_count == 3

    async def test_success_resets_failure_count(self) -> None:
        first = _adapter("rutor", side_effect=[SourceBlockedError("blocked"), [_candidate("m1")], SourceBlockedError("x")])
        chain = SourceChain([first], max_failures=2)

        await chain.search("a")
        await chain.search("b")
        await chain.search("c")

        assert not chain.is_parked("rutor")
