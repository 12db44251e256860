"""Tests for release-title heuristics."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from mediagrab.shared.enums import Quality
from mediagrab.sources.parsing import (
    build_query_variants,
    clean_query,
    detect_quality,
    extract_year,
    find_year,
    is_russian_content,
    is_series_title,
    parse_int,
    parse_size,
    transliterate,
)

GIB = 1024**3
MIB = 1024**2


class TestDetectQuality:
    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("Dune (2021) 2160p HDR", Quality.UHD_4K),
            ("Dune (2021) UHD BDRemux", Quality.UHD_4K),
            ("Дюна (2021) BDRip 1080p", Quality.FHD_1080P),
            ("Dune Full HD", Quality.FHD_1080P),
            ("Дюна (2021) WEB-DL 720p", Quality.HD_720P),
            ("Дюна (2021) HDRip", Quality.HD_720P),
            ("Дюна (2021) DVDRip", Quality.SD_480P),
        ],
    )
    def test_markers(self, title: str, expected: Quality) -> None:
        assert detect_quality(title) == expected

    def test_falls_back_to_size_in_title(self) -> None:
        assert detect_quality("Дюна (2021) [12.4 GB]") == Quality.FHD_1080P
        assert detect_quality("Дюна (2021) [2,1 ГБ]") == Quality.SD_480P

    def test_unknown(self) -> None:
        assert detect_quality("Дюна (2021)") == Quality.UNKNOWN


class TestParseSize:
    def test_gigabytes(self) -> None:
        assert parse_size("12.3 GB") == int(12.3 * GIB)

    def test_cyrillic_units_and_comma(self) -> None:
        assert parse_size("1,5 ГБ") == int(1.5 * GIB)

    def test_binary_units(self) -> None:
        assert parse_size("700 MiB") == 700 * MIB

    def test_non_breaking_space(self) -> None:
        assert parse_size("2.05\xa0GB") == int(2.05 * GIB)

    def test_unrecognised_is_zero(self) -> None:
        assert parse_size("n/a") == 0


class TestParseInt:
    def test_strips_separators(self) -> None:
        assert parse_int("1 234") == 1234
        assert parse_int("5,678") == 5678

    def test_empty_is_zero(self) -> None:
        assert parse_int("—") == 0


class TestLanguageAndSeries:
    def test_cyrillic_is_russian(self) -> None:
        assert is_russian_content("Дюна (2021)")

    def test_keyword_is_russian(self) -> None:
        assert is_russian_content("Dune 2021 1080p RUS")
        assert not is_russian_content("Dune 2021 1080p ENG")

    def test_series_markers(self) -> None:
        assert is_series_title("Тьма (1 сезон)")
        assert is_series_title("Dark S01E03 1080p")
        assert is_series_title("Тьма [1-10]")
        assert not is_series_title("Бегущий по лезвию (1982)")


class TestYears:
    def test_bracketed_year(self) -> None:
        assert extract_year("Бегущий по лезвию / Blade Runner (1982) BDRip") == 1982

    def test_future_year_rejected(self) -> None:
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        assert extract_year("Movie (2099)", now=now) is None
        assert extract_year("Movie [2025]", now=now) == 2025

    def test_bare_year(self) -> None:
        assert find_year("Blade Runner 1982") == 1982

    def test_bare_year_fallback(self) -> None:
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        assert extract_year("Бегущий по лезвию / 1982 / BDRip", now=now) is None
        assert extract_year("Бегущий по лезвию / 1982 / BDRip", now=now, bare=True) == 1982
        assert extract_year("Blade Runner 2049 / 2017 / 1080p", now=now, bare=True) == 2017
        assert extract_year("Blade Runner 2049 (2017)", now=now, bare=True) == 2017
        assert find_year("Blade Runner") is None


class TestQueryVariants:
    def test_clean_query_drops_short(self) -> None:
        assert clean_query("It!") == ""
        assert clean_query("The Thing") == "thing"

    def test_transliteration(self) -> None:
        assert transliterate("лезвию") == "lezviyu"

    def test_order_and_dedup(self) -> None:
        variants = build_query_variants("Бегущий по лезвию", "Blade Runner", year=1982)

        assert variants[0] == "бегущий по лезвию"
        assert variants[1] == "blade runner"
        assert variants[2] == "бегущий по лезвию blade runner"
        assert "beguschiy po lezviyu" in variants
        assert variants[-1] == "бегущий по лезвию 1982"
        assert len(variants) == len(set(variants))

    def test_same_alternate_is_ignored(self) -> None:
        assert build_query_variants("Dune", "dune") == ["dune"]

    def test_year_from_alternate_title(self) -> None:
        variants = build_query_variants("Дюна", "Dune 2021")
        assert variants[-1] == "дюна 2021"
