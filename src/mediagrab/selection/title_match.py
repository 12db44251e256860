"""Title similarity between a release name and the wanted title."""

from __future__ import annotations

import re

UNWANTED_WORDS = (
    "and",
    "saints",
    "sinners",
    "collection",
    "anthology",
    "complete",
    "series",
    "season",
    "episode",
    "part",
    "volume",
    "vol",
    "edition",
    "extended",
    "cut",
    "remastered",
    "directors",
    "special",
    "bonus",
)

_PART_SPLIT = re.compile(r"\s*[/|]\s*")
_BRACKET = re.compile(r"[(\[{]")
_TAIL = re.compile(r"[-:]")


def _clean_part(part: str) -> str:
    # Drop everything from the first bracket, then everything after a dash or colon.
    head = _BRACKET.split(part, maxsplit=1)[0].strip()
    return _TAIL.split(head, maxsplit=1)[0].strip()


def title_variants(release_title: str) -> list[str]:
    """Split "Русское / Original (2020) [1080p]" into cleaned title variants."""
    parts = _PART_SPLIT.split(release_title.lower())
    return [cleaned for cleaned in (_clean_part(p) for p in parts) if cleaned]


def normalize_title(title: str) -> str:
    head = re.split(r"[(\[{:\-]", title.lower(), maxsplit=1)[0]
    return " ".join(head.split())


def title_score(release_title: str, wanted_title: str | None) -> float:
    """Score how well a release name matches the wanted title.

    An exact word-for-word match with any slash- or pipe-separated variant scores
    30. Otherwise the share of wanted words present earns up to 20, minus 3 per
    extra word, 10 per unwanted word (collection, season, extended, ...) and a
    further 20 when the release has more than twice as many words.
    """
    if not wanted_title:
        return 0.0
    wanted_words = normalize_title(wanted_title).split()
    if not wanted_words:
        return 0.0

    variants = title_variants(release_title)
    if any(v.split() == wanted_words for v in variants):
        return 30.0

    words = [w for v in variants for w in v.split()]
    matched = sum(1 for w in wanted_words if w in words)
    score = matched / len(wanted_words) * 20

    extra = len(words) - len(wanted_words)
    if extra > 0:
        score -= extra * 3

    unwanted = sum(1 for w in words if any(u in w for u in UNWANTED_WORDS))
    score -= unwanted * 10

    if len(words) > len(wanted_words) * 2:
        score -= 20
    return score
