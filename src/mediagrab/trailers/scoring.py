"""Lexical heuristics for picking and validating trailers."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel

from mediagrab.shared.models import VideoContent
from mediagrab.sources.parsing import is_russian_content

MIN_SEARCH_SCORE = 4
MIN_DURATION = 30
MAX_DURATION = 300

TRAILER_KEYWORDS = ("trailer", "трейлер", "teaser", "тизер")
OFFICIAL_KEYWORDS = ("official", "официальный")
PENALTIES: dict[str, int] = {
    "gameplay": -5,
    "геймплей": -5,
    "reaction": -5,
    "реакция": -5,
    "walkthrough": -5,
    "прохождение": -5,
    "review": -3,
    "обзор": -3,
    "fan-made": -3,
    "fan made": -3,
    "fanmade": -3,
    "cover": -2,
    "кавер": -2,
}
_QUERY_STOPWORDS = {"the", "a", "an", "of", "and", "и", "в", "на", "trailer", "official", "movie"}
_DURATION = re.compile(r"^P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")
_WATCH_ID = re.compile(r"(?:v=|youtu\.be/|/embed/)([A-Za-z0-9_-]{11})")


class SearchHit(BaseModel):
    """A search result with its lexical score."""

    model_config = {"frozen": True}

    video_id: str
    title: str
    score: int


class VideoDetails(BaseModel):
    """The parts of a ``video`` resource the eligibility check reads."""

    model_config = {"frozen": True}

    video_id: str
    title: str = ""
    description: str = ""
    duration: int = 0
    definition: str = "sd"
    privacy_status: str = "public"

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> VideoDetails:
        snippet = item.get("snippet", {})
        content = item.get("contentDetails", {})
        return cls(
            video_id=item.get("id", ""),
            title=snippet.get("title") or "",
            description=snippet.get("description") or "",
            duration=parse_iso8601_duration(content.get("duration", "")),
            definition=content.get("definition", "sd"),
            privacy_status=item.get("status", {}).get("privacyStatus", "public"),
        )

    @property
    def url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"


def parse_iso8601_duration(value: str) -> int:
    """``PT2M5S`` -> 125. Unparseable values yield 0."""
    match = _DURATION.match(value or "")
    if not match:
        return 0
    days, hours, minutes, seconds = (int(g) if g else 0 for g in match.groups())
    return days * 86400 + hours * 3600 + minutes * 60 + seconds


def significant_words(title: str) -> list[str]:
    words = re.findall(r"\w+", title.lower())
    return [w for w in words if len(w) > 2 and w not in _QUERY_STOPWORDS]


def has_trailer_keyword(text: str) -> bool:
    lowered = text.lower()
    return any(k in lowered for k in TRAILER_KEYWORDS)


def search_score(title: str, description: str, query_words: list[str]) -> int:
    """Score one search result by its title and description text."""
    t = title.lower()
    d = description.lower()
    score = 0
    if "trailer" in t or "трейлер" in t:
        score += 3
    if any(k in t for k in OFFICIAL_KEYWORDS):
        score += 2
    if "teaser" in t or "тизер" in t:
        score += 2
    if "trailer" in d or "трейлер" in d:
        score += 1
    for word in query_words:
        if word in t or word in d:
            score += 2
    for keyword, penalty in PENALTIES.items():
        if keyword in t:
            score += penalty
    return score


def rank_results(items: list[dict[str, Any]], title: str) -> list[SearchHit]:
    """Keep results scoring at least ``MIN_SEARCH_SCORE``, best first."""
    query_words = significant_words(title)
    hits: list[SearchHit] = []
    for item in items:
        snippet = item.get("snippet", {})
        hit = SearchHit(
            video_id=item.get("id", {}).get("videoId", ""),
            title=snippet.get("title") or "",
            score=search_score(snippet.get("title") or "", snippet.get("description") or "", query_words),
        )
        if hit.video_id and hit.score >= MIN_SEARCH_SCORE:
            hits.append(hit)
    # Stable sort keeps the provider's relevance order among equal scores.
    hits.sort(key=lambda h: -h.score)
    return hits


def is_eligible(details: VideoDetails) -> bool:
    """Public, strictly between 30 and 300 seconds, and labelled as a trailer."""
    if details.privacy_status != "public":
        return False
    if not MIN_DURATION < details.duration < MAX_DURATION:
        return False
    return has_trailer_keyword(details.title) or has_trailer_keyword(details.description)


def detect_russian(title: str, description: str = "") -> bool:
    return is_russian_content(f"{title} {description}")


def confidence(details: VideoDetails) -> int:
    """Final 0-100 confidence for an eligible trailer."""
    score = 50
    if details.definition == "hd":
        score += 15
    if 60 <= details.duration <= 180:
        score += 15
    if any(k in details.title.lower() for k in OFFICIAL_KEYWORDS):
        score += 10
    if detect_russian(details.title, details.description):
        score += 10
    return max(0, min(100, score))


def revalidate(content: VideoContent) -> bool:
    """Re-check a stored trailer with the same heuristics used to accept it."""
    if not content.url or not _WATCH_ID.search(content.url):
        return False
    if content.duration is not None and not MIN_DURATION < content.duration < MAX_DURATION:
        return False
    return has_trailer_keyword(content.title or "") or has_trailer_keyword(content.description or "")
