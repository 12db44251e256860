"""Text heuristics shared by every index adapter.

Quality, language, size and year are inferred from release titles and table
cells only; nothing here touches the network.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from mediagrab.shared.enums import Quality

_CYRILLIC = re.compile(r"[а-яё]", re.IGNORECASE)

_QUALITY_PATTERNS: list[tuple[Quality, re.Pattern[str]]] = [
    (Quality.UHD_4K, re.compile(r"\b(?:2160p|4k|uhd|ultra\s?hd)\b", re.IGNORECASE)),
    (Quality.FHD_1080P, re.compile(r"\b1080[pi]\b|\bfull\s?hd\b|\bfhd\b", re.IGNORECASE)),
    (Quality.HD_720P, re.compile(r"\b720[pi]\b|\bhd(?:rip|tv|tvrip)?\b", re.IGNORECASE)),
    (Quality.SD_480P, re.compile(r"\b480[pi]\b|\bdvdrip\b|\bsatrip\b|\bsd\b", re.IGNORECASE)),
]

# Fallback when the title only mentions its own size, e.g. "[12.4 GB]".
_TITLE_SIZE = re.compile(r"(\d+(?:[.,]\d+)?)\s*(?:gb|гб)", re.IGNORECASE)

_SIZE = re.compile(r"(\d+(?:\.\d+)?)\s*(tib|gib|mib|kib|tb|gb|mb|kb|тб|гб|мб|кб)\b", re.IGNORECASE)
_SIZE_UNITS = {
    "kb": 1024,
    "kib": 1024,
    "кб": 1024,
    "mb": 1024**2,
    "mib": 1024**2,
    "мб": 1024**2,
    "gb": 1024**3,
    "gib": 1024**3,
    "гб": 1024**3,
    "tb": 1024**4,
    "tib": 1024**4,
    "тб": 1024**4,
}

RUSSIAN_KEYWORDS = (
    "rus",
    "russian",
    "рус",
    "дубляж",
    "дублированный",
    "дублирование",
    "озвучка",
    "перевод",
    "многоголосый",
    "многоголосое",
    "профессиональный",
    "любительский",
    "локализация",
    "лицензия",
    "itunes",
)

_SERIES_PATTERNS = [
    re.compile(r"сезон", re.IGNORECASE),
    re.compile(r"серии?\b", re.IGNORECASE),
    re.compile(r"\bepisodes?\b", re.IGNORECASE),
    re.compile(r"\bseasons?\b", re.IGNORECASE),
    re.compile(r"\bs\d{1,2}e\d{1,2}\b", re.IGNORECASE),
    re.compile(r"\[\d+\s*-\s*\d+\]"),
]

_YEAR_IN_BRACKETS = re.compile(r"[(\[](\d{4})[)\]]")
_BARE_YEAR = re.compile(r"\b(19\d{2}|20\d{2})\b")

_STOPWORDS = {"the", "a", "an", "и", "в", "на"}
_QUERY_JUNK = re.compile(r"[^\w\s-]", re.UNICODE)

_TRANSLIT = {
    "а": "a",
    "б": "b",
    "в": "v",
    "г": "g",
    "д": "d",
    "е": "e",
    "ё": "yo",
    "ж": "zh",
    "з": "z",
    "и": "i",
    "й": "y",
    "к": "k",
    "л": "l",
    "м": "m",
    "н": "n",
    "о": "o",
    "п": "p",
    "р": "r",
    "с": "s",
    "т": "t",
    "у": "u",
    "ф": "f",
    "х": "h",
    "ц": "ts",
    "ч": "ch",
    "ш": "sh",
    "щ": "sch",
    "ъ": "",
    "ы": "y",
    "ь": "",
    "э": "e",
    "ю": "yu",
    "я": "ya",
}


def has_cyrillic(text: str) -> bool:
    return bool(_CYRILLIC.search(text))


def detect_quality(title: str) -> Quality:
    """Map a release title to a quality tier."""
    for quality, pattern in _QUALITY_PATTERNS:
        if pattern.search(title):
            return quality

    match = _TITLE_SIZE.search(title)
    if match:
        size_gb = float(match.group(1).replace(",", "."))
        if size_gb > 20:
            return Quality.UHD_4K
        if size_gb > 8:
            return Quality.FHD_1080P
        if size_gb > 4:
            return Quality.HD_720P
        if size_gb > 1:
            return Quality.SD_480P
    return Quality.UNKNOWN


def parse_size(text: str) -> int:
    """Parse a human-readable size (``12.3 GB``, ``1,5 ГБ``, ``700 MiB``) into bytes.

    Returns 0 when no size can be recognised.
    """
    normalised = re.sub(r"[\s ]+", " ", text).replace(",", ".")
    match = _SIZE.search(normalised)
    if not match:
        return 0
    return int(float(match.group(1)) * _SIZE_UNITS[match.group(2).lower()])


def parse_int(text: str) -> int:
    """Extract the first integer from a table cell; 0 when there is none."""
    match = re.search(r"\d+", text.replace(",", "").replace(" ", ""))
    return int(match.group(0)) if match else 0


def is_russian_content(text: str) -> bool:
    """Cyrillic letters or a Russian-release keyword."""
    if has_cyrillic(text):
        return True
    lowered = text.lower()
    return any(keyword in lowered for keyword in RUSSIAN_KEYWORDS)


def is_series_title(title: str) -> bool:
    return any(pattern.search(title) for pattern in _SERIES_PATTERNS)


def extract_year(title: str, *, now: datetime | None = None, bare: bool = False) -> int | None:
    """Return a plausible release year found in brackets, e.g. ``Movie (2019)``.

    With ``bare``, a plain year such as ``Movie / 2019 / BDRip`` is accepted when
    no bracketed one is present.
    """
    current = (now or datetime.now(timezone.utc)).year
    patterns = (_YEAR_IN_BRACKETS, _BARE_YEAR) if bare else (_YEAR_IN_BRACKETS,)
    for pattern in patterns:
        for match in pattern.finditer(title):
            year = int(match.group(1))
            if 1900 <= year <= current + 1:
                return year
    return None


def find_year(text: str) -> int | None:
    """Return the first bare 19xx/20xx year in ``text``."""
    match = _BARE_YEAR.search(text)
    return int(match.group(1)) if match else None


def transliterate(text: str) -> str:
    return "".join(_TRANSLIT.get(ch, _TRANSLIT.get(ch.lower(), ch)) for ch in text)


def clean_query(text: str) -> str:
    """Strip punctuation and stopwords; return ``""`` for queries of two characters or fewer."""
    stripped = _QUERY_JUNK.sub(" ", text.lower())
    words = [w for w in stripped.split() if w not in _STOPWORDS]
    query = " ".join(words)
    return query if len(query) > 2 else ""


def build_query_variants(
    title: str,
    alternate_title: str | None = None,
    *,
    year: int | None = None,
) -> list[str]:
    """Build the ordered, de-duplicated list of search queries for a title.

    Order: raw title, alternate title, both combined, transliteration (only for
    non-Latin titles), title with release year.
    """
    raw: list[str] = [title]
    if alternate_title and alternate_title.strip().lower() != title.strip().lower():
        raw.append(alternate_title)
        raw.append(f"{title} {alternate_title}")
    if has_cyrillic(title):
        raw.append(transliterate(title.lower()))
    release_year = year or find_year(alternate_title or "")
    if release_year and str(release_year) not in title:
        raw.append(f"{title} {release_year}")

    variants: list[str] = []
    for candidate in raw:
        query = clean_query(candidate)
        if query and query not in variants:
            variants.append(query)
    return variants
