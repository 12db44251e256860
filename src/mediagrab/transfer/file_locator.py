"""Locate the main video file of a finished transfer."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = (".mp4", ".mkv", ".avi", ".mov", ".wmv")

# Within this many percentage points of name match, the larger file wins.
MATCH_TOLERANCE = 20.0


def is_video(path: str | Path) -> bool:
    return Path(path).suffix.lower() in VIDEO_EXTENSIONS


def normalize_file_name(name: str) -> str:
    """``Movie.Name_2020.1080p.mkv`` -> ``movie name 2020 1080p``."""
    stem = re.sub(r"\.[^/.]+$", "", name)
    spaced = re.sub(r"[._]", " ", stem)
    cleaned = re.sub(r"[^a-zA-Zа-яА-ЯёЁ0-9\s]", "", spaced).lower()
    return " ".join(cleaned.split())


def match_score(wanted: str, candidate: str) -> float:
    """Percentage of shared words, relative to the longer word set."""
    wanted_words = set(wanted.split())
    candidate_words = set(candidate.split())
    total = max(len(wanted_words), len(candidate_words))
    if total == 0:
        return 0.0
    return len(wanted_words & candidate_words) / total * 100


def largest_video(directory: str | Path) -> str | None:
    """Return the largest video file under ``directory``, recursively."""
    best: tuple[int, str] | None = None
    for root, _dirs, files in os.walk(directory):
        for name in files:
            if not is_video(name):
                continue
            path = os.path.join(root, name)
            size = os.path.getsize(path)
            if best is None or (size, path) > best:
                best = (size, path)
    return best[1] if best else None


def find_main_video_file(save_path: str | Path, torrent_name: str) -> str | None:
    """Scan ``save_path`` for the video that best matches ``torrent_name``.

    Files are compared by word overlap of their normalised names. A file wins on
    match score only when it leads by more than 20 points; otherwise the larger
    file wins.
    """
    root = Path(save_path)
    if not root.is_dir():
        logger.warning("download directory does not exist: %s", root)
        return None

    wanted = normalize_file_name(torrent_name)
    found: list[tuple[float, int, str]] = []
    for current, _dirs, files in os.walk(root):
        for name in files:
            if not is_video(name):
                continue
            path = os.path.join(current, name)
            score = match_score(wanted, normalize_file_name(name))
            found.append((score, os.path.getsize(path), path))
            logger.debug("video file %s: %.1f%% match", name, score)

    if not found:
        return None

    best = found[0]
    for entry in found[1:]:
        if _beats(entry, best):
            best = entry
    logger.info("selected video file %s (%.1f%% match)", best[2], best[0])
    return best[2]


def _beats(a: tuple[float, int, str], b: tuple[float, int, str]) -> bool:
    if abs(a[0] - b[0]) > MATCH_TOLERANCE:
        return a[0] > b[0]
    if a[1] != b[1]:
        return a[1] > b[1]
    return a[2] < b[2]
