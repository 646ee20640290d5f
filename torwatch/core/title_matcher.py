"""
Title Matcher
Decides whether a release name carries the requested episode, or is a
whole-season bundle, and picks the episode file inside a resolved torrent.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set
import re


MAX_EPISODE_FOR_MATCH = 999
MAX_LOOSE_EPISODE = 500

VIDEO_EXT_RX = re.compile(r"\.(?:mkv|mp4|m4v|mpg|mpeg|avi|ts|m2ts|mov|wmv|webm)$", re.IGNORECASE)
BUNDLE_FILE_RX = re.compile(r"part\s*\d+|\b(?:comp|complete|batch)\b", re.IGNORECASE)
# Size bonus reaches its cap of 20 points at about 1.5 GB.
BYTES_PER_SIZE_POINT = 75 * 1024 * 1024
MAX_SIZE_BONUS = 20.0

PACK_KEYWORDS = [
    (re.compile(r"\bcomplete\b", re.IGNORECASE), "complete"),
    (re.compile(r"\bbatch\b", re.IGNORECASE), "batch"),
    (re.compile(r"\ball[\s._-]*(?:eps?|episodes)\b", re.IGNORECASE), "all-episodes"),
    (re.compile(r"\b(?:full|whole)\s+(?:season|series)\b", re.IGNORECASE), "full-season"),
    (re.compile(r"\bseason\s*pack\b", re.IGNORECASE), "season-pack"),
    (re.compile(r"\bcollection\b", re.IGNORECASE), "collection"),
    (re.compile(r"(?:\bS\d{1,2}|\b)EP?\d{1,3}\s*[-–~]\s*(?:EP?)?\d{1,3}\b", re.IGNORECASE), "episode-range"),
    (re.compile(r"(?:^|[\s\[\(])\d{2,3}\s*[-–~]\s*\d{2,3}(?=[\s\]\)]|$)"), "episode-range"),
    (re.compile(r"全集|全話|完結|合集"), "complete-localized"),
]

# Tokens that contain digits but are never episode numbers.
FALSE_POSITIVE_PATTERNS = [
    re.compile(r"\b(?:part|vol|volume|batch|version|ver)\s*\d+", re.IGNORECASE),
    re.compile(r"\bv\d+\b", re.IGNORECASE),
    re.compile(r"\d{3,4}p\b", re.IGNORECASE),
    re.compile(r"\b(?:19|20)\d{2}\b"),
    re.compile(r"\bx26[45]\b", re.IGNORECASE),
    re.compile(r"\bh\.?26[45]\b", re.IGNORECASE),
    re.compile(r"\b\d+\s*bit\b", re.IGNORECASE),
    re.compile(r"\bAAC\s*\d+[\s.]*\d*", re.IGNORECASE),
    re.compile(r"\bDDP?\s*\d+[\s.]*\d*", re.IGNORECASE),
    re.compile(r"\bFLAC\s*\d+[\s.]*\d*", re.IGNORECASE),
    re.compile(r"\b\d+\.\d+\b"),
    re.compile(r"\bHEVC\d*", re.IGNORECASE),
    re.compile(r"\bAVC\d*", re.IGNORECASE),
    re.compile(r"\[\w{8}\]"),
    re.compile(r"\bS\d{1,2}\b(?!E)", re.IGNORECASE),
]

SEASON_EPISODE_RX = re.compile(r"S(\d{1,2})E(\d{1,3})(?:[-–]E?(\d{1,3}))?", re.IGNORECASE)
EPISODE_WORD_RX = re.compile(r"\b(?:EP|Episode|#)\s*(\d{1,3})(?:\s*[-–]\s*(\d{1,3}))?", re.IGNORECASE)
LOOSE_NUMBER_RX = re.compile(r"(?:^|[\s\-\[\(])(\d{2,3})(?:\s*[-–]\s*(\d{2,3}))?(?=[\]\s\-\)\._]|$)")


@dataclass
class EpisodeHints:
    by_season: Dict[int, Set[int]] = field(default_factory=dict)
    generic: Set[int] = field(default_factory=set)


@dataclass
class SeasonPackDetection:
    is_season_pack: bool
    keywords: List[str]
    season_match: bool
    reason: Optional[str] = None


def _add_range(target: Set[int], start: int, end: Optional[int] = None) -> None:
    if start < 1:
        return
    end = start if end is None else end
    low, high = min(start, end), max(start, end)
    for value in range(low, min(high, MAX_EPISODE_FOR_MATCH) + 1):
        target.add(value)


def clean_title_for_episode_extraction(title: str) -> str:
    cleaned = title
    for pattern in FALSE_POSITIVE_PATTERNS:
        cleaned = pattern.sub(" ", cleaned)
    return cleaned


def extract_episode_hints(title: str) -> EpisodeHints:
    """
    Collect episode numbers a release name advertises.

    `SxxEyy` markers are bound to their season; `EP 5`, `Episode 5`, `#5` and
    loose 2-3 digit tokens (common absolute numbering for anime) are generic.
    """
    hints = EpisodeHints()
    normalized = (title or "").replace("_", " ")

    for match in SEASON_EPISODE_RX.finditer(normalized):
        season = int(match.group(1))
        start = int(match.group(2))
        end = int(match.group(3)) if match.group(3) else start
        if season > 0:
            _add_range(hints.by_season.setdefault(season, set()), start, end)

    cleaned = clean_title_for_episode_extraction(normalized)

    for match in EPISODE_WORD_RX.finditer(cleaned):
        start = int(match.group(1))
        end = int(match.group(2)) if match.group(2) else start
        _add_range(hints.generic, start, end)

    for match in LOOSE_NUMBER_RX.finditer(cleaned):
        start = int(match.group(1))
        end = int(match.group(2)) if match.group(2) else start
        if 1 <= start <= MAX_LOOSE_EPISODE:
            _add_range(hints.generic, start, end)

    return hints


def matches_episode(
    title: str,
    season: Optional[int] = None,
    episode: Optional[int] = None,
    absolute: Optional[int] = None,
) -> bool:
    """True when the release carries `episode` (in `season`) or `absolute`."""
    if episode is None and absolute is None:
        return True
    hints = extract_episode_hints(title)
    targets: List[int] = []
    for value in (episode, absolute):
        if value is not None and value not in targets:
            targets.append(value)

    for target in targets:
        if season is not None:
            if target in hints.by_season.get(season, set()):
                return True
        elif any(target in numbers for numbers in hints.by_season.values()):
            return True
        if target in hints.generic:
            return True
    return False


def detect_season_pack(title: str, season: Optional[int] = None) -> SeasonPackDetection:
    """
    Classify a release as a season bundle. Callers run this only after
    `matches_episode` said no, so a real single-episode hit is never relabelled.
    """
    title = title or ""
    keywords: List[str] = []
    for rx, tag in PACK_KEYWORDS:
        if tag not in keywords and rx.search(title):
            keywords.append(tag)

    season_match = False
    if season is not None:
        season_patterns = [
            rf"\bs{season:02d}\b",
            rf"\bs{season:02d}e\d",
            rf"season[\s._-]*0?{season}\b",
            rf"\b0?{season}(?:st|nd|rd|th)?\s*season\b",
        ]
        season_match = any(re.search(p, title, re.IGNORECASE) for p in season_patterns)

    mentions_season = bool(
        re.search(r"\bseason\b", title, re.IGNORECASE) or re.search(r"\bs\d{1,2}\b", title, re.IGNORECASE)
    )
    mentions_series = bool(re.search(r"\bseries\b", title, re.IGNORECASE))
    is_pack = bool(keywords) and (season_match or mentions_season or mentions_series)

    reason = None
    if is_pack:
        first = keywords[0] if keywords else "pack"
        reason = f"season-{season}-{first}" if season_match else first
    return SeasonPackDetection(
        is_season_pack=is_pack,
        keywords=keywords,
        season_match=season_match,
        reason=reason,
    )


@dataclass
class TorrentFile:
    index: int
    name: str
    length: Optional[int] = None


@dataclass
class FilePick:
    index: int
    name: str
    length: Optional[int]
    matched: bool
    score: float


def pick_file_index_for_episode(
    files: Sequence[TorrentFile],
    season: Optional[int] = None,
    episode: Optional[int] = None,
    absolute: Optional[int] = None,
) -> Optional[FilePick]:
    """
    Best file of a torrent for the requested episode.

    Only video files are considered when the torrent has any. A file naming
    the episode scores 120, one naming only the absolute number 80; video
    files get 10 more and larger files up to 20 more. Names that look like
    bundles ("Part 2", "Complete") lose 20. Ties keep the earlier file.
    """
    if not files:
        return None
    videos = [f for f in files if VIDEO_EXT_RX.search(f.name)]
    pool = videos or list(files)

    best: Optional[FilePick] = None
    for entry in pool:
        score = 0.0
        matched = matches_episode(entry.name, season, episode, absolute)
        if matched:
            score += 120
        elif absolute is not None and matches_episode(entry.name, None, None, absolute):
            score += 80
        if BUNDLE_FILE_RX.search(entry.name):
            score -= 20
        if VIDEO_EXT_RX.search(entry.name):
            score += 10
        if entry.length is not None:
            score += min(entry.length / BYTES_PER_SIZE_POINT, MAX_SIZE_BONUS)

        if best is None or score > best.score:
            best = FilePick(index=entry.index, name=entry.name, length=entry.length, matched=matched, score=score)
    return best
