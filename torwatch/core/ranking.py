"""
Ranking & Dedup
Removes duplicate releases and orders the rest by desirability.

The score favours healthy swarms (log-scaled seeders) over a modest, discrete
resolution bonus.
"""
from typing import List, Sequence, Set, Tuple
import math

from ..models.release import NormalizedRelease, dedup_key


SEEDER_WEIGHT = 5.0
QUALITY_WEIGHT = 2.0

# Checked in order; first hit wins.
QUALITY_TOKENS: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (("2160p", "4k"), 3),
    (("1080p",), 2),
    (("720p",), 1),
)


def quality_score(title: str) -> int:
    """Ordinal for the resolution token in a release name"""
    lowered = (title or "").lower()
    for tokens, score in QUALITY_TOKENS:
        if any(token in lowered for token in tokens):
            return score
    return 0


def release_score(release: NormalizedRelease) -> float:
    seeders = max(0, release.seeders or 0)
    return SEEDER_WEIGHT * math.log2(1 + seeders) + QUALITY_WEIGHT * quality_score(release.title)


def rank(releases: Sequence[NormalizedRelease]) -> List[NormalizedRelease]:
    """Descending by score; `sorted` is stable so ties keep input order."""
    return sorted(releases, key=release_score, reverse=True)


def dedup(releases: Sequence[NormalizedRelease]) -> List[NormalizedRelease]:
    """
    Keep the first release seen per dedup key.

    The survivor is whichever copy came first, not the best-seeded one; the
    pipeline dedups before ranking so which copy survives follows indexer order.
    """
    seen: Set[str] = set()
    out: List[NormalizedRelease] = []
    for release in releases:
        key = dedup_key(release)
        if key in seen:
            continue
        seen.add(key)
        out.append(release)
    return out
