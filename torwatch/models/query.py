"""
Search Query / Response Models
Immutable request and the structured response of one search cycle
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .release import NormalizedRelease


SEARCH_KINDS = ("movie", "tv", "anime")


@dataclass(frozen=True)
class SearchQuery:
    """What the caller wants a playable source for"""
    kind: str
    title: Optional[str] = None
    aliases: Tuple[str, ...] = ()
    year: Optional[str] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    absolute_episode: Optional[int] = None
    original_language: Optional[str] = None
    imdb_id: Optional[str] = None  # digits only
    tvdb_id: Optional[int] = None

    @property
    def wants_episode(self) -> bool:
        return self.episode is not None or self.absolute_episode is not None

    @property
    def imdb_tt(self) -> Optional[str]:
        return f"tt{self.imdb_id}" if self.imdb_id else None


@dataclass
class SearchResponse:
    """Echo of the normalized request plus ranked, annotated results"""
    query: Dict[str, Any]
    providers: List[str]
    total: int
    results: List[NormalizedRelease] = field(default_factory=list)
    note: Optional[str] = None
    warnings: Dict[str, str] = field(default_factory=dict)


def clean_imdb_id(value: Optional[str]) -> Optional[str]:
    """'tt0133093' / '0133093' / ' TT133093 ' -> digits only, or None."""
    text = str(value or "").strip().lower()
    if text.startswith("tt"):
        text = text[2:]
    return text if text.isdigit() else None
