"""
Indexer SDK
Base interface for indexer aggregator clients and the unit of work they run.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
import re

from ..models.raw_release import RawRelease


NATIVE_MODE = "native"
TORZNAB_MODE = "torznab"


@dataclass(frozen=True)
class IndexerCall:
    """
    One request against the aggregator.

    Native calls go to the aggregator's JSON search endpoint; torznab calls go
    to a single indexer's feed and need `indexer_id`.
    """

    label: str
    query: Optional[str] = None
    search_type: str = "search"
    categories: Tuple[int, ...] = ()
    season: Optional[int] = None
    episode: Optional[int] = None
    imdb_id: Optional[str] = None  # digits only
    tvdb_id: Optional[int] = None
    limit: Optional[int] = None
    mode: str = NATIVE_MODE
    indexer_id: Optional[int] = None
    indexer_name: str = ""


@dataclass
class IndexerInfo:
    id: int
    name: str
    implementation: str = ""
    enabled: bool = True
    extra: Dict[str, Any] = field(default_factory=dict)


class BaseIndexer(ABC):
    """
    Stable contract for aggregator clients.
    """
    api_version = 1
    name = "UnnamedIndexer"
    last_error = ""

    @property
    def aggregator_url(self) -> Optional[str]:
        """Origin of the aggregator, used to recognise its download proxy URLs."""
        return None

    def is_configured(self) -> bool:
        return True

    @abstractmethod
    def search_native(self, call: IndexerCall) -> List[RawRelease]:
        """Run a native JSON search."""
        raise NotImplementedError

    @abstractmethod
    def search_torznab(self, call: IndexerCall) -> List[RawRelease]:
        """Run a Torznab search against `call.indexer_id`."""
        raise NotImplementedError

    @abstractmethod
    def list_indexers(self) -> List[IndexerInfo]:
        raise NotImplementedError

    def match_indexers(self, patterns: Sequence[str]) -> List[IndexerInfo]:
        """Enabled indexers whose name or implementation matches any pattern."""
        compiled = [re.compile(p, re.IGNORECASE) for p in patterns if str(p or "").strip()]
        matched: List[IndexerInfo] = []
        for info in self.list_indexers():
            if not info.enabled:
                continue
            haystack = f"{info.name} {info.implementation}"
            if any(rx.search(haystack) for rx in compiled):
                matched.append(info)
        return matched

    def search(self, call: IndexerCall) -> List[RawRelease]:
        if call.mode == TORZNAB_MODE:
            return self.search_torznab(call)
        return self.search_native(call)

    def healthcheck(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "ok": not bool(self.last_error),
            "error": self.last_error,
            "api_version": self.api_version,
        }
