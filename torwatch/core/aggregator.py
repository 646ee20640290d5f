"""
Aggregation Engine
Fans a set of indexer calls out concurrently and gathers whatever succeeded
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import logging
import re

from ..models.raw_release import RawRelease
from ..models.release import NormalizedRelease
from ..sources.base import BaseIndexer, IndexerCall, TORZNAB_MODE
from ..utils.text import collapse_spaces, fold_diacritics, keep_letters_digits
from .errors import QueryValidationError, UpstreamUnavailableError
from .event_bus import EventBus, Events
from .normalizer import ResultNormalizer


logger = logging.getLogger(__name__)

MIN_ALIAS_LENGTH = 2
MIN_DERIVED_LENGTH = 3


def build_query_variants(title: str, aliases: Iterable[str] = ()) -> List[str]:
    """
    Query texts worth trying for one title: the title itself, each alias, the
    base name before the first `:`/`-`/`–`, and a diacritic-free
    alphanumeric-only form.
    """
    title = (title or "").strip()
    if not title:
        raise QueryValidationError("Query text is empty.")

    variants: List[str] = [title]

    def _add(value: str):
        if value not in variants:
            variants.append(value)

    for alias in aliases or ():
        alias = (alias or "").strip()
        if len(alias) >= MIN_ALIAS_LENGTH:
            _add(alias)

    base_name = re.split(r"[:\-–]", title, maxsplit=1)[0].strip()
    if len(base_name) >= MIN_DERIVED_LENGTH and base_name != title:
        _add(base_name)

    cleaned = collapse_spaces(keep_letters_digits(fold_diacritics(title), " "))
    if cleaned != title and len(cleaned) >= MIN_DERIVED_LENGTH:
        _add(cleaned)

    return variants


@dataclass
class AggregateResult:
    releases: List[NormalizedRelease] = field(default_factory=list)
    warnings: Dict[str, str] = field(default_factory=dict)
    attempted: int = 0
    succeeded: int = 0


class AggregationEngine:
    """
    Runs indexer calls on a thread pool. A failed call contributes an empty
    result and a warning; results are assembled in call order once every
    call has settled.
    """

    def __init__(
        self,
        indexer: BaseIndexer,
        normalizer: Optional[ResultNormalizer] = None,
        event_bus: Optional[EventBus] = None,
        max_workers: int = 8,
    ):
        self.indexer = indexer
        self.normalizer = normalizer or ResultNormalizer(indexer.aggregator_url)
        self.event_bus = event_bus
        self._executor = ThreadPoolExecutor(max_workers=max(1, int(max_workers or 1)))

    def run(self, calls: Sequence[IndexerCall]) -> AggregateResult:
        calls = list(calls)
        for call in calls:
            self._validate(call)
        if not calls:
            return AggregateResult()

        futures = {self._executor.submit(self._safe_call, call): i for i, call in enumerate(calls)}
        outcomes: List[Optional[Tuple[List[RawRelease], Optional[str], bool]]] = [None] * len(calls)

        completed = 0
        for future in as_completed(futures):
            index = futures[future]
            outcomes[index] = future.result()
            completed += 1
            if self.event_bus is not None:
                self.event_bus.emit(Events.SEARCH_PROGRESS, {
                    "completed": completed,
                    "total": len(calls),
                    "call": calls[index].label,
                    "warning": outcomes[index][1] or "",
                })

        result = AggregateResult(attempted=len(calls))
        raws: List[RawRelease] = []
        unreachable = 0
        for call, (call_raws, warning, upstream_down) in zip(calls, outcomes):
            if warning:
                result.warnings[call.label] = warning
            else:
                result.succeeded += 1
            if upstream_down:
                unreachable += 1
            raws.extend(call_raws)

        if unreachable == len(calls):
            raise UpstreamUnavailableError(
                f"Indexer aggregator unreachable ({unreachable} of {len(calls)} calls failed to connect)."
            )

        result.releases = self.normalizer.normalize_many(raws)
        logger.info(
            "Aggregated %d releases from %d/%d calls",
            len(result.releases), result.succeeded, result.attempted,
        )
        return result

    def _validate(self, call: IndexerCall):
        has_text = bool((call.query or "").strip())
        if call.mode == TORZNAB_MODE and call.imdb_id:
            return
        if not has_text:
            raise QueryValidationError(f"Query text is empty for {call.label}.")

    def _safe_call(self, call: IndexerCall) -> Tuple[List[RawRelease], Optional[str], bool]:
        """
        Execute one call; never raises.
        Returns: raw releases, warning, upstream_unreachable
        """
        try:
            return list(self.indexer.search(call) or []), None, False
        except UpstreamUnavailableError as e:
            logger.warning("Indexer call %s could not connect: %s", call.label, e)
            return [], str(e), True
        except Exception as e:
            logger.warning("Indexer call %s failed: %s", call.label, e)
            return [], str(e) or type(e).__name__, False

    def shutdown(self):
        """Shutdown executor"""
        self._executor.shutdown(wait=False)
