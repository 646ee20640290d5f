"""
Search Orchestrator
Runs one search cycle per request: fan out to the aggregator, then filter,
dedup, rank, annotate and resolve the candidates
"""
from __future__ import annotations

from dataclasses import replace
from typing import Callable, FrozenSet, List, Optional, Sequence, Tuple
import logging

from ..models.query import SEARCH_KINDS, SearchQuery, SearchResponse
from ..models.release import NormalizedRelease, SeasonPackInfo
from ..sources.base import BaseIndexer, IndexerCall, TORZNAB_MODE
from .aggregator import AggregationEngine, build_query_variants
from .errors import ConfigurationError, QueryValidationError
from .event_bus import EventBus, Events
from .language import LanguageClassifier, allowed_languages_for
from .magnet_resolver import MagnetResolver
from .normalizer import ResultNormalizer
from .ranking import dedup, rank
from .series_matcher import build_series_matchers, matches_series
from .title_matcher import detect_season_pack, matches_episode


logger = logging.getLogger(__name__)

# imdb id ("tt1234567") -> (title, year) from the metadata provider
TitleLookup = Callable[[str], Optional[Tuple[str, Optional[str]]]]


def _ints(values) -> Tuple[int, ...]:
    out: List[int] = []
    for value in values or ():
        try:
            num = int(value)
        except (TypeError, ValueError):
            continue
        if num not in out:
            out.append(num)
    return tuple(out)


def _unique_indexers(releases: Sequence[NormalizedRelease]) -> List[str]:
    seen: List[str] = []
    for release in releases:
        if release.indexer and release.indexer not in seen:
            seen.append(release.indexer)
    return seen


class SearchOrchestrator:
    """Entry point for movie, TV and anime source searches"""

    def __init__(
        self,
        settings,
        client: BaseIndexer,
        resolver: Optional[MagnetResolver] = None,
        classifier: Optional[LanguageClassifier] = None,
        engine: Optional[AggregationEngine] = None,
        event_bus: Optional[EventBus] = None,
        title_lookup: Optional[TitleLookup] = None,
    ):
        self.settings = settings
        self.client = client
        self.event_bus = event_bus or EventBus()
        self.classifier = classifier or LanguageClassifier()
        self.resolver = resolver or MagnetResolver(settings, event_bus=self.event_bus)
        self.engine = engine or AggregationEngine(
            client,
            ResultNormalizer(client.aggregator_url),
            event_bus=self.event_bus,
            max_workers=int(settings.get("search_max_workers", 8) or 8),
        )
        self.title_lookup = title_lookup

    def search(self, query: SearchQuery) -> SearchResponse:
        if query.kind not in SEARCH_KINDS:
            raise QueryValidationError(f"Unknown search kind: {query.kind!r}")
        if not self.client.is_configured():
            raise ConfigurationError("Prowlarr configuration is missing.")

        self.event_bus.emit(Events.SEARCH_STARTED, {"kind": query.kind, "title": query.title})
        handler = {
            "movie": self._search_movie,
            "tv": self._search_tv,
            "anime": self._search_anime,
        }[query.kind]
        response = handler(query)
        logger.info(
            "%s search for %r: %d results from %d providers",
            query.kind, query.title or query.imdb_tt, response.total, len(response.providers),
        )
        self.event_bus.emit(Events.SEARCH_COMPLETED, {
            "kind": query.kind,
            "count": response.total,
            "warnings": dict(response.warnings),
        })
        return response

    def _search_movie(self, query: SearchQuery) -> SearchResponse:
        title = (query.title or "").strip() or None
        if not title and not query.imdb_id:
            raise QueryValidationError("Provide an IMDb id or a title (with optional year).")

        original_language = (query.original_language or "en").lower()
        echo = {
            "imdbId": query.imdb_tt,
            "title": title,
            "year": query.year,
            "origLang": original_language,
        }

        patterns = self.settings.get("movie_indexer_patterns", []) or []
        indexers = self.client.match_indexers(patterns)
        if not indexers:
            return SearchResponse(
                query=echo,
                providers=[],
                total=0,
                note="No movie indexers matched the configured indexer patterns.",
            )

        categories = _ints(self.settings.get("movie_categories", []))
        query_text = f"{title} {query.year}" if title and query.year else title
        calls: List[IndexerCall] = []
        for info in indexers:
            if query.imdb_id:
                calls.append(IndexerCall(
                    label=f"{info.name}:imdb",
                    mode=TORZNAB_MODE,
                    indexer_id=info.id,
                    indexer_name=info.name,
                    imdb_id=query.imdb_id,
                    categories=categories,
                ))
            if query_text:
                calls.append(IndexerCall(
                    label=f"{info.name}:query",
                    mode=TORZNAB_MODE,
                    indexer_id=info.id,
                    indexer_name=info.name,
                    query=query_text,
                    categories=categories,
                ))

        aggregate = self.engine.run(calls)
        allowed = allowed_languages_for("movie", original_language)
        results = rank(dedup(self._language_filter(aggregate.releases, allowed)))
        self.resolver.resolve_releases(results)

        return SearchResponse(
            query=echo,
            providers=[info.name for info in indexers],
            total=len(results),
            results=results,
            note=None if results else f'No torrents found for "{query_text or query.imdb_tt}"',
            warnings=aggregate.warnings,
        )

    def _search_tv(self, query: SearchQuery) -> SearchResponse:
        title = (query.title or "").strip() or None
        year = query.year
        if not title and query.imdb_id and self.title_lookup is not None:
            try:
                found = self.title_lookup(query.imdb_tt)
            except Exception as e:
                logger.warning("Title lookup for %s failed: %s", query.imdb_tt, e)
                found = None
            if found:
                title = (found[0] or "").strip() or None
                year = year or found[1]
        if not title:
            raise QueryValidationError("Provide a title (or an IMDb id that can be resolved to a title).")

        query_text = f"{title} {year}" if year else title
        call = IndexerCall(
            label="tvsearch",
            query=query_text,
            search_type="tvsearch",
            season=query.season,
            episode=query.episode,
            imdb_id=query.imdb_id,
            tvdb_id=query.tvdb_id,
            categories=_ints(self.settings.get("tv_categories", [])),
        )
        aggregate = self.engine.run([call])

        results = rank(dedup(aggregate.releases))
        if query.episode is not None:
            results = self._annotate_and_keep(results, query.season, query.episode, None)
        matchers = build_series_matchers([title, *query.aliases])
        results = [r for r in results if matches_series(r.title, matchers)]
        self.resolver.resolve_releases(results)

        echo = {
            "imdbId": query.imdb_tt,
            "title": title,
            "year": year,
            "season": query.season,
            "episode": query.episode,
            "tvdbId": query.tvdb_id,
            "aliases": list(query.aliases),
            "searchQuery": query_text,
        }
        return SearchResponse(
            query=echo,
            providers=_unique_indexers(results),
            total=len(results),
            results=results,
            note=None if results else f'No torrents found for "{query_text}"',
            warnings=aggregate.warnings,
        )

    def _search_anime(self, query: SearchQuery) -> SearchResponse:
        title = (query.title or "").strip()
        if not title:
            raise QueryValidationError("Provide a title for the anime search.")

        query = replace(
            query,
            season=query.season if query.season is not None else 1,
            absolute_episode=query.absolute_episode if query.absolute_episode is not None else query.episode,
        )
        original_language = (query.original_language or "ja").lower()
        variants = build_query_variants(title, query.aliases)
        categories = _ints(self.settings.get("anime_categories", []))
        limit = int(self.settings.get("prowlarr_anime_limit", 150) or 150)
        calls = [
            IndexerCall(
                label=f"{search_type}:{variant}",
                query=variant,
                search_type=search_type,
                tvdb_id=query.tvdb_id,
                categories=categories,
                limit=limit,
            )
            for variant in variants
            for search_type in ("search", "tvsearch")
        ]
        aggregate = self.engine.run(calls)

        allowed = allowed_languages_for("anime", original_language)
        results = rank(dedup(self._language_filter(aggregate.releases, allowed)))
        if query.wants_episode:
            results = self._annotate_and_keep(results, query.season, query.episode, query.absolute_episode)
        matchers = build_series_matchers([title, *query.aliases])
        results = [r for r in results if matches_series(r.title, matchers)]
        self.resolver.resolve_releases(results)

        echo = {
            "title": title,
            "tvdbId": query.tvdb_id,
            "season": query.season,
            "episode": query.episode,
            "absolute": query.absolute_episode,
            "origLang": original_language,
            "aliases": list(query.aliases),
            "searchQueries": variants,
        }
        return SearchResponse(
            query=echo,
            providers=_unique_indexers(results),
            total=len(results),
            results=results,
            note=None if results else f'No torrents found for "{", ".join(variants)}"',
            warnings=aggregate.warnings,
        )

    def _language_filter(
        self, releases: Sequence[NormalizedRelease], allowed: Optional[FrozenSet[str]]
    ) -> List[NormalizedRelease]:
        if allowed is None:
            return list(releases)
        return [r for r in releases if self.classifier.is_allowed(r.title, r.language_attr, allowed)]

    def _annotate_and_keep(
        self,
        releases: Sequence[NormalizedRelease],
        season: Optional[int],
        episode: Optional[int],
        absolute: Optional[int],
    ) -> List[NormalizedRelease]:
        """
        Flag each release as an episode match or season pack and keep only
        those that are one or the other. Pack detection only runs on
        releases that did not match the episode.
        """
        kept: List[NormalizedRelease] = []
        for release in releases:
            release.episode_match = matches_episode(release.title, season, episode, absolute)
            release.season_pack = None
            if not release.episode_match:
                detection = detect_season_pack(release.title, season)
                if detection.is_season_pack:
                    release.season_pack = SeasonPackInfo(
                        season=season,
                        reason=detection.reason,
                        keywords=list(detection.keywords),
                    )
            if release.episode_match or release.season_pack is not None:
                kept.append(release)
        return kept

    def shutdown(self):
        self.engine.shutdown()
