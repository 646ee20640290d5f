"""FastAPI app exposing the torrent source search to web clients."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..core.errors import QueryValidationError, TorwatchError
from ..core.title_matcher import TorrentFile, pick_file_index_for_episode
from ..models.query import SearchQuery, SearchResponse, clean_imdb_id
from ..models.release import NormalizedRelease, is_magnet
from .runtime import TorwatchRuntime, build_runtime


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _aliases(values: Optional[List[str]]) -> tuple:
    return tuple(v.strip() for v in (values or []) if v and v.strip())


def _number(value: Optional[int]) -> Optional[int]:
    """0 means "not given" for season and episode numbers."""
    return value or None


def release_to_payload(release: NormalizedRelease) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "title": release.title,
        "indexer": release.indexer,
        "size": release.size,
        "seeders": release.seeders,
        "leechers": release.leechers,
        "publishDate": release.publish_date,
        "magnetUri": release.magnet_uri,
        "torrentUrl": release.torrent_url,
        "downloadUrl": release.download_url,
        "infoHash": release.info_hash,
        "languageAttr": release.language_attr,
    }
    if release.episode_match is not None:
        payload["episodeMatch"] = release.episode_match
    if release.season_pack is not None:
        payload["seasonPack"] = {
            "season": release.season_pack.season,
            "reason": release.season_pack.reason,
            "keywords": list(release.season_pack.keywords),
        }
    return payload


def response_to_payload(response: SearchResponse) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "query": response.query,
        "providers": [{"name": name} for name in response.providers],
        "total": response.total,
        "results": [release_to_payload(r) for r in response.results],
    }
    if response.note:
        payload["note"] = response.note
    if response.warnings:
        payload["warnings"] = response.warnings
    return payload


class SourceRequest(BaseModel):
    magnetUri: Optional[str] = None
    torrentUrl: Optional[str] = None
    downloadUrl: Optional[str] = None
    infoHash: Optional[str] = None


class FileEntry(BaseModel):
    index: int
    name: str
    length: Optional[int] = None


class EpisodeSourceRequest(SourceRequest):
    season: Optional[int] = None
    episode: Optional[int] = None
    absolute: Optional[int] = None
    files: List[FileEntry] = []


def create_app(runtime: Optional[TorwatchRuntime] = None) -> FastAPI:
    runtime = runtime or build_runtime()

    app = FastAPI(title="torwatch API", version="1.0.0")

    @app.exception_handler(TorwatchError)
    async def torwatch_error_handler(request: Request, exc: TorwatchError):
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @app.get("/health")
    def health() -> Dict:
        return {
            "ok": True,
            "time": _utc_now_iso(),
            "prowlarrConfigured": runtime.client.is_configured(),
            "indexer": runtime.client.healthcheck(),
        }

    @app.get("/api/torrents/movie")
    def search_movie(
        imdbId: str = Query(""),
        title: str = Query(""),
        year: str = Query(""),
        origLang: str = Query("en"),
    ) -> Dict:
        query = SearchQuery(
            kind="movie",
            title=title.strip() or None,
            year=year.strip() or None,
            imdb_id=clean_imdb_id(imdbId),
            original_language=origLang.strip().lower() or "en",
        )
        return response_to_payload(runtime.orchestrator.search(query))

    @app.get("/api/torrents/tv")
    def search_tv(
        imdbId: str = Query(""),
        title: str = Query(""),
        year: str = Query(""),
        season: Optional[int] = Query(None, ge=0),
        episode: Optional[int] = Query(None, ge=0),
        tvdbId: Optional[int] = Query(None),
        alias: Optional[List[str]] = Query(None),
    ) -> Dict:
        query = SearchQuery(
            kind="tv",
            title=title.strip() or None,
            aliases=_aliases(alias),
            year=year.strip() or None,
            season=_number(season),
            episode=_number(episode),
            imdb_id=clean_imdb_id(imdbId),
            tvdb_id=tvdbId,
        )
        return response_to_payload(runtime.orchestrator.search(query))

    @app.get("/api/torrents/anime")
    def search_anime(
        title: str = Query(""),
        season: Optional[int] = Query(None, ge=0),
        episode: Optional[int] = Query(None, ge=0),
        absolute: Optional[int] = Query(None, ge=0),
        origLang: str = Query("ja"),
        tvdbId: Optional[int] = Query(None),
        alias: Optional[List[str]] = Query(None),
    ) -> Dict:
        query = SearchQuery(
            kind="anime",
            title=title.strip() or None,
            aliases=_aliases(alias),
            season=_number(season),
            episode=_number(episode),
            absolute_episode=_number(absolute),
            original_language=origLang.strip().lower() or "ja",
            tvdb_id=tvdbId,
        )
        return response_to_payload(runtime.orchestrator.search(query))

    def _normalized_source(body: SourceRequest) -> Optional[str]:
        return runtime.resolver.normalize_source(
            magnet=body.magnetUri,
            src=body.torrentUrl or body.downloadUrl,
            info_hash=body.infoHash,
        )

    @app.post("/api/torrents/source")
    def normalize_source(body: SourceRequest):
        source = _normalized_source(body)
        if not source:
            return JSONResponse({"error": "Unable to determine torrent source"}, status_code=400)
        return {"source": source, "kind": "magnet" if is_magnet(source) else "url"}

    @app.post("/api/torrents/resolve")
    def resolve_episode_source(body: EpisodeSourceRequest):
        season, episode, absolute = _number(body.season), _number(body.episode), _number(body.absolute)
        if episode is None and absolute is None:
            raise QueryValidationError("episode or absolute number is required")

        source = _normalized_source(body)
        if not source:
            return JSONResponse({"error": "Unable to determine torrent source"}, status_code=400)
        payload: Dict[str, Any] = {"source": source, "kind": "magnet" if is_magnet(source) else "url"}

        files = [TorrentFile(f.index, f.name, f.length) for f in body.files if f.index >= 0 and f.name]
        if body.files:
            pick = pick_file_index_for_episode(files, season, episode, absolute)
            if pick is None:
                return JSONResponse({"error": "No matching file for requested episode"}, status_code=404)
            payload.update({
                "fileIndex": pick.index,
                "fileName": pick.name,
                "fileLength": pick.length,
                "matched": pick.matched,
                "score": pick.score,
            })
        return payload

    return app


app = create_app()
