"""
Prowlarr Client

Talks to a Prowlarr instance (indexer manager): the native JSON search API,
per-indexer Torznab feeds and the indexer listing.

Notes:
- Requires a base URL and API key; `is_configured()` says whether both are set.
- Every method raises instead of swallowing: the aggregation engine decides
  what a failed call means for the search.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
import logging

import requests

from .base import BaseIndexer, IndexerCall, IndexerInfo
from ..core.errors import IndexerRequestError, MalformedResponseError, UpstreamUnavailableError
from ..core.normalizer import split_torznab_feed
from ..models.raw_release import JsonRelease, RawRelease


logger = logging.getLogger(__name__)

SECRET_PARAMS = ("apikey",)


def mask_params(params: List[Tuple[str, Any]]) -> List[Tuple[str, Any]]:
    """Copy of `params` safe to log: the API key is replaced."""
    return [(k, "***" if k.lower() in SECRET_PARAMS else v) for k, v in params]


class ProwlarrClient(BaseIndexer):
    name = "Prowlarr"

    def __init__(self, settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.last_error = ""
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "User-Agent": "torwatch/1.0 (ProwlarrClient)",
                "Accept": "application/json,text/xml,*/*",
            }
        )
        self._base_url = ""
        self._api_key = ""
        self._timeout_seconds = 12.0
        self._limit = 100
        self.reload_from_settings()

    def reload_from_settings(self) -> None:
        self._base_url = str(self.settings.get("prowlarr_url", "") or "").strip().rstrip("/")
        self._api_key = str(self.settings.get("prowlarr_api_key", "") or "").strip()
        self._timeout_seconds = float(self.settings.get("prowlarr_request_timeout_seconds", 12.0) or 12.0)
        self._limit = int(self.settings.get("prowlarr_limit", 100) or 100)

    @property
    def aggregator_url(self) -> Optional[str]:
        return self._base_url or None

    def is_configured(self) -> bool:
        return bool(self._base_url and self._api_key)

    def search_native(self, call: IndexerCall) -> List[RawRelease]:
        params: List[Tuple[str, Any]] = [
            ("query", (call.query or "").strip()),
            ("type", call.search_type or "search"),
        ]
        if call.season is not None:
            params.append(("season", call.season))
        if call.episode is not None:
            params.append(("episode", call.episode))
        if call.imdb_id:
            params.append(("imdbId", f"tt{call.imdb_id}"))
        if call.tvdb_id is not None:
            params.append(("tvdbId", call.tvdb_id))
        for cat in call.categories:
            params.append(("categories", cat))
        params.append(("limit", call.limit or self._limit))

        resp = self._get(f"{self._base_url}/api/v1/search", params, headers={"X-Api-Key": self._api_key})
        try:
            payload = resp.json()
        except ValueError as exc:
            raise MalformedResponseError(f"{call.label}: response is not JSON") from exc
        if not isinstance(payload, list):
            raise MalformedResponseError(f"{call.label}: expected a JSON list of releases")

        out: List[RawRelease] = []
        for row in payload:
            if not isinstance(row, dict):
                continue
            if str(row.get("protocol") or "torrent").lower() != "torrent":
                continue
            indexer = str(row.get("indexer") or row.get("indexerName") or "").strip() or self.name
            out.append(JsonRelease(indexer=indexer, row=row))
        logger.debug("%s: %d torrent rows", call.label, len(out))
        return out

    def search_torznab(self, call: IndexerCall) -> List[RawRelease]:
        if call.indexer_id is None:
            raise ValueError("Torznab calls need an indexer id")
        params: List[Tuple[str, Any]] = [("t", "movie")]
        if call.imdb_id:
            params.append(("imdbid", f"tt{call.imdb_id}"))
        else:
            params.append(("q", (call.query or "").strip()))
        params.append(("cat", ",".join(str(c) for c in call.categories)))
        params.append(("limit", call.limit or self._limit))
        params.append(("apikey", self._api_key))

        resp = self._get(f"{self._base_url}/{call.indexer_id}/api", params)
        return split_torznab_feed(resp.text or "", call.indexer_name or str(call.indexer_id))

    def list_indexers(self) -> List[IndexerInfo]:
        resp = self._get(f"{self._base_url}/api/v1/indexer", [("apikey", self._api_key)])
        try:
            payload = resp.json()
        except ValueError as exc:
            raise MalformedResponseError("indexer list is not JSON") from exc
        if not isinstance(payload, list):
            raise MalformedResponseError("indexer list is not a JSON list")

        out: List[IndexerInfo] = []
        for row in payload:
            if not isinstance(row, dict):
                continue
            try:
                indexer_id = int(row.get("id"))
            except (TypeError, ValueError):
                continue
            out.append(
                IndexerInfo(
                    id=indexer_id,
                    name=str(row.get("name") or "").strip(),
                    implementation=str(row.get("implementationName") or row.get("implementation") or "").strip(),
                    enabled=bool(row.get("enable", True)),
                    extra={"protocol": row.get("protocol")},
                )
            )
        return out

    def _get(self, url: str, params: List[Tuple[str, Any]], headers: Optional[Dict[str, str]] = None) -> requests.Response:
        self.last_error = ""
        try:
            resp = self.session.get(
                url,
                params=params,
                headers=headers,
                timeout=max(2.0, self._timeout_seconds),
            )
        except requests.ConnectionError as exc:
            self.last_error = f"Prowlarr unreachable: {exc}"
            raise UpstreamUnavailableError(self.last_error) from exc
        except requests.Timeout as exc:
            self.last_error = f"Prowlarr request timed out: {exc}"
            raise IndexerRequestError(self.last_error) from exc
        except requests.RequestException as exc:
            self.last_error = f"Prowlarr request failed: {exc}"
            raise IndexerRequestError(self.last_error) from exc

        logger.debug("GET %s %s -> %s", url, mask_params(params), resp.status_code)
        if resp.status_code == 401:
            self.last_error = "Prowlarr auth failed (401). Check your API key."
            raise IndexerRequestError(self.last_error, status=401)
        if not 200 <= resp.status_code < 300:
            self.last_error = f"Prowlarr returned HTTP {resp.status_code}"
            raise IndexerRequestError(self.last_error, status=resp.status_code)
        return resp
