"""
Magnet Resolver
Chases aggregator download links down to magnet URIs, or synthesizes one
from a known info-hash
"""
from __future__ import annotations

from typing import List, Optional, Sequence
from urllib.parse import quote, urljoin, urlparse
import logging
import re
import time

import requests
from bs4 import BeautifulSoup

from ..models.release import NormalizedRelease, extract_info_hash, is_http_url, is_magnet, normalize_info_hash
from .event_bus import EventBus, Events


logger = logging.getLogger(__name__)

MAGNET_RX = re.compile(r"magnet:\?xt=urn:btih:[A-Za-z0-9]{32,40}[^\"' \r\n<]*", re.IGNORECASE)
SCANNABLE_CONTENT_RX = re.compile(r"text/html|application/json", re.IGNORECASE)
MAX_SCAN_BYTES = 1024 * 1024
SCAN_CHUNK_BYTES = 64 * 1024
# encodeURIComponent leaves these unescaped
URI_COMPONENT_SAFE = "-_.!~*'()"

DEFAULT_TRACKERS = (
    "udp://tracker.opentrackr.org:1337/announce",
    "udp://open.stealth.si:80/announce",
)


def is_download_endpoint(url: Optional[str]) -> bool:
    """True for an aggregator `/download` proxy link."""
    if not is_http_url(url):
        return False
    try:
        path = urlparse(url).path or ""
    except ValueError:
        return False
    return bool(re.search(r"/download\b", path, re.IGNORECASE))


class MagnetResolver:
    """Turns HTTP download links and bare info-hashes into magnet URIs"""

    def __init__(self, settings, session: Optional[requests.Session] = None, event_bus: Optional[EventBus] = None):
        self.settings = settings
        self.event_bus = event_bus
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "torwatch/1.0 (MagnetResolver)"})
        self.timeout_seconds = 8.0
        self.max_hops = 5
        self.top_k = 10
        self.trackers: List[str] = list(DEFAULT_TRACKERS)
        self.reload_from_settings()

    def reload_from_settings(self) -> None:
        self.timeout_seconds = float(self.settings.get("resolve_timeout_seconds", 8.0) or 8.0)
        self.max_hops = int(self.settings.get("resolve_max_hops", 5) or 5)
        self.top_k = int(self.settings.get("resolve_top_k", 10) or 10)
        trackers = self.settings.get("public_trackers", None)
        if isinstance(trackers, (list, tuple)):
            self.trackers = [str(t).strip() for t in trackers if str(t or "").strip()]

    def resolve_download(self, url: str) -> Optional[str]:
        """
        Follow `url` by hand until a magnet shows up.

        A magnet in `Location` wins immediately; other 3xx targets are followed
        up to `max_hops`. An HTML or JSON body is scanned for a magnet link.
        The whole chain shares one timeout.
        """
        if is_magnet(url):
            return url
        if not is_http_url(url):
            return None

        deadline = time.monotonic() + self.timeout_seconds
        current = url
        for _ in range(max(1, self.max_hops)):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.debug("Resolve of %s ran out of time", url)
                return None
            try:
                resp = self.session.get(current, allow_redirects=False, timeout=remaining, stream=True)
            except requests.RequestException as exc:
                logger.debug("Resolve request to %s failed: %s", current, exc)
                return None

            try:
                location = (resp.headers.get("location") or "").strip()
                if is_magnet(location):
                    return location
                if location:
                    try:
                        target = urljoin(current, location)
                    except ValueError as exc:
                        logger.debug("Unusable redirect from %s: %s", current, exc)
                        return None
                    if is_magnet(target):
                        return target
                    if 300 <= resp.status_code < 400:
                        current = target
                        continue

                content_type = resp.headers.get("content-type") or ""
                if SCANNABLE_CONTENT_RX.search(content_type):
                    return self.scan_body(self._read_body(resp, deadline), content_type)
                return None
            finally:
                resp.close()
        logger.debug("Resolve of %s exceeded %d hops", url, self.max_hops)
        return None

    def _read_body(self, resp, deadline: float) -> str:
        """At most MAX_SCAN_BYTES of the body, stopping early when the deadline passes."""
        chunks: List[bytes] = []
        size = 0
        try:
            for chunk in resp.iter_content(chunk_size=SCAN_CHUNK_BYTES):
                if not chunk:
                    continue
                chunks.append(chunk)
                size += len(chunk)
                if size >= MAX_SCAN_BYTES or time.monotonic() >= deadline:
                    break
        except requests.RequestException as exc:
            logger.debug("Reading body from %s failed: %s", getattr(resp, "url", ""), exc)
        body = b"".join(chunks)[:MAX_SCAN_BYTES]
        try:
            return body.decode(resp.encoding or "utf-8", errors="replace")
        except LookupError:
            return body.decode("utf-8", errors="replace")

    def scan_body(self, body: str, content_type: str = "text/html") -> Optional[str]:
        """First magnet anchor in an HTML page, else the first magnet-looking token."""
        if "html" in content_type.lower():
            soup = BeautifulSoup(body, "html.parser")
            for node in soup.find_all("a", href=True):
                href = (node.get("href") or "").strip()
                if MAGNET_RX.match(href):
                    return href
        match = MAGNET_RX.search(body)
        return match.group(0) if match else None

    def magnet_from_hash(self, info_hash: Optional[str], title: Optional[str] = None) -> Optional[str]:
        canonical = normalize_info_hash(info_hash)
        if not canonical:
            return None
        dn = f"&dn={quote(title, safe=URI_COMPONENT_SAFE)}" if title else ""
        trackers = "".join(f"&tr={quote(t, safe=URI_COMPONENT_SAFE)}" for t in self.trackers)
        return f"magnet:?xt=urn:btih:{canonical}{dn}{trackers}"

    def resolve_releases(self, releases: Sequence[NormalizedRelease], top_k: Optional[int] = None) -> int:
        """
        Give the first `top_k` releases a magnet where possible, in place.
        Returns how many were resolved.
        """
        limit = self.top_k if top_k is None else max(0, int(top_k))
        resolved = 0
        for release in list(releases)[:limit]:
            if release.has_magnet:
                continue
            magnet = None
            how = None
            for candidate, label in ((release.download_url, "download"), (release.torrent_url, "torrent")):
                if not is_http_url(candidate):
                    continue
                try:
                    magnet = self.resolve_download(candidate)
                except Exception as e:
                    logger.debug("Resolving %s link for %r failed: %s", label, release.title, e)
                    magnet = None
                if magnet:
                    how = label
                    break
                logger.debug("No magnet behind %s link for %r", label, release.title)
            if not magnet and release.info_hash:
                magnet = self.magnet_from_hash(release.info_hash, release.title)
                how = "hash"
            if not magnet:
                continue

            release.magnet_uri = magnet
            if not release.info_hash:
                release.info_hash = extract_info_hash(magnet)
            resolved += 1
            if self.event_bus is not None:
                self.event_bus.emit(Events.MAGNET_RESOLVED, {"title": release.title, "via": how})
        return resolved

    def _resolve_single_hop(self, url: str) -> Optional[str]:
        try:
            resp = self.session.get(url, allow_redirects=False, timeout=self.timeout_seconds, stream=True)
        except requests.RequestException as exc:
            logger.debug("Download link %s failed: %s", url, exc)
            return None
        try:
            location = (resp.headers.get("location") or "").strip()
            return location if is_magnet(location) else None
        finally:
            resp.close()

    def normalize_source(
        self,
        magnet: Optional[str] = None,
        src: Optional[str] = None,
        info_hash: Optional[str] = None,
    ) -> Optional[str]:
        """
        Single playable source for the streaming service: magnet, else the
        HTTP/.torrent source, else a bare magnet built from the info-hash.
        Aggregator `/download` links are swapped for the magnet they redirect to.
        """
        magnet = (magnet or "").strip() or None
        src = (src or "").strip() or None
        if is_download_endpoint(magnet):
            magnet = self._resolve_single_hop(magnet) or magnet
        if is_download_endpoint(src):
            src = self._resolve_single_hop(src) or src

        if magnet:
            return magnet
        if src:
            return src
        canonical = normalize_info_hash(info_hash)
        if canonical:
            return f"magnet:?xt=urn:btih:{canonical}"
        return None
