"""
Result Normalizer
Turns native aggregator JSON rows and Torznab feed items into NormalizedRelease
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse
import logging
import re
import xml.etree.ElementTree as ET

from ..models.raw_release import JsonRelease, RawRelease, TorznabItem
from ..models.release import NormalizedRelease, extract_info_hash, is_http_url, is_magnet
from .errors import MalformedResponseError


logger = logging.getLogger(__name__)

MAGNET_ENCLOSURE_TYPE = "x-scheme-handler/magnet"
TORRENT_ENCLOSURE_TYPE = "application/x-bittorrent"
LANGUAGE_ATTR_NAMES = ("language", "lang", "audio")


def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError):
        return None


def _text(value: Any) -> Optional[str]:
    text = str(value or "").strip()
    return text or None


def _local_name(tag: str) -> str:
    """'{http://torznab.com/schemas/2015/feed}attr' -> 'attr'"""
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag.split(":")[-1]


def is_aggregator_download_url(url: Optional[str], aggregator_url: Optional[str]) -> bool:
    """True for the aggregator's own `/download` proxy endpoint."""
    if not url or not aggregator_url:
        return False
    try:
        target = urlparse(urljoin(aggregator_url, url))
        origin = urlparse(aggregator_url)
    except ValueError:
        return False
    same_origin = (target.scheme, target.netloc) == (origin.scheme, origin.netloc)
    return same_origin and bool(re.search(r"/download\b", target.path or "", re.IGNORECASE))


def split_torznab_feed(xml_text: str, indexer: str) -> List[RawRelease]:
    """Split a Torznab feed into raw items; a broken document is a per-call failure."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise MalformedResponseError(f"{indexer}: invalid Torznab XML ({exc})") from exc
    if _local_name(root.tag) == "error":
        code = root.get("code", "")
        description = root.get("description", "")
        raise MalformedResponseError(f"{indexer}: Torznab error {code} {description}".strip())
    return [TorznabItem(indexer=indexer, element=el) for el in root.iter() if _local_name(el.tag) == "item"]


class ResultNormalizer:
    """One entry point for both raw shapes"""

    def __init__(self, aggregator_url: Optional[str] = None):
        self.aggregator_url = (aggregator_url or "").rstrip("/") or None

    def normalize(self, raw: RawRelease) -> Optional[NormalizedRelease]:
        if isinstance(raw, JsonRelease):
            return self.normalize_json_release(raw.row, raw.indexer)
        if isinstance(raw, TorznabItem):
            return self.normalize_torznab_item(raw.element, raw.indexer)
        raise TypeError(f"Unsupported raw release type: {type(raw)}")

    def normalize_many(self, raws: List[RawRelease]) -> List[NormalizedRelease]:
        out: List[NormalizedRelease] = []
        for raw in raws:
            release = self.normalize(raw)
            if release is not None:
                out.append(release)
        return out

    def normalize_json_release(self, row: Dict[str, Any], indexer: str = "") -> Optional[NormalizedRelease]:
        if not isinstance(row, dict):
            return None
        protocol = str(row.get("protocol") or "torrent").lower()
        if protocol != "torrent":
            return None
        title = _text(row.get("title") or row.get("releaseTitle"))
        if not title:
            return None

        magnet = _text(row.get("magnetUrl"))
        raw_download = _text(row.get("downloadUrl"))
        download_url = raw_download if is_aggregator_download_url(raw_download, self.aggregator_url) else None
        if magnet and not is_magnet(magnet):
            # Proxied magnet links are HTTP redirects; resolve them like downloads.
            if download_url is None and is_http_url(magnet):
                download_url = magnet
            magnet = None
        torrent_url = raw_download if raw_download and raw_download.lower().endswith(".torrent") else None
        info_hash = _text(row.get("infoHash")) or extract_info_hash(magnet)

        languages = row.get("languages") or []
        names = [str(lang.get("name") or "").strip() for lang in languages if isinstance(lang, dict)]
        language_attr = ", ".join(n for n in names if n) or None

        release = NormalizedRelease(
            title=title,
            indexer=_text(row.get("indexer")) or indexer,
            size=_to_int(row.get("size")),
            seeders=_to_int(row.get("seeders")),
            leechers=_to_int(row.get("leechers")),
            publish_date=_text(row.get("publishDate")),
            magnet_uri=magnet,
            torrent_url=torrent_url,
            download_url=download_url,
            info_hash=info_hash,
            language_attr=language_attr,
        )
        return release if release.has_source else None

    def normalize_torznab_item(self, item: ET.Element, indexer: str) -> Optional[NormalizedRelease]:
        fields: Dict[str, Optional[str]] = {}
        attrs: Dict[str, str] = {}
        enclosure_url = enclosure_type = None
        for child in item:
            name = _local_name(child.tag).lower()
            if name == "attr":
                attr_name = (child.get("name") or "").strip().lower()
                if attr_name and attr_name not in attrs:
                    attrs[attr_name] = (child.get("value") or "").strip()
            elif name == "enclosure":
                enclosure_url = _text(child.get("url"))
                enclosure_type = (child.get("type") or "").strip().lower()
            else:
                fields.setdefault(name, _text(child.text))

        title = fields.get("title")
        if not title:
            return None
        guid = fields.get("guid")
        link = fields.get("link")

        magnet = None
        if enclosure_url and MAGNET_ENCLOSURE_TYPE in (enclosure_type or ""):
            magnet = enclosure_url
        elif is_magnet(guid):
            magnet = guid
        elif is_magnet(link):
            magnet = link

        torrent_url = None
        if enclosure_url and (enclosure_type or "").startswith(TORRENT_ENCLOSURE_TYPE):
            torrent_url = enclosure_url
        elif link and link.lower().endswith(".torrent"):
            torrent_url = link

        seeders = _to_int(attrs.get("seeders"))
        peers = _to_int(attrs.get("peers"))
        if seeders is not None and peers is not None:
            leechers = max(peers - seeders, 0)
        else:
            leechers = _to_int(attrs.get("leechers"))

        language_attr = next((attrs[k] for k in LANGUAGE_ATTR_NAMES if attrs.get(k)), None)

        release = NormalizedRelease(
            title=title,
            indexer=indexer,
            size=_to_int(fields.get("size")) or _to_int(attrs.get("size")),
            seeders=seeders,
            leechers=leechers,
            publish_date=fields.get("pubdate"),
            magnet_uri=magnet,
            torrent_url=torrent_url,
            info_hash=_text(attrs.get("infohash")) or extract_info_hash(magnet),
            language_attr=language_attr,
        )
        return release if release.has_source else None

    def parse_torznab(self, xml_text: str, indexer: str) -> List[NormalizedRelease]:
        items = split_torznab_feed(xml_text, indexer)
        releases = self.normalize_many(items)
        logger.debug("Torznab feed from %s: %d items, %d usable", indexer, len(items), len(releases))
        return releases
