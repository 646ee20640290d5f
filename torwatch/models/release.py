"""
Release Model
Common release record shared by every stage after normalization
"""
from dataclasses import dataclass, field
from typing import List, Optional
import base64
import binascii
import re


BTIH_RX = re.compile(r"xt=urn:btih:([A-Za-z0-9]{32,40})", re.IGNORECASE)
HEX_HASH_RX = re.compile(r"^[A-Fa-f0-9]{40}$")
BASE32_HASH_RX = re.compile(r"^[A-Za-z2-7]{32}$")


def normalize_info_hash(value: Optional[str]) -> Optional[str]:
    """
    Canonical info-hash: 40 upper-case hex characters.
    A 32-char base32 hash is converted to hex; other tokens are upper-cased as-is.
    """
    text = str(value or "").strip()
    if not text:
        return None
    if HEX_HASH_RX.match(text):
        return text.upper()
    if BASE32_HASH_RX.match(text):
        try:
            return base64.b32decode(text.upper()).hex().upper()
        except (binascii.Error, ValueError):
            return text.upper()
    return text.upper()


def extract_info_hash(magnet: Optional[str]) -> Optional[str]:
    """Extract the btih token from a magnet link"""
    if not magnet:
        return None
    match = BTIH_RX.search(magnet)
    if not match:
        return None
    return normalize_info_hash(match.group(1))


def is_magnet(value: Optional[str]) -> bool:
    return bool(value) and str(value).lower().startswith("magnet:")


def is_http_url(value: Optional[str]) -> bool:
    return bool(value) and bool(re.match(r"^https?://", str(value), re.IGNORECASE))


@dataclass
class SeasonPackInfo:
    """Why a release was classified as a whole-season bundle"""
    season: Optional[int]
    reason: Optional[str]
    keywords: List[str] = field(default_factory=list)


@dataclass
class NormalizedRelease:
    """One indexer listing in the shape used by every downstream stage"""
    title: str
    indexer: str
    size: Optional[int] = None  # bytes
    seeders: Optional[int] = None
    leechers: Optional[int] = None
    publish_date: Optional[str] = None
    magnet_uri: Optional[str] = None
    torrent_url: Optional[str] = None
    download_url: Optional[str] = None
    info_hash: Optional[str] = None
    language_attr: Optional[str] = None
    # Match annotation, attached by the orchestrator.
    episode_match: Optional[bool] = None
    season_pack: Optional[SeasonPackInfo] = None

    def __post_init__(self):
        self.info_hash = normalize_info_hash(self.info_hash)

    @property
    def has_source(self) -> bool:
        return bool(self.magnet_uri or self.torrent_url or self.download_url or self.info_hash)

    @property
    def has_magnet(self) -> bool:
        return is_magnet(self.magnet_uri)


def dedup_key(release: NormalizedRelease) -> str:
    """Info-hash when known, else collapsed lower-case title plus indexer."""
    if release.info_hash:
        return release.info_hash
    title = re.sub(r"\s+", " ", (release.title or "").lower()).strip()
    return f"{title}|{release.indexer}"
