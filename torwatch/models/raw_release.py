"""
Raw indexer records.

Aggregators answer in two shapes: the native JSON search API and Torznab RSS
feeds. Each shape gets its own wrapper so the normalizer can dispatch on type
instead of probing dict keys throughout the pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Union
import xml.etree.ElementTree as ET


@dataclass(frozen=True)
class JsonRelease:
    """One row of the aggregator's native `/api/v1/search` response."""

    indexer: str
    row: Dict[str, Any]


@dataclass(frozen=True)
class TorznabItem:
    """One `<item>` element of a Torznab feed, tagged with its indexer."""

    indexer: str
    element: ET.Element


RawRelease = Union[JsonRelease, TorznabItem]
