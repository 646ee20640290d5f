from .base import BaseIndexer, IndexerCall, IndexerInfo, NATIVE_MODE, TORZNAB_MODE
from .prowlarr import ProwlarrClient

__all__ = [
    "BaseIndexer",
    "IndexerCall",
    "IndexerInfo",
    "NATIVE_MODE",
    "TORZNAB_MODE",
    "ProwlarrClient",
]
