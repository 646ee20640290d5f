"""
Settings Manager
Defaults merged with an optional settings.json in the data directory and
environment overrides for the aggregator endpoint
"""
import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional
import threading


logger = logging.getLogger(__name__)


class SettingsManager:
    """Manages application settings with optional persistence"""

    ENV_OVERRIDES = {
        "PROWLARR_URL": "prowlarr_url",
        "PROWLARR_API_KEY": "prowlarr_api_key",
    }

    DEFAULT_SETTINGS = {
        # Aggregator
        "prowlarr_url": "",
        "prowlarr_api_key": "",
        "prowlarr_request_timeout_seconds": 12.0,
        "prowlarr_limit": 100,
        "prowlarr_anime_limit": 150,

        # Categories (Newznab ids)
        "movie_categories": [2000, 2040, 2045, 2050, 2080],
        "tv_categories": [5000, 5010, 5020, 5030, 5040, 5050, 5060, 5070, 5080],
        "anime_categories": [5070, 5080, 5000, 5010],

        # Indexers queried over Torznab for movie searches, matched against
        # the indexer's name and implementation (case-insensitive regex).
        "movie_indexer_patterns": [
            r"eztv",
            r"kickass",
            r"limetorrents",
            r"magnetdownload",
            r"nyaa",
            r"pirate\s*bay",
            r"subsplease",
            r"therarbg",
            r"torrentgalaxy",
            r"yts",
        ],

        # Search
        "search_max_workers": 8,

        # Magnet resolution
        "resolve_top_k": 10,
        "resolve_timeout_seconds": 8.0,
        "resolve_max_hops": 5,
        "public_trackers": [
            "udp://tracker.opentrackr.org:1337/announce",
            "udp://open.stealth.si:80/announce",
        ],

        # Logging
        "log_level": "INFO",
    }

    def __init__(self, data_dir: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        env = os.environ if environ is None else environ
        data_dir = str(data_dir or env.get("TORWATCH_DATA_DIR", "") or "").strip()
        self.settings_dir = Path(data_dir).expanduser() if data_dir else (Path.home() / ".torwatch")
        self.settings_file = self.settings_dir / "settings.json"

        self._lock = threading.RLock()
        self._settings: Dict[str, Any] = {}
        self._load(env)

    def _load(self, env):
        """Load settings from file, then apply environment overrides"""
        with self._lock:
            self._settings = copy.deepcopy(self.DEFAULT_SETTINGS)
            if self.settings_file.exists():
                try:
                    with open(self.settings_file, "r") as f:
                        loaded = json.load(f)
                except (OSError, ValueError) as e:
                    logger.warning("Error loading settings from %s: %s", self.settings_file, e)
                    loaded = {}
                if isinstance(loaded, dict):
                    self._settings.update(loaded)

            for env_name, key in self.ENV_OVERRIDES.items():
                value = str(env.get(env_name, "") or "").strip()
                if value:
                    self._settings[key] = value

    def save(self):
        """Persist current settings to settings.json"""
        with self._lock:
            self.settings_dir.mkdir(parents=True, exist_ok=True)
            with open(self.settings_file, "w") as f:
                json.dump(self._settings, f, indent=2)

    def get(self, key: str, default=None) -> Any:
        with self._lock:
            return self._settings.get(key, default)

    def set(self, key: str, value: Any):
        with self._lock:
            self._settings[str(key)] = value

    def update(self, settings_dict: Dict[str, Any]):
        """Update multiple settings at once"""
        with self._lock:
            self._settings.update(dict(settings_dict or {}))
