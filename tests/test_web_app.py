import tempfile
import unittest
from unittest.mock import Mock

from torwatch.core.event_bus import EventBus
from torwatch.core.magnet_resolver import MagnetResolver
from torwatch.core.orchestrator import SearchOrchestrator
from torwatch.core.settings_manager import SettingsManager
from torwatch.models.raw_release import JsonRelease
from torwatch.sources.base import BaseIndexer

try:
    from fastapi.testclient import TestClient
    from torwatch.web.app import create_app
    from torwatch.web.runtime import TorwatchRuntime
    HAS_WEB_DEPS = True
except Exception:
    HAS_WEB_DEPS = False


HASH = "A" * 40


class _StaticIndexer(BaseIndexer):
    name = "Static"

    def __init__(self, rows, configured=True):
        self.rows = rows
        self.configured = configured

    def is_configured(self):
        return self.configured

    def search_native(self, call):
        return list(self.rows)

    def search_torznab(self, call):
        return list(self.rows)

    def list_indexers(self):
        return []


@unittest.skipUnless(HAS_WEB_DEPS, "fastapi/httpx not installed")
class TestWebApp(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.settings = SettingsManager(data_dir=self._tmp.name, environ={})
        self.session = Mock()
        self.runtimes = []

    def tearDown(self):
        for runtime in self.runtimes:
            runtime.orchestrator.shutdown()
        self._tmp.cleanup()

    def _client(self, indexer):
        bus = EventBus()
        resolver = MagnetResolver(self.settings, session=self.session, event_bus=bus)
        runtime = TorwatchRuntime(
            settings=self.settings,
            event_bus=bus,
            client=indexer,
            resolver=resolver,
            orchestrator=SearchOrchestrator(self.settings, indexer, resolver=resolver, event_bus=bus),
        )
        self.runtimes.append(runtime)
        return TestClient(create_app(runtime))

    def test_health(self):
        resp = self._client(_StaticIndexer([], configured=False)).get("/health")
        self.assertEqual(resp.status_code, 200)
        payload = resp.json()
        self.assertTrue(payload["ok"])
        self.assertFalse(payload["prowlarrConfigured"])
        self.assertEqual(payload["indexer"]["name"], "Static")
        self.assertTrue(payload["indexer"]["ok"])

    def test_tv_search_payload(self):
        rows = [JsonRelease(indexer="EZTV", row={
            "title": "Example.Show.S01E03.1080p",
            "indexer": "EZTV",
            "seeders": 50,
            "protocol": "torrent",
            "magnetUrl": f"magnet:?xt=urn:btih:{HASH}",
        })]
        resp = self._client(_StaticIndexer(rows)).get(
            "/api/torrents/tv",
            params={"title": "Example Show", "season": 1, "episode": 3, "imdbId": "tt0944947"},
        )
        self.assertEqual(resp.status_code, 200)
        payload = resp.json()
        self.assertEqual(payload["total"], 1)
        self.assertEqual(payload["providers"], [{"name": "EZTV"}])
        self.assertEqual(payload["query"]["imdbId"], "tt0944947")
        result = payload["results"][0]
        self.assertEqual(result["infoHash"], HASH)
        self.assertTrue(result["episodeMatch"])
        self.assertNotIn("seasonPack", result)
        self.assertNotIn("note", payload)

    def test_configuration_error(self):
        resp = self._client(_StaticIndexer([], configured=False)).get("/api/torrents/tv", params={"title": "x"})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Prowlarr configuration is missing."})

    def test_missing_title(self):
        resp = self._client(_StaticIndexer([])).get("/api/torrents/anime")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("title", resp.json()["error"])

    def test_source_from_info_hash(self):
        resp = self._client(_StaticIndexer([])).post("/api/torrents/source", json={"infoHash": HASH.lower()})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"source": f"magnet:?xt=urn:btih:{HASH}", "kind": "magnet"})

    def test_zero_episode_means_not_given(self):
        rows = [JsonRelease(indexer="EZTV", row={
            "title": "Example.Show.S01E03.1080p",
            "indexer": "EZTV",
            "protocol": "torrent",
            "magnetUrl": f"magnet:?xt=urn:btih:{HASH}",
        })]
        resp = self._client(_StaticIndexer(rows)).get(
            "/api/torrents/tv",
            params={"title": "Example Show", "season": 0, "episode": 0},
        )
        self.assertEqual(resp.status_code, 200)
        payload = resp.json()
        self.assertEqual(payload["total"], 1)
        self.assertIsNone(payload["query"]["episode"])
        self.assertNotIn("episodeMatch", payload["results"][0])

    def test_resolve_requires_episode_or_absolute(self):
        resp = self._client(_StaticIndexer([])).post(
            "/api/torrents/resolve",
            json={"downloadUrl": "http://prowlarr.local/1/download?link=x", "episode": 0},
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "episode or absolute number is required"})
        self.session.get.assert_not_called()

    def test_resolve_picks_episode_file(self):
        resp = self._client(_StaticIndexer([])).post("/api/torrents/resolve", json={
            "infoHash": HASH,
            "season": 1,
            "episode": 2,
            "files": [
                {"index": 0, "name": "Show.S01E01.1080p.mkv", "length": 900000000},
                {"index": 1, "name": "Show.S01E02.1080p.mkv", "length": 800000000},
                {"index": -1, "name": "broken.mkv"},
            ],
        })
        self.assertEqual(resp.status_code, 200)
        payload = resp.json()
        self.assertEqual(payload["source"], f"magnet:?xt=urn:btih:{HASH}")
        self.assertEqual(payload["fileIndex"], 1)
        self.assertEqual(payload["fileName"], "Show.S01E02.1080p.mkv")
        self.assertTrue(payload["matched"])

    def test_resolve_with_only_unusable_files(self):
        resp = self._client(_StaticIndexer([])).post("/api/torrents/resolve", json={
            "infoHash": HASH,
            "absolute": 13,
            "files": [{"index": -1, "name": "broken.mkv"}],
        })
        self.assertEqual(resp.status_code, 404)

    def test_source_unresolvable(self):
        resp = self._client(_StaticIndexer([])).post("/api/torrents/source", json={})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "Unable to determine torrent source"})


if __name__ == "__main__":
    unittest.main()
