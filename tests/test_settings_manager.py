import json
import tempfile
import unittest
from pathlib import Path

from torwatch.core.settings_manager import SettingsManager


class TestSettingsManager(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def test_defaults_without_file(self):
        settings = SettingsManager(data_dir=self.data_dir, environ={})
        self.assertEqual(settings.get("prowlarr_url"), "")
        self.assertEqual(settings.get("resolve_top_k"), 10)
        self.assertEqual(settings.get("missing", "fallback"), "fallback")

    def test_changes_persist_only_on_save(self):
        settings = SettingsManager(data_dir=self.data_dir, environ={})
        settings.set("resolve_top_k", 3)
        self.assertEqual(SettingsManager(data_dir=self.data_dir, environ={}).get("resolve_top_k"), 10)

        settings.save()
        reloaded = SettingsManager(data_dir=self.data_dir, environ={})
        self.assertEqual(reloaded.get("resolve_top_k"), 3)
        self.assertEqual(reloaded.get("search_max_workers"), 8)

    def test_environment_overrides_file(self):
        Path(self.data_dir, "settings.json").write_text(json.dumps({"prowlarr_url": "http://from-file:9696"}))
        settings = SettingsManager(
            data_dir=self.data_dir,
            environ={"PROWLARR_URL": "http://from-env:9696", "PROWLARR_API_KEY": " key "},
        )
        self.assertEqual(settings.get("prowlarr_url"), "http://from-env:9696")
        self.assertEqual(settings.get("prowlarr_api_key"), "key")

    def test_data_dir_from_environment(self):
        settings = SettingsManager(environ={"TORWATCH_DATA_DIR": self.data_dir})
        self.assertEqual(settings.settings_file, Path(self.data_dir) / "settings.json")

    def test_corrupt_file_falls_back_to_defaults(self):
        Path(self.data_dir, "settings.json").write_text("{not json")
        with self.assertLogs("torwatch.core.settings_manager", level="WARNING"):
            settings = SettingsManager(data_dir=self.data_dir, environ={})
        self.assertEqual(settings.get("prowlarr_limit"), 100)


if __name__ == "__main__":
    unittest.main()
