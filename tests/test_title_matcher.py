import unittest

from torwatch.core.title_matcher import (
    TorrentFile,
    detect_season_pack,
    extract_episode_hints,
    matches_episode,
    pick_file_index_for_episode,
)


class TestEpisodeMatching(unittest.TestCase):
    def test_season_episode_marker_matches_requested_episode(self):
        self.assertTrue(matches_episode("Show.Name.S02E05.1080p.WEB.x264", 2, 5))

    def test_neighbouring_episode_does_not_match(self):
        self.assertFalse(matches_episode("Show.Name.S02E06.1080p.WEB.x264", 2, 5))

    def test_wrong_season_does_not_match(self):
        self.assertFalse(matches_episode("Show.Name.S01E05.720p", 2, 5))

    def test_episode_range_in_marker(self):
        self.assertTrue(matches_episode("Show Name S01E01-E03 1080p", 1, 2))
        self.assertFalse(matches_episode("Show Name S01E01-E03 1080p", 1, 4))

    def test_absolute_number_for_anime(self):
        title = "[SubsPlease] Frieren - 13 (1080p) [ABCDEF12].mkv"
        self.assertTrue(matches_episode(title, 1, 13, 13))
        self.assertFalse(matches_episode(title, 1, 14, 14))

    def test_resolution_and_year_are_not_episodes(self):
        hints = extract_episode_hints("Show Name 2019 1080p x265 10bit")
        self.assertEqual(hints.generic, set())
        self.assertEqual(hints.by_season, {})

    def test_no_target_always_matches(self):
        self.assertTrue(matches_episode("Anything at all"))

    def test_episode_word_marker(self):
        self.assertTrue(matches_episode("Show Name Episode 7 [720p]", None, 7))


class TestSeasonPackDetection(unittest.TestCase):
    def test_complete_season_with_marker(self):
        detection = detect_season_pack("Example.Show.S01.Complete.720p", 1)
        self.assertTrue(detection.is_season_pack)
        self.assertTrue(detection.season_match)
        self.assertIn("complete", detection.keywords)
        self.assertEqual(detection.reason, "season-1-complete")

    def test_other_season_pack_still_detected_without_season_match(self):
        detection = detect_season_pack("Example Show Season 3 Batch", 1)
        self.assertTrue(detection.is_season_pack)
        self.assertFalse(detection.season_match)
        self.assertEqual(detection.reason, "batch")

    def test_keyword_without_season_or_series_word_is_not_a_pack(self):
        detection = detect_season_pack("Example Show Complete Collection", 1)
        self.assertFalse(detection.is_season_pack)
        self.assertIsNone(detection.reason)

    def test_episode_range_forms(self):
        cases = [
            "Show S01E01-E12 1080p",
            "Show Season 1 E01-E12 1080p",
            "[Group] Show EP01-12 Season 1 [1080p]",
            "Show Season 1 01-12 1080p",
        ]
        for title in cases:
            with self.subTest(title=title):
                detection = detect_season_pack(title, 1)
                self.assertTrue(detection.is_season_pack)
                self.assertEqual(detection.keywords, ["episode-range"])
                self.assertEqual(detection.reason, "season-1-episode-range")

    def test_year_range_is_not_an_episode_range(self):
        detection = detect_season_pack("Show Season 1 2019-2020 1080p", 1)
        self.assertFalse(detection.is_season_pack)

    def test_single_episode_release_is_not_a_pack(self):
        detection = detect_season_pack("Example.Show.S01E03.1080p", 1)
        self.assertFalse(detection.is_season_pack)


GB = 1024 * 1024 * 1024


class TestEpisodeFilePick(unittest.TestCase):
    def test_requested_episode_wins_over_larger_neighbour(self):
        files = [
            TorrentFile(0, "Show/Show.S01E01.1080p.mkv", int(1.4 * GB)),
            TorrentFile(1, "Show/Show.S01E02.1080p.mkv", int(1.3 * GB)),
            TorrentFile(2, "Show/Show.S01E02.sample.mkv", 20 * 1024 * 1024),
            TorrentFile(3, "Show/Show.S01E02.nfo", 2048),
        ]
        pick = pick_file_index_for_episode(files, 1, 2)
        self.assertEqual(pick.index, 1)
        self.assertTrue(pick.matched)
        self.assertGreater(pick.score, 130)

    def test_absolute_number_for_anime_batch(self):
        files = [
            TorrentFile(0, "[Group] Frieren - 12 (1080p).mkv", GB),
            TorrentFile(1, "[Group] Frieren - 13 (1080p).mkv", GB),
        ]
        pick = pick_file_index_for_episode(files, 1, None, 13)
        self.assertEqual(pick.index, 1)
        self.assertTrue(pick.matched)

    def test_non_video_files_used_when_no_video_present(self):
        pick = pick_file_index_for_episode([TorrentFile(4, "Show.S01E02.iso")], 1, 2)
        self.assertEqual(pick.index, 4)
        self.assertTrue(pick.matched)

    def test_no_files(self):
        self.assertIsNone(pick_file_index_for_episode([], 1, 2))


if __name__ == "__main__":
    unittest.main()
