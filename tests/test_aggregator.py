import threading
import time
import unittest

from torwatch.core.aggregator import AggregationEngine, build_query_variants
from torwatch.core.errors import IndexerRequestError, QueryValidationError, UpstreamUnavailableError
from torwatch.core.event_bus import EventBus, Events
from torwatch.models.raw_release import JsonRelease
from torwatch.sources.base import BaseIndexer, IndexerCall


def _row(title, info_hash, indexer="A", seeders=1):
    return JsonRelease(indexer=indexer, row={
        "title": title,
        "indexer": indexer,
        "seeders": seeders,
        "protocol": "torrent",
        "magnetUrl": f"magnet:?xt=urn:btih:{info_hash}",
    })


class ScriptedIndexer(BaseIndexer):
    """Answers by call label: a list of raw releases, or an exception to raise."""

    name = "Scripted"

    def __init__(self, script, delays=None):
        self.script = script
        self.delays = delays or {}
        self.calls = []
        self._lock = threading.Lock()

    def _answer(self, call):
        with self._lock:
            self.calls.append(call.label)
        time.sleep(self.delays.get(call.label, 0))
        answer = self.script.get(call.label, [])
        if isinstance(answer, Exception):
            raise answer
        return list(answer)

    def search_native(self, call):
        return self._answer(call)

    def search_torznab(self, call):
        return self._answer(call)

    def list_indexers(self):
        return []


class TestQueryVariants(unittest.TestCase):
    def test_title_aliases_base_and_cleaned(self):
        variants = build_query_variants("Attack on Titan: Final Season", ["Shingeki no Kyojin", "X"])
        self.assertEqual(variants, [
            "Attack on Titan: Final Season",
            "Shingeki no Kyojin",
            "Attack on Titan",
            "Attack on Titan Final Season",
        ])

    def test_short_base_name_is_skipped(self):
        variants = build_query_variants("Re:Zero - Starting Life in Another World", [])
        self.assertEqual(variants, [
            "Re:Zero - Starting Life in Another World",
            "Re Zero Starting Life in Another World",
        ])

    def test_cleaned_variant_is_ascii_folded(self):
        self.assertEqual(build_query_variants("Pokémon: Horizons", []), [
            "Pokémon: Horizons",
            "Pokémon",
            "Pokemon Horizons",
        ])

    def test_plain_title_has_single_variant(self):
        self.assertEqual(build_query_variants("Frieren", ["frieren", "Frieren"]), ["Frieren", "frieren"])

    def test_empty_title_rejected(self):
        with self.assertRaises(QueryValidationError):
            build_query_variants("   ")


class TestAggregationEngine(unittest.TestCase):
    def test_partial_failure_is_isolated(self):
        indexer = ScriptedIndexer({
            "ok": [_row("Show S01E01", "A" * 40)],
            "broken": IndexerRequestError("HTTP 500", status=500),
        })
        engine = AggregationEngine(indexer)
        try:
            result = engine.run([IndexerCall(label="ok", query="show"), IndexerCall(label="broken", query="show")])
        finally:
            engine.shutdown()
        self.assertEqual(len(result.releases), 1)
        self.assertEqual(result.attempted, 2)
        self.assertEqual(result.succeeded, 1)
        self.assertIn("broken", result.warnings)
        self.assertNotIn("ok", result.warnings)

    def test_results_follow_call_order_not_completion_order(self):
        indexer = ScriptedIndexer(
            {
                "slow": [_row("Slow Release", "A" * 40)],
                "fast": [_row("Fast Release", "B" * 40)],
            },
            delays={"slow": 0.05},
        )
        engine = AggregationEngine(indexer, max_workers=2)
        try:
            result = engine.run([IndexerCall(label="slow", query="q"), IndexerCall(label="fast", query="q")])
        finally:
            engine.shutdown()
        self.assertEqual([r.title for r in result.releases], ["Slow Release", "Fast Release"])

    def test_all_calls_unreachable_raises(self):
        indexer = ScriptedIndexer({
            "a": UpstreamUnavailableError("connection refused"),
            "b": UpstreamUnavailableError("connection refused"),
        })
        engine = AggregationEngine(indexer)
        try:
            with self.assertRaises(UpstreamUnavailableError):
                engine.run([IndexerCall(label="a", query="q"), IndexerCall(label="b", query="q")])
        finally:
            engine.shutdown()

    def test_mixed_failures_return_empty_result(self):
        indexer = ScriptedIndexer({
            "a": UpstreamUnavailableError("connection refused"),
            "b": IndexerRequestError("HTTP 404", status=404),
        })
        engine = AggregationEngine(indexer)
        try:
            result = engine.run([IndexerCall(label="a", query="q"), IndexerCall(label="b", query="q")])
        finally:
            engine.shutdown()
        self.assertEqual(result.releases, [])
        self.assertEqual(result.succeeded, 0)
        self.assertEqual(set(result.warnings), {"a", "b"})

    def test_empty_query_rejected_before_any_call(self):
        indexer = ScriptedIndexer({})
        engine = AggregationEngine(indexer)
        try:
            with self.assertRaises(QueryValidationError):
                engine.run([IndexerCall(label="ok", query="q"), IndexerCall(label="blank", query="   ")])
        finally:
            engine.shutdown()
        self.assertEqual(indexer.calls, [])

    def test_torznab_imdb_call_needs_no_text(self):
        indexer = ScriptedIndexer({"imdb": [_row("Movie 1080p", "C" * 40)]})
        engine = AggregationEngine(indexer)
        try:
            result = engine.run([
                IndexerCall(label="imdb", mode="torznab", indexer_id=1, imdb_id="0133093"),
            ])
        finally:
            engine.shutdown()
        self.assertEqual(len(result.releases), 1)

    def test_progress_event_per_settled_call(self):
        bus = EventBus()
        seen = []
        bus.subscribe(Events.SEARCH_PROGRESS, seen.append)
        indexer = ScriptedIndexer({"a": [], "b": RuntimeError("boom")})
        engine = AggregationEngine(indexer, event_bus=bus)
        try:
            engine.run([IndexerCall(label="a", query="q"), IndexerCall(label="b", query="q")])
        finally:
            engine.shutdown()
        self.assertEqual(len(seen), 2)
        self.assertEqual(sorted(e["call"] for e in seen), ["a", "b"])
        self.assertEqual(seen[-1]["completed"], 2)


if __name__ == "__main__":
    unittest.main()
