import json
import unittest
from datetime import datetime, timezone

from catalog_agent.entity_store import EntityKind
from catalog_agent.errors import (
    ArtifactWriteFailure,
    ClassificationDegraded,
    SchemaCreationFailure,
)
from catalog_agent.intent_classifier import Intent, LLMIntentClassifier
from catalog_agent.orchestrator import AgentState, QueryOrchestrator
from catalog_agent.seed_data import default_catalog

from fake_store import InMemoryEntityStore, RecordingWriter

QUERY_A = "Can you store the recently played songs in a table"
QUERY_C = "Can you store the 'Made for you' and 'Popular albums' in a table"
NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
SEED_TRACKS = len(default_catalog().fixture_rows(EntityKind.TRACK))


class StubClassifier:
    def __init__(self, intent=None, error=None):
        self.intent = intent
        self.error = error
        self.queries = []

    def classify(self, text):
        self.queries.append(text)
        if self.error is not None:
            raise self.error
        return self.intent


class QueryOrchestratorTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryEntityStore()
        self.writer = RecordingWriter()

    def _orchestrator(self, classifier=None, store=None, writer=None):
        return QueryOrchestrator(
            store or self.store,
            artifact_writer=writer or self.writer,
            classifier=classifier,
            clock=lambda: NOW,
        )

    def test_scenario_a_recently_played_on_empty_store(self):
        report = self._orchestrator().run(QUERY_A)

        self.assertIs(report.state, AgentState.REPORTING_DONE)
        self.assertEqual(
            report.transitions,
            [
                AgentState.CLASSIFYING,
                AgentState.PROVISIONING,
                AgentState.GENERATING_ARTIFACTS,
                AgentState.REPORTING_DONE,
            ],
        )
        self.assertEqual(report.kinds, (EntityKind.TRACK, EntityKind.PLAY_HISTORY))
        self.assertTrue(all(item.schema_created for item in report.provisioned))
        self.assertEqual(self.store.count(EntityKind.TRACK), SEED_TRACKS)
        self.assertEqual(self.store.count(EntityKind.PLAY_HISTORY), SEED_TRACKS)

        history = self.store.tables[EntityKind.PLAY_HISTORY]
        stamps = [history[f"recent-{i + 1}"]["played_at"] for i in range(SEED_TRACKS)]
        self.assertEqual(stamps, sorted(stamps, reverse=True))
        self.assertEqual(len(set(stamps)), SEED_TRACKS)

        self.assertEqual([a.path for a in self.writer.written], ["recently_played.py"])
        self.assertEqual(len(report.artifacts), 1)
        self.assertIsNone(report.error)

    def test_scenario_b_rerun_inserts_nothing(self):
        orchestrator = self._orchestrator()
        orchestrator.run(QUERY_A)
        inserts_before = [op for op in self.store.operations if op[0] == "insert"]

        report = orchestrator.run(QUERY_A)

        inserts_after = [op for op in self.store.operations if op[0] == "insert"]
        self.assertEqual(len(inserts_after), len(inserts_before))
        self.assertIs(report.state, AgentState.REPORTING_DONE)
        self.assertTrue(all(item.already_populated for item in report.provisioned))
        self.assertTrue(all(item.inserted == 0 for item in report.provisioned))
        notes = [line for line in report.steps if "already populated" in line]
        self.assertEqual(len(notes), 2)
        first, second = self.writer.written
        self.assertEqual(first, second)

    def test_scenario_c_curated_kinds_only(self):
        report = self._orchestrator().run(QUERY_C)

        self.assertIs(report.state, AgentState.REPORTING_DONE)
        self.assertEqual(report.kinds, (EntityKind.CURATED_PLAYLIST, EntityKind.CURATED_ALBUM))
        self.assertEqual(
            [a.path for a in self.writer.written], ["made_for_you.py", "popular_albums.py"]
        )
        self.assertNotIn(EntityKind.TRACK, self.store.tables)
        self.assertNotIn(EntityKind.PLAY_HISTORY, self.store.tables)
        self.assertGreater(self.store.count(EntityKind.CURATED_PLAYLIST), 0)
        self.assertGreater(self.store.count(EntityKind.CURATED_ALBUM), 0)

    def test_scenario_d_schema_failure_fails_fast(self):
        store = InMemoryEntityStore(fail_create=[EntityKind.TRACK])
        report = self._orchestrator(store=store).run(
            "store the recently played songs and the made for you playlists"
        )

        self.assertIs(report.state, AgentState.FAILED)
        self.assertIsInstance(report.error, SchemaCreationFailure)
        self.assertEqual(self.writer.written, [])
        self.assertEqual(report.artifacts, [])
        self.assertNotIn(EntityKind.CURATED_PLAYLIST, store.tables)
        self.assertTrue(any("Agent failed" in line for line in report.steps))
        self.assertNotIn(AgentState.GENERATING_ARTIFACTS, report.transitions)

    def test_process_query_reraises_terminal_error(self):
        store = InMemoryEntityStore(fail_create=[EntityKind.CURATED_ALBUM])
        orchestrator = self._orchestrator(store=store)
        with self.assertRaises(SchemaCreationFailure):
            orchestrator.process_query("popular albums please")
        self.assertIs(orchestrator.state, AgentState.IDLE)

    def test_artifact_write_failure_fails_run(self):
        report = self._orchestrator(writer=RecordingWriter(fail=True)).run(QUERY_C)
        self.assertIs(report.state, AgentState.FAILED)
        self.assertIsInstance(report.error, ArtifactWriteFailure)
        self.assertGreater(self.store.count(EntityKind.CURATED_PLAYLIST), 0)

    def test_keyword_set_wins_when_classifier_fails(self):
        classifier = StubClassifier(error=ClassificationDegraded("timeout"))
        report = self._orchestrator(classifier).run(QUERY_A)

        self.assertTrue(report.degraded)
        self.assertIn(EntityKind.TRACK, report.kinds)
        self.assertIn(EntityKind.PLAY_HISTORY, report.kinds)
        self.assertIs(report.state, AgentState.REPORTING_DONE)
        self.assertTrue(any("reduced confidence" in line for line in report.steps))

    def test_unexpected_classifier_error_degrades_instead_of_escaping(self):
        classifier = StubClassifier(error=ConnectionError("connection reset by peer"))
        report = self._orchestrator(classifier).run(QUERY_A)

        self.assertIs(report.state, AgentState.REPORTING_DONE)
        self.assertTrue(report.degraded)
        self.assertIsNone(report.intent)
        self.assertEqual(report.kinds, (EntityKind.TRACK, EntityKind.PLAY_HISTORY))
        self.assertEqual(self.store.count(EntityKind.PLAY_HISTORY), SEED_TRACKS)
        self.assertTrue(any("ConnectionError" in line for line in report.steps))

    def test_malformed_intent_object_degrades(self):
        classifier = StubClassifier(intent=object())
        report = self._orchestrator(classifier).run(QUERY_C)

        self.assertIs(report.state, AgentState.REPORTING_DONE)
        self.assertTrue(report.degraded)
        self.assertIsNone(report.intent)
        self.assertEqual(len(self.writer.written), 2)

    def test_keyword_set_wins_over_disagreeing_classifier(self):
        intent = Intent(
            operation="query_data",
            entities=("popular_albums",),
            description="Look at albums",
        )
        classifier = StubClassifier(intent=intent)
        report = self._orchestrator(classifier).run(QUERY_A)

        self.assertFalse(report.degraded)
        self.assertEqual(report.intent, intent)
        self.assertEqual(report.kinds, (EntityKind.TRACK, EntityKind.PLAY_HISTORY))
        self.assertNotIn(EntityKind.CURATED_ALBUM, self.store.tables)
        self.assertTrue(any("keyword matching is authoritative" in line for line in report.steps))
        self.assertEqual(classifier.queries, [QUERY_A])

    def test_malformed_model_output_degrades_through_real_classifier(self):
        class GarbageClient:
            def complete(self, prompt):
                return json.dumps({"operation": "create_table"})

        report = self._orchestrator(LLMIntentClassifier(GarbageClient())).run(QUERY_A)
        self.assertTrue(report.degraded)
        self.assertIs(report.state, AgentState.REPORTING_DONE)

    def test_no_classifier_is_degraded_mode(self):
        report = self._orchestrator().run(QUERY_C)
        self.assertTrue(report.degraded)
        self.assertIsNone(report.intent)

    def test_unmatched_query_completes_without_side_effects(self):
        report = self._orchestrator().run("what's the weather like")
        self.assertIs(report.state, AgentState.REPORTING_DONE)
        self.assertEqual(report.kinds, ())
        self.assertEqual(self.store.tables, {})
        self.assertEqual(self.writer.written, [])

    def test_step_log_is_numbered_in_order(self):
        report = self._orchestrator().run(QUERY_C)
        headings = [line for line in report.steps if not line.startswith("   ")]
        self.assertEqual(
            headings,
            [
                "1. 🧠 Analyzing query...",
                "2. 🔧 Executing database operations...",
                "3. 🛣️  Creating API routes...",
                "4. 🎨 Frontend integration...",
            ],
        )


if __name__ == "__main__":
    unittest.main()
