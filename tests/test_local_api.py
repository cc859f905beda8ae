import importlib
import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient

from catalog_agent import local_api
from catalog_agent.artifacts import render_artifact, write_artifact
from catalog_agent.entity_store import EntityKind, SQLiteEntityStore
from catalog_agent.local_api import create_app
from catalog_agent.provisioning import ProvisioningEngine


class LocalApiTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.home = Path(self._tmp.name)
        (self.home / "config").mkdir()
        (self.home / "config" / "settings.json").write_text(
            json.dumps({"enable_classifier": False})
        )
        self._env = mock.patch.dict(os.environ, {"CATALOG_AGENT_HOME": str(self.home)})
        self._env.start()
        os.environ.pop("CATALOG_AGENT_DB", None)
        os.environ.pop("OPENAI_API_KEY", None)

    def tearDown(self):
        self._env.stop()
        self._tmp.cleanup()

    def test_generated_routes_are_served(self):
        engine = ProvisioningEngine(SQLiteEntityStore(self.home / "catalog.db"))
        for kind in (EntityKind.PLAY_HISTORY, EntityKind.CURATED_ALBUM):
            engine.provision(kind)
            write_artifact(render_artifact(kind), self.home / "routes")

        client = TestClient(create_app())

        resp = client.get("/api/recently-played")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body[0]["title"], "Blinding Lights")
        self.assertEqual(set(body[0]), {"id", "title", "artist", "album", "image", "duration"})

        resp = client.get("/api/popular-albums")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()[0]["album"], "Midnights")

        self.assertEqual(client.get("/api/made-for-you").status_code, 404)

    def test_agent_query_endpoint_runs_the_orchestrator(self):
        client = TestClient(create_app())
        resp = client.post("/agent/query", json={"query": "store the made for you playlists"})

        self.assertEqual(resp.status_code, 200)
        payload = resp.json()
        self.assertEqual(payload["state"], "reporting_done")
        self.assertIsNone(payload["error"])
        self.assertTrue(payload["artifacts"][0].endswith("made_for_you.py"))
        self.assertTrue((self.home / "routes" / "made_for_you.py").exists())

    def test_importing_the_module_does_not_load_routes(self):
        routes = self.home / "routes"
        routes.mkdir()
        marker = self.home / "loaded.txt"
        (routes / "side_effect.py").write_text(
            f"from pathlib import Path\nPath({str(marker)!r}).write_text('loaded')\n"
        )

        importlib.reload(local_api)

        self.assertFalse(marker.exists())
        self.assertFalse(hasattr(local_api, "app"))

    def test_broken_route_module_is_skipped(self):
        engine = ProvisioningEngine(SQLiteEntityStore(self.home / "catalog.db"))
        engine.provision(EntityKind.CURATED_ALBUM)
        write_artifact(render_artifact(EntityKind.CURATED_ALBUM), self.home / "routes")
        (self.home / "routes" / "broken.py").write_text("def oops(:\n")

        with self.assertLogs("catalog_agent.local_api", level="WARNING") as logs:
            client = TestClient(create_app())

        self.assertEqual(client.get("/api/popular-albums").status_code, 200)
        self.assertTrue(any("broken.py" in line for line in logs.output))


if __name__ == "__main__":
    unittest.main()
