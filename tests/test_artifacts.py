import importlib.util
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from catalog_agent.artifacts import (
    PLAYLIST_DEFAULT_DURATION,
    has_artifact,
    render_artifact,
    write_artifact,
)
from catalog_agent.entity_store import EntityKind, SQLiteEntityStore
from catalog_agent.errors import ArtifactWriteFailure
from catalog_agent.provisioning import ProvisioningEngine

CARD_FIELDS = {"id", "title", "artist", "album", "image", "duration"}


def _load_module(path: Path):
    spec = importlib.util.spec_from_file_location(f"generated_{path.stem}", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class RenderArtifactTests(unittest.TestCase):
    def test_rendering_is_deterministic(self):
        for kind in (EntityKind.PLAY_HISTORY, EntityKind.CURATED_PLAYLIST, EntityKind.CURATED_ALBUM):
            with self.subTest(kind=kind):
                self.assertEqual(render_artifact(kind), render_artifact(kind))

    def test_rendered_modules_compile(self):
        for kind in (EntityKind.PLAY_HISTORY, EntityKind.CURATED_PLAYLIST, EntityKind.CURATED_ALBUM):
            with self.subTest(kind=kind):
                artifact = render_artifact(kind)
                compile(artifact.content, artifact.path, "exec")

    def test_recently_played_joins_tracks(self):
        artifact = render_artifact(EntityKind.PLAY_HISTORY)
        self.assertEqual(artifact.path, "recently_played.py")
        self.assertIn('@router.get("/api/recently-played"', artifact.content)
        self.assertIn("INNER JOIN tracks t ON r.track_id = t.id", artifact.content)
        self.assertIn("t.album_art AS image", artifact.content)

    def test_made_for_you_aliases_description_and_duration(self):
        artifact = render_artifact(EntityKind.CURATED_PLAYLIST)
        self.assertEqual(artifact.path, "made_for_you.py")
        self.assertIn("description AS artist", artifact.content)
        self.assertIn(f"{PLAYLIST_DEFAULT_DURATION} AS duration", artifact.content)

    def test_tracks_have_no_standalone_endpoint(self):
        self.assertFalse(has_artifact(EntityKind.TRACK))
        with self.assertRaises(ValueError):
            render_artifact(EntityKind.TRACK)


class WriteArtifactTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_write_creates_directories_and_overwrites(self):
        artifact = render_artifact(EntityKind.CURATED_ALBUM)
        destination = self.root / "routes" / artifact.path
        destination.parent.mkdir(parents=True)
        destination.write_text("stale")

        written = write_artifact(artifact, self.root / "routes")
        self.assertEqual(written, destination)
        self.assertEqual(destination.read_text(encoding="utf-8"), artifact.content)

    def test_write_failure_is_typed(self):
        blocker = self.root / "routes"
        blocker.write_text("not a directory")
        with self.assertRaises(ArtifactWriteFailure):
            write_artifact(render_artifact(EntityKind.CURATED_ALBUM), blocker)

    def test_generated_endpoints_return_card_rows(self):
        db_path = self.root / "catalog.db"
        engine = ProvisioningEngine(SQLiteEntityStore(db_path))
        for kind in (EntityKind.PLAY_HISTORY, EntityKind.CURATED_PLAYLIST, EntityKind.CURATED_ALBUM):
            engine.provision(kind)

        with mock.patch.dict(os.environ, {"CATALOG_AGENT_DB": str(db_path)}):
            history = _load_module(write_artifact(render_artifact(EntityKind.PLAY_HISTORY), self.root))
            playlists = _load_module(write_artifact(render_artifact(EntityKind.CURATED_PLAYLIST), self.root))
            albums = _load_module(write_artifact(render_artifact(EntityKind.CURATED_ALBUM), self.root))

            recent = history.recently_played()
            made_for_you = playlists.made_for_you()
            popular = albums.popular_albums()

        self.assertEqual(set(recent[0]), CARD_FIELDS)
        self.assertEqual(recent[0]["title"], "Blinding Lights")
        self.assertEqual(made_for_you[0]["artist"], "Your weekly mixtape of fresh music")
        self.assertEqual(made_for_you[0]["album"], made_for_you[0]["title"])
        self.assertEqual({row["duration"] for row in made_for_you}, {PLAYLIST_DEFAULT_DURATION})
        self.assertEqual(popular[0]["album"], "Midnights")


if __name__ == "__main__":
    unittest.main()
