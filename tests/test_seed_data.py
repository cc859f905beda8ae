import unittest

from catalog_agent.entity_store import COLUMNS, EntityKind
from catalog_agent.errors import SeedDataError
from catalog_agent.seed_data import default_catalog, parse_catalog


class SeedCatalogTests(unittest.TestCase):
    def test_default_catalog_rows_match_table_columns(self):
        catalog = default_catalog()
        for kind in (EntityKind.TRACK, EntityKind.CURATED_PLAYLIST, EntityKind.CURATED_ALBUM):
            rows = catalog.fixture_rows(kind)
            self.assertTrue(rows, kind)
            for row in rows:
                self.assertEqual(set(row), set(COLUMNS[kind]))

    def test_history_rows_are_the_track_rows_in_play_order(self):
        catalog = default_catalog()
        self.assertEqual(
            catalog.fixture_rows(EntityKind.PLAY_HISTORY),
            catalog.fixture_rows(EntityKind.TRACK),
        )

    def test_card_subtitle_becomes_playlist_description(self):
        playlists = default_catalog().fixture_rows(EntityKind.CURATED_PLAYLIST)
        first = playlists[0]
        self.assertEqual(first["id"], "discover-weekly")
        self.assertEqual(first["description"], "Your weekly mixtape of fresh music")

    def test_returned_rows_cannot_alter_the_catalog(self):
        catalog = default_catalog()
        rows = catalog.fixture_rows(EntityKind.CURATED_ALBUM)
        rows[0]["title"] = "Tampered"
        self.assertNotEqual(catalog.fixture_rows(EntityKind.CURATED_ALBUM)[0]["title"], "Tampered")

    def test_duplicate_ids_are_rejected(self):
        payload = {
            "recently_played": [
                {"id": "1", "title": "A", "duration": 10},
                {"id": "1", "title": "B", "duration": 20},
            ]
        }
        with self.assertRaises(SeedDataError):
            parse_catalog(payload)

    def test_negative_duration_is_rejected(self):
        payload = {"popular_albums": [{"id": "a", "title": "A", "duration": -5}]}
        with self.assertRaises(SeedDataError):
            parse_catalog(payload)

    def test_entry_without_id_is_rejected(self):
        payload = {"made_for_you": [{"title": "Nameless"}]}
        with self.assertRaises(SeedDataError):
            parse_catalog(payload)


if __name__ == "__main__":
    unittest.main()
