"""
Create every table the catalog uses in one pass.

Provisioning creates its four tables lazily; this helper is for ``init``,
where the whole schema (including the playlist/album membership tables that
provisioning never touches) should exist up front.
"""
from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import List, Optional

from catalog_agent import paths
from catalog_agent.entity_store import SCHEMAS, EntityKind

logger = logging.getLogger(__name__)

MEMBERSHIP_SCHEMAS = (
    """
    CREATE TABLE IF NOT EXISTS playlist_tracks (
        id TEXT PRIMARY KEY,
        playlist_id TEXT NOT NULL,
        track_id TEXT NOT NULL,
        position INTEGER NOT NULL,
        FOREIGN KEY(playlist_id) REFERENCES made_for_you_playlists(id),
        FOREIGN KEY(track_id) REFERENCES tracks(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS album_tracks (
        id TEXT PRIMARY KEY,
        album_id TEXT NOT NULL,
        track_id TEXT NOT NULL,
        track_number INTEGER NOT NULL,
        FOREIGN KEY(album_id) REFERENCES popular_albums(id),
        FOREIGN KEY(track_id) REFERENCES tracks(id)
    )
    """,
)


def ensure_db_location(db_path: Optional[Path] = None) -> Path:
    db_path = db_path or paths.db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    if not db_path.exists():
        db_path.touch()
        logger.info("Created new DB at %s", db_path)
    return db_path


def existing_tables(conn: sqlite3.Connection) -> List[str]:
    cur = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    return [row[0] for row in cur.fetchall()]


def migrate(db_path: Optional[Path] = None) -> List[str]:
    """Create any missing tables. Returns the names that were added."""
    db_path = ensure_db_location(db_path)
    conn = sqlite3.connect(db_path)
    try:
        before = set(existing_tables(conn))
        # tracks first so the foreign keys below have a target.
        for kind in (
            EntityKind.TRACK,
            EntityKind.PLAY_HISTORY,
            EntityKind.CURATED_PLAYLIST,
            EntityKind.CURATED_ALBUM,
        ):
            conn.execute(SCHEMAS[kind])
        for statement in MEMBERSHIP_SCHEMAS:
            conn.execute(statement)
        conn.commit()
        added = sorted(set(existing_tables(conn)) - before)
    finally:
        conn.close()
    for name in added:
        logger.info("Added table %s", name)
    return added


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    migrate()
    print("Migration complete.")
