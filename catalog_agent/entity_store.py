"""
Typed access to the four entity kinds the agent provisions.

The provisioning protocol only ever needs four operations, captured by the
``EntityStore`` protocol: ``ensure_schema``, ``count``, ``insert`` and
``select``.  ``SQLiteEntityStore`` is the production implementation; tests
swap in an in-memory fake with the same surface.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Protocol

from catalog_agent.errors import StoreError

logger = logging.getLogger(__name__)


class EntityKind(str, Enum):
    """Entity kinds, valued by their table name."""

    TRACK = "tracks"
    PLAY_HISTORY = "recently_played"
    CURATED_PLAYLIST = "made_for_you_playlists"
    CURATED_ALBUM = "popular_albums"

    @property
    def table(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    EntityKind.TRACK: "tracks",
    EntityKind.PLAY_HISTORY: "recently played",
    EntityKind.CURATED_PLAYLIST: "Made for You playlists",
    EntityKind.CURATED_ALBUM: "popular albums",
}


class InsertResult(str, Enum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


SCHEMAS: Dict[EntityKind, str] = {
    EntityKind.TRACK: """
        CREATE TABLE IF NOT EXISTS tracks (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            artist TEXT NOT NULL,
            album TEXT NOT NULL,
            album_art TEXT NOT NULL,
            duration INTEGER NOT NULL CHECK (duration >= 0),
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
    EntityKind.PLAY_HISTORY: """
        CREATE TABLE IF NOT EXISTS recently_played (
            id TEXT PRIMARY KEY,
            track_id TEXT NOT NULL,
            played_at TIMESTAMP NOT NULL,
            FOREIGN KEY(track_id) REFERENCES tracks(id)
        )
    """,
    EntityKind.CURATED_PLAYLIST: """
        CREATE TABLE IF NOT EXISTS made_for_you_playlists (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT NOT NULL,
            image TEXT NOT NULL,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
    EntityKind.CURATED_ALBUM: """
        CREATE TABLE IF NOT EXISTS popular_albums (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            artist TEXT NOT NULL,
            image TEXT NOT NULL,
            duration INTEGER NOT NULL CHECK (duration >= 0),
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
}

COLUMNS: Dict[EntityKind, tuple] = {
    EntityKind.TRACK: ("id", "title", "artist", "album", "album_art", "duration"),
    EntityKind.PLAY_HISTORY: ("id", "track_id", "played_at"),
    EntityKind.CURATED_PLAYLIST: ("id", "title", "description", "image"),
    EntityKind.CURATED_ALBUM: ("id", "title", "artist", "image", "duration"),
}

HISTORY_VIEW_SQL = """
    SELECT r.id, r.track_id, r.played_at,
           t.title, t.artist, t.album, t.album_art, t.duration
    FROM recently_played r
    INNER JOIN tracks t ON r.track_id = t.id
    ORDER BY r.played_at DESC
"""


class EntityStore(Protocol):
    """The four storage operations the provisioning protocol relies on."""

    def ensure_schema(self, kind: EntityKind) -> None:  # pragma: no cover - interface only
        ...

    def count(self, kind: EntityKind) -> int:  # pragma: no cover - interface only
        ...

    def insert(self, kind: EntityKind, row: Mapping[str, object]) -> InsertResult:  # pragma: no cover
        ...

    def select(self, kind: EntityKind, limit: Optional[int] = None) -> List[Dict[str, object]]:  # pragma: no cover
        ...


class SQLiteEntityStore:
    """
    ``EntityStore`` backed by a SQLite file.

    Every call opens its own connection with foreign keys enabled, so a
    history row can never be written ahead of the track it references.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        try:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
            conn.commit()
        finally:
            conn.close()

    def ensure_schema(self, kind: EntityKind) -> None:
        try:
            with self._connect() as conn:
                conn.execute(SCHEMAS[kind])
        except sqlite3.Error as exc:
            raise _store_error(kind, "create", exc) from exc
        logger.debug("Ensured schema for %s", kind.table)

    def count(self, kind: EntityKind) -> int:
        try:
            with self._connect() as conn:
                row = conn.execute(f"SELECT count(*) FROM {kind.table}").fetchone()
        except sqlite3.Error as exc:
            raise _store_error(kind, "count", exc) from exc
        return int(row[0])

    def insert(self, kind: EntityKind, row: Mapping[str, object]) -> InsertResult:
        unknown = set(row) - set(COLUMNS[kind])
        if unknown:
            raise StoreError(
                f"Unknown columns for {kind.table}: {', '.join(sorted(unknown))}",
                table=kind.table,
            )
        columns = [col for col in COLUMNS[kind] if col in row]
        placeholders = ", ".join("?" for _ in columns)
        # Only a primary key collision is tolerated; CHECK/NOT NULL/FK still raise.
        sql = (
            f"INSERT INTO {kind.table} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) ON CONFLICT(id) DO NOTHING"
        )
        try:
            with self._connect() as conn:
                cursor = conn.execute(sql, tuple(row[col] for col in columns))
        except sqlite3.Error as exc:
            raise _store_error(kind, "insert into", exc) from exc
        if cursor.rowcount == 0:
            return InsertResult.ALREADY_EXISTS
        return InsertResult.INSERTED

    def select(self, kind: EntityKind, limit: Optional[int] = None) -> List[Dict[str, object]]:
        if kind is EntityKind.PLAY_HISTORY:
            sql = HISTORY_VIEW_SQL
        else:
            sql = f"SELECT * FROM {kind.table} ORDER BY rowid"
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        try:
            with self._connect() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise _store_error(kind, "read", exc) from exc
        return [dict(row) for row in rows]


def _store_error(kind: EntityKind, action: str, exc: sqlite3.Error) -> StoreError:
    missing = "no such table" in str(exc).lower()
    return StoreError(
        f"Could not {action} {kind.table}: {exc}",
        table=kind.table,
        missing_relation=missing,
    )


__all__ = [
    "EntityKind",
    "InsertResult",
    "EntityStore",
    "SQLiteEntityStore",
    "SCHEMAS",
    "COLUMNS",
]
