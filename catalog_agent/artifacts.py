"""
Read-endpoint generation.

``render_artifact`` is pure: the same entity kind always renders the same
module text.  ``write_artifact`` is the only side effect and simply replaces
whatever sits at the destination.

Every generated endpoint returns rows in the card shape consumed by the
home screen: ``{id, title, artist, album, image, duration}``.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from string import Template
from typing import Dict

from catalog_agent.entity_store import EntityKind
from catalog_agent.errors import ArtifactWriteFailure

PLAYLIST_DEFAULT_DURATION = 210


@dataclass(frozen=True)
class Artifact:
    kind: EntityKind
    path: str
    content: str


@dataclass(frozen=True)
class RetrievalSpec:
    filename: str
    route: str
    function: str
    label: str
    query: str


RETRIEVALS: Dict[EntityKind, RetrievalSpec] = {
    EntityKind.PLAY_HISTORY: RetrievalSpec(
        filename="recently_played.py",
        route="/api/recently-played",
        function="recently_played",
        label="recently played",
        query="""
    SELECT t.id AS id,
           t.title AS title,
           t.artist AS artist,
           t.album AS album,
           t.album_art AS image,
           t.duration AS duration
    FROM recently_played r
    INNER JOIN tracks t ON r.track_id = t.id
    ORDER BY r.played_at DESC
    LIMIT 10
""",
    ),
    EntityKind.CURATED_PLAYLIST: RetrievalSpec(
        filename="made_for_you.py",
        route="/api/made-for-you",
        function="made_for_you",
        label="made for you playlists",
        query=f"""
    SELECT id,
           title,
           description AS artist,
           title AS album,
           image,
           {PLAYLIST_DEFAULT_DURATION} AS duration
    FROM made_for_you_playlists
    ORDER BY rowid
""",
    ),
    EntityKind.CURATED_ALBUM: RetrievalSpec(
        filename="popular_albums.py",
        route="/api/popular-albums",
        function="popular_albums",
        label="popular albums",
        query="""
    SELECT id,
           title,
           artist,
           title AS album,
           image,
           duration
    FROM popular_albums
    ORDER BY rowid
""",
    ),
}

_ROUTE_TEMPLATE = Template('''"""
Read endpoint for $label.

Generated by catalog_agent. Regenerating overwrites this file.
"""
from __future__ import annotations

import sqlite3
from typing import Dict, List

from fastapi import APIRouter, HTTPException

from catalog_agent import paths
from catalog_agent.api_models import TrackCard

router = APIRouter()

QUERY = """$query"""


@router.get("$route", response_model=List[TrackCard])
def $function() -> List[Dict[str, object]]:
    conn = sqlite3.connect(paths.db_path())
    try:
        conn.row_factory = sqlite3.Row
        rows = conn.execute(QUERY).fetchall()
    except sqlite3.Error as exc:
        raise HTTPException(status_code=500, detail="Failed to fetch $label") from exc
    finally:
        conn.close()
    return [dict(row) for row in rows]
''')


def has_artifact(kind: EntityKind) -> bool:
    return kind in RETRIEVALS


def render_artifact(kind: EntityKind) -> Artifact:
    """Render the read endpoint module for ``kind``."""
    spec = RETRIEVALS.get(kind)
    if spec is None:
        raise ValueError(f"No read endpoint is generated for {kind.table}")
    content = _ROUTE_TEMPLATE.substitute(
        label=spec.label,
        query=spec.query,
        route=spec.route,
        function=spec.function,
    )
    return Artifact(kind=kind, path=spec.filename, content=content)


def write_artifact(artifact: Artifact, root: Path) -> Path:
    destination = Path(root) / artifact.path
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(artifact.content, encoding="utf-8")
    except OSError as exc:
        raise ArtifactWriteFailure(
            f"Could not write {destination}: {exc}", path=str(destination)
        ) from exc
    return destination


__all__ = [
    "Artifact",
    "RetrievalSpec",
    "RETRIEVALS",
    "PLAYLIST_DEFAULT_DURATION",
    "has_artifact",
    "render_artifact",
    "write_artifact",
]
