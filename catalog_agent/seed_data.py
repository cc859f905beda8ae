"""
Static seed catalog used to populate freshly created tables.

The rows mirror the fixture cards shown on the home screen.  They are read
once from ``data/seed_catalog.yaml`` and frozen, so every caller within a
process sees the same ordered rows.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Protocol, Sequence, Tuple

import yaml

from catalog_agent.entity_store import EntityKind
from catalog_agent.errors import SeedDataError

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "data" / "seed_catalog.yaml"


@dataclass(frozen=True)
class SeedTrack:
    id: str
    title: str
    artist: str
    album: str
    album_art: str
    duration: int


@dataclass(frozen=True)
class SeedPlaylist:
    id: str
    title: str
    description: str
    image: str


@dataclass(frozen=True)
class SeedAlbum:
    id: str
    title: str
    artist: str
    image: str
    duration: int


class SeedSource(Protocol):
    def fixture_rows(self, kind: EntityKind) -> Sequence[Mapping[str, object]]:  # pragma: no cover
        ...


class SeedCatalog:
    """Read-only fixture rows per entity kind."""

    def __init__(
        self,
        tracks: Sequence[SeedTrack],
        playlists: Sequence[SeedPlaylist],
        albums: Sequence[SeedAlbum],
    ):
        self.tracks: Tuple[SeedTrack, ...] = tuple(tracks)
        self.playlists: Tuple[SeedPlaylist, ...] = tuple(playlists)
        self.albums: Tuple[SeedAlbum, ...] = tuple(albums)
        _check_unique("recently_played", (t.id for t in self.tracks))
        _check_unique("made_for_you", (p.id for p in self.playlists))
        _check_unique("popular_albums", (a.id for a in self.albums))

    def fixture_rows(self, kind: EntityKind) -> Tuple[Dict[str, object], ...]:
        # Track rows double as the play history, in play order (most recent first).
        if kind in (EntityKind.TRACK, EntityKind.PLAY_HISTORY):
            items: Sequence = self.tracks
        elif kind is EntityKind.CURATED_PLAYLIST:
            items = self.playlists
        elif kind is EntityKind.CURATED_ALBUM:
            items = self.albums
        else:  # pragma: no cover - exhaustive over EntityKind
            raise KeyError(kind)
        return tuple(asdict(item) for item in items)


def _check_unique(section: str, ids: Iterable[str]) -> None:
    seen = set()
    for item_id in ids:
        if item_id in seen:
            raise SeedDataError(f"Duplicate id '{item_id}' in seed section '{section}'")
        seen.add(item_id)


def _duration(section: str, entry: Mapping[str, object]) -> int:
    try:
        value = int(entry.get("duration", 0))
    except (TypeError, ValueError) as exc:
        raise SeedDataError(f"Invalid duration in '{section}': {entry!r}") from exc
    if value < 0:
        raise SeedDataError(f"Negative duration in '{section}': {entry!r}")
    return value


def _entries(payload: Mapping[str, object], section: str) -> List[Mapping[str, object]]:
    entries = payload.get(section) or []
    if not isinstance(entries, list):
        raise SeedDataError(f"Seed section '{section}' must be a list")
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("id") or not entry.get("title"):
            raise SeedDataError(f"Seed entry in '{section}' needs 'id' and 'title': {entry!r}")
    return entries


def parse_catalog(payload: Mapping[str, object]) -> SeedCatalog:
    """Build a ``SeedCatalog`` from the card-shaped YAML payload."""
    tracks = [
        SeedTrack(
            id=str(entry["id"]),
            title=str(entry["title"]),
            artist=str(entry.get("artist", "")),
            album=str(entry.get("album", "")),
            album_art=str(entry.get("image", "")),
            duration=_duration("recently_played", entry),
        )
        for entry in _entries(payload, "recently_played")
    ]
    playlists = [
        SeedPlaylist(
            id=str(entry["id"]),
            title=str(entry["title"]),
            # The card's subtitle is stored as the playlist description.
            description=str(entry.get("artist", "")),
            image=str(entry.get("image", "")),
        )
        for entry in _entries(payload, "made_for_you")
    ]
    albums = [
        SeedAlbum(
            id=str(entry["id"]),
            title=str(entry["title"]),
            artist=str(entry.get("artist", "")),
            image=str(entry.get("image", "")),
            duration=_duration("popular_albums", entry),
        )
        for entry in _entries(payload, "popular_albums")
    ]
    return SeedCatalog(tracks, playlists, albums)


def load_catalog(path: Path) -> SeedCatalog:
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise SeedDataError(f"Could not parse seed catalog {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise SeedDataError(f"Seed catalog {path} must be a mapping")
    return parse_catalog(payload)


@lru_cache(maxsize=1)
def default_catalog() -> SeedCatalog:
    return load_catalog(DEFAULT_CATALOG_PATH)


__all__ = [
    "SeedTrack",
    "SeedPlaylist",
    "SeedAlbum",
    "SeedSource",
    "SeedCatalog",
    "parse_catalog",
    "load_catalog",
    "default_catalog",
]
