"""Report what the catalog tables currently hold."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from catalog_agent.entity_store import EntityKind, EntityStore
from catalog_agent.errors import StoreError

SAMPLE_SIZE = 3


@dataclass
class TableSummary:
    kind: EntityKind
    count: Optional[int] = None
    sample: List[Dict[str, object]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def missing(self) -> bool:
        return self.count is None


def summarize(store: EntityStore, sample_size: int = SAMPLE_SIZE) -> List[TableSummary]:
    summaries: List[TableSummary] = []
    for kind in EntityKind:
        summary = TableSummary(kind=kind)
        try:
            summary.count = store.count(kind)
            summary.sample = store.select(kind, limit=sample_size)
        except StoreError as exc:
            summary.count = None
            summary.error = "missing" if exc.missing_relation else str(exc)
        summaries.append(summary)
    return summaries


def format_row(kind: EntityKind, row: Dict[str, object]) -> str:
    if kind is EntityKind.PLAY_HISTORY:
        return f"ID: {row['id']} | Track ID: {row['track_id']} | Played: {row['played_at']}"
    if kind is EntityKind.CURATED_PLAYLIST:
        return f"ID: {row['id']} | \"{row['title']}\""
    return f"ID: {row['id']} | \"{row['title']}\" by {row['artist']}"


def render(summaries: List[TableSummary]) -> List[str]:
    lines = ["📊 Record Counts:"]
    for summary in summaries:
        if summary.missing:
            lines.append(f"   {summary.kind.table}: {summary.error}")
        else:
            lines.append(f"   {summary.kind.table}: {summary.count} records")
    lines.append("")
    lines.append("🎵 Sample Data from Tables:")
    for summary in summaries:
        if not summary.sample:
            continue
        lines.append(f"{summary.kind.table.upper()}:")
        lines.extend(f"   {format_row(summary.kind, row)}" for row in summary.sample)
    return lines
