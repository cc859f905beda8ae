from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

from catalog_agent.orchestrator import RunReport

# Lines missing any of these are skipped by load_runs.
REQUIRED_KEYS = ("timestamp", "state", "query")


def append_event(path: Path, event: Dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(event) + "\n")


def record_run_event(path: Path, report: RunReport) -> None:
    append_event(
        path,
        {
            "type": "agent_run",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "query": report.query,
            "state": report.state.value,
            "degraded": report.degraded,
            "kinds": [kind.table for kind in report.kinds],
            "inserted": {
                item.kind.table: item.inserted for item in report.provisioned
            },
            "artifacts": [str(p) for p in report.artifacts],
            "error": str(report.error) if report.error else None,
        },
    )


def load_runs(path: Path) -> List[Dict]:
    if not path.exists():
        return []
    runs: List[Dict] = []
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            if not line.strip():
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(event, dict) or event.get("type") != "agent_run":
                continue
            if any(key not in event for key in REQUIRED_KEYS):
                continue
            runs.append(event)
    return runs
