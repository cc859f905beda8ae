from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Mapping

from catalog_agent import settings as agent_settings
from catalog_agent.paths import (
    HOME_ENV,
    agent_home,
    config_dir,
    data_dir,
    db_path,
    routes_dir,
    run_history_path,
)


def set_home(path: Path | None) -> None:
    """Point every engine path helper at ``path`` for this process."""
    if path:
        os.environ[HOME_ENV] = str(path.expanduser())


def resolved_paths(settings: Mapping[str, object]) -> Dict[str, Path]:
    # routes honours the artifacts_dir setting, everything else the home layout
    return {
        "home": agent_home(),
        "config": config_dir(),
        "data": data_dir(),
        "routes": agent_settings.artifacts_dir(dict(settings)),
        "db": db_path(),
        "runs": run_history_path(),
    }


__all__ = [
    "set_home",
    "resolved_paths",
    "agent_home",
    "config_dir",
    "data_dir",
    "routes_dir",
    "db_path",
    "run_history_path",
]
