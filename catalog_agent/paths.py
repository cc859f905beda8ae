from __future__ import annotations

import os
from pathlib import Path

HOME_ENV = "CATALOG_AGENT_HOME"
DB_ENV = "CATALOG_AGENT_DB"


def agent_home() -> Path:
    env = os.environ.get(HOME_ENV)
    if env:
        return Path(env).expanduser()
    return Path("~/.catalog_agent").expanduser()


def package_root() -> Path:
    return Path(__file__).resolve().parent


def config_dir() -> Path:
    return agent_home() / "config"


def data_dir() -> Path:
    return agent_home() / "data"


def routes_dir() -> Path:
    """Default destination for generated read endpoints."""
    return agent_home() / "routes"


def db_path() -> Path:
    # An explicit database path wins over the home layout.
    env = os.environ.get(DB_ENV)
    if env:
        return Path(env).expanduser()
    return agent_home() / "catalog.db"


def run_history_path() -> Path:
    return data_dir() / "agent_runs.jsonl"
