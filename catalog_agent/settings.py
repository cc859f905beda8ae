"""
Settings loader for the catalog agent.

Settings come from three places, later ones winning:

- ``DEFAULT_SETTINGS`` below
- ``<home>/config/settings.json``
- a handful of environment variables (``.env`` files are folded into the
  environment first, without overriding anything already set)
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from catalog_agent import paths

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, object] = {
    "model": "gpt-4o-mini",
    "temperature": 0.0,
    "enable_classifier": True,
    "verify_sample_limit": 5,
    "artifacts_dir": None,
}


def load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for raw_line in path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and value:
            os.environ.setdefault(key, value)


def _load_json(path: Path, fallback: Dict) -> Dict:
    if not path.exists():
        return fallback
    try:
        payload = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        logger.warning("Could not parse %s: %s", path.name, exc)
        return fallback
    if not isinstance(payload, dict):
        logger.warning("Ignoring %s: expected a JSON object, got %s", path.name, type(payload).__name__)
        return fallback
    return payload


def load_settings(config_dir: Optional[Path] = None) -> Dict[str, object]:
    config_dir = config_dir or paths.config_dir()
    settings = DEFAULT_SETTINGS | _load_json(config_dir / "settings.json", {})
    if os.environ.get("CATALOG_AGENT_MODEL"):
        settings["model"] = os.environ["CATALOG_AGENT_MODEL"]
    return settings


def artifacts_dir(settings: Dict[str, object]) -> Path:
    configured = settings.get("artifacts_dir")
    if configured:
        return Path(str(configured)).expanduser()
    return paths.routes_dir()


def classifier_enabled(settings: Dict[str, object]) -> bool:
    return bool(settings.get("enable_classifier", True)) and bool(
        os.environ.get("OPENAI_API_KEY")
    )
