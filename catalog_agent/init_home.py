"""
Bootstrap a catalog agent home directory without touching existing state.

Behavior:
- Home is resolved via CATALOG_AGENT_HOME or defaults to ~/.catalog_agent.
- Creates dirs: home/config, home/data, home/routes.
- Copies the example settings into home/config if missing.
- Ensures catalog.db exists and carries every table; NEVER drops or rewrites rows.
- --dry-run prints what would happen without changing anything.
"""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import List

from catalog_agent import migrate_db, paths

EXAMPLES_DIR = Path(__file__).resolve().parent / "examples"


def copy_if_missing(src: Path, dest: Path, dry_run: bool) -> str:
    if dest.exists():
        return f"skip (exists): {dest}"
    if dry_run:
        return f"would copy: {src} -> {dest}"
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(src.read_bytes())
    return f"copied: {src.name} -> {dest}"


def ensure_home(dry_run: bool) -> List[str]:
    actions: List[str] = []
    home = paths.agent_home()
    for dir_path in (home, paths.config_dir(), paths.data_dir(), paths.routes_dir()):
        if dry_run:
            actions.append(f"ensure dir (dry-run): {dir_path}")
        else:
            dir_path.mkdir(parents=True, exist_ok=True)

    for fname in ("settings.json",):
        src = EXAMPLES_DIR / fname
        if src.exists():
            actions.append(copy_if_missing(src, paths.config_dir() / fname, dry_run))

    db_path = paths.db_path()
    if dry_run:
        state = "exists" if db_path.exists() else "missing"
        actions.append(f"would migrate DB ({state}): {db_path}")
    else:
        added = migrate_db.migrate(db_path)
        if added:
            actions.append(f"initialized DB at {db_path} (added: {', '.join(added)})")
        else:
            actions.append(f"skip DB (up to date): {db_path}")
    return actions


def main() -> None:
    parser = argparse.ArgumentParser(description="Initialize the catalog agent home directory safely.")
    parser.add_argument("--dry-run", action="store_true", help="Print actions without changes.")
    args = parser.parse_args()
    for action in ensure_home(dry_run=args.dry_run):
        print(action)


if __name__ == "__main__":
    main()
