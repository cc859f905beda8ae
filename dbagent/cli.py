from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from dbagent import paths as cli_paths
from catalog_agent import agent, init_home, run_history, settings as agent_settings, verify_db
from catalog_agent.entity_store import SQLiteEntityStore


def _set_home(home: str | None) -> None:
    if home:
        cli_paths.set_home(Path(home))


def _prepare(args: argparse.Namespace) -> None:
    _set_home(args.home)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    agent_settings.load_env_file(Path.cwd() / ".env")
    agent_settings.load_env_file(cli_paths.agent_home() / ".env")


def _run_queries(queries: Sequence[str], args: argparse.Namespace) -> int:
    settings = agent_settings.load_settings()
    artifacts_dir = Path(args.artifacts_dir).expanduser() if args.artifacts_dir else None
    orchestrator = agent.build_orchestrator(settings, artifacts_dir=artifacts_dir)
    for query in queries:
        print(f'\n🤖 Database Agent Processing: "{query}"\n')
        report = orchestrator.run(query)
        print(report.render())
        run_history.record_run_event(cli_paths.run_history_path(), report)
        if report.failed:
            print(f"\n❌ Agent failed: {report.error}")
            return 1
        print("\n✅ Agent completed successfully!")
    return 0


def _prompt_query() -> str | None:
    while True:
        try:
            query = input("Enter your database query: ").strip()
        except EOFError:
            return None
        if query:
            return query
        print("Please enter a query")


def cmd_query(args: argparse.Namespace) -> int:
    _prepare(args)
    query = " ".join(args.text).strip() or _prompt_query()
    if not query:
        return 1
    return _run_queries([query], args)


def cmd_test(args: argparse.Namespace) -> int:
    _prepare(args)
    print("🧪 Running Test Queries...")
    code = _run_queries(agent.SELF_TEST_QUERIES, args)
    if code == 0:
        print("\n🎉 All test queries completed!")
    return code


def cmd_verify(args: argparse.Namespace) -> int:
    _prepare(args)
    print("🔍 Verifying Database Contents...\n")
    summaries = verify_db.summarize(SQLiteEntityStore(cli_paths.db_path()))
    for line in verify_db.render(summaries):
        print(line)
    if all(summary.missing for summary in summaries):
        print("\n💡 Tip: run 'dbagent test' to populate the database first")
        return 1
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    _prepare(args)
    for action in init_home.ensure_home(dry_run=args.dry_run):
        print(action)
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    _prepare(args)
    runs = run_history.load_runs(cli_paths.run_history_path())
    if not runs:
        print("No agent runs recorded yet.")
        return 0
    for run in runs[-args.limit:]:
        kinds = ", ".join(run.get("kinds") or []) or "none"
        print(f"{run['timestamp']}  {run['state']:<15} [{kinds}] {run['query']}")
    return 0


def _redact(value: str) -> str:
    if not value:
        return ""
    if len(value) <= 4:
        return "***"
    return value[:2] + "***" + value[-2:]


def cmd_doctor(args: argparse.Namespace) -> int:
    _prepare(args)
    settings = agent_settings.load_settings()
    resolved = cli_paths.resolved_paths(settings)
    config_dir = resolved["config"]
    db_path = resolved["db"]

    missing = []
    print(f"Home: {resolved['home']}")
    print(f"Config: {config_dir} (settings.json)")
    print(f"Data: {resolved['data']}")
    print(f"Routes: {resolved['routes']}")
    print(f"DB: {db_path}")

    if not (config_dir / "settings.json").exists():
        missing.append("settings.json")
    if not db_path.exists():
        # do not create here; just warn
        missing.append(db_path.name)

    openai_key = os.environ.get("OPENAI_API_KEY")
    print("Env:")
    print(f"  OPENAI_API_KEY: {'set' if openai_key else 'missing'} ({_redact(openai_key or '')})")
    if not agent_settings.classifier_enabled(settings):
        print("  classifier: disabled (keyword matching only)")

    if missing:
        print(f"Missing critical files: {', '.join(missing)}")
        return 1
    return 0


def cmd_print_config(args: argparse.Namespace) -> int:
    _prepare(args)
    settings = agent_settings.load_settings()
    print("Paths:")
    for name, value in cli_paths.resolved_paths(settings).items():
        print(f"  {name}: {value}")
    print("Settings:")
    print(json.dumps(settings, indent=2, default=str))
    return 0


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--home", help="Override CATALOG_AGENT_HOME for this command.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Natural-language database agent for the music catalog")
    sub = parser.add_subparsers(dest="command", required=True)

    p_query = sub.add_parser("query", help="Process a natural language database query.")
    p_query.add_argument("text", nargs="*", help="Query text; prompts when omitted.")
    p_query.add_argument("--artifacts-dir", help="Where generated read endpoints are written.")
    _add_common(p_query)
    p_query.set_defaults(func=cmd_query)

    p_test = sub.add_parser("test", help="Run the two built-in test queries.")
    p_test.add_argument("--artifacts-dir", help="Where generated read endpoints are written.")
    _add_common(p_test)
    p_test.set_defaults(func=cmd_test)

    p_verify = sub.add_parser("verify", help="Show record counts and sample rows.")
    _add_common(p_verify)
    p_verify.set_defaults(func=cmd_verify)

    p_init = sub.add_parser("init", help="Initialize the agent home directory and database.")
    p_init.add_argument("--dry-run", action="store_true", help="Print actions without changes.")
    _add_common(p_init)
    p_init.set_defaults(func=cmd_init)

    p_hist = sub.add_parser("history", help="List recorded agent runs.")
    p_hist.add_argument("--limit", type=int, default=20, help="How many runs to show.")
    _add_common(p_hist)
    p_hist.set_defaults(func=cmd_history)

    p_doc = sub.add_parser("doctor", help="Check environment and required files.")
    _add_common(p_doc)
    p_doc.set_defaults(func=cmd_doctor)

    p_print = sub.add_parser("print-config", help="Print resolved config and paths.")
    _add_common(p_print)
    p_print.set_defaults(func=cmd_print_config)

    args = parser.parse_args(argv)
    code = args.func(args)
    sys.exit(code)


if __name__ == "__main__":
    main()
