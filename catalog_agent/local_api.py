"""
Local HTTP surface for the catalog.

Serves every generated read endpoint found in the routes directory, plus a
small endpoint that runs the agent on a query.  Routes are only loaded when
the app is built, so start it through the factory::

    uvicorn --factory catalog_agent.local_api:create_app
"""
from __future__ import annotations

import importlib.util
import logging
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI
from pydantic import BaseModel

from catalog_agent import settings as agent_settings
from catalog_agent.agent import build_orchestrator

logger = logging.getLogger(__name__)


class QueryRequest(BaseModel):
    query: str


class QueryResponse(BaseModel):
    state: str
    steps: List[str]
    artifacts: List[str]
    error: Optional[str] = None


def load_generated_routers(app: FastAPI, routes_dir: Path) -> List[str]:
    """Include the ``router`` of each generated module. Returns module names."""
    loaded: List[str] = []
    if not routes_dir.exists():
        return loaded
    for module_path in sorted(routes_dir.glob("*.py")):
        name = f"catalog_routes_{module_path.stem}"
        spec = importlib.util.spec_from_file_location(name, module_path)
        if spec is None or spec.loader is None:
            continue
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as exc:  # one broken file must not take down the others
            logger.warning("Skipping %s: failed to load (%s)", module_path.name, exc)
            continue
        router = getattr(module, "router", None)
        if router is None:
            logger.warning("Skipping %s: no router defined", module_path.name)
            continue
        app.include_router(router)
        loaded.append(module_path.stem)
    return loaded


def create_app(routes_dir: Optional[Path] = None) -> FastAPI:
    settings = agent_settings.load_settings()
    routes_dir = routes_dir or agent_settings.artifacts_dir(settings)
    app = FastAPI(title="Local Catalog API")

    @app.post("/agent/query", response_model=QueryResponse)
    def run_query(request: QueryRequest) -> QueryResponse:
        report = build_orchestrator(settings).run(request.query)
        return QueryResponse(
            state=report.state.value,
            steps=report.steps,
            artifacts=[str(p) for p in report.artifacts],
            error=str(report.error) if report.error else None,
        )

    loaded = load_generated_routers(app, routes_dir)
    logger.info("Loaded generated routes: %s", ", ".join(loaded) or "none")
    return app
