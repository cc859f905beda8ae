"""Wire the orchestrator from settings and the resolved home layout."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from catalog_agent import paths, settings as agent_settings
from catalog_agent.entity_store import SQLiteEntityStore
from catalog_agent.intent_classifier import LLMIntentClassifier, OpenAIChatCompletionClient
from catalog_agent.orchestrator import QueryOrchestrator, directory_writer

logger = logging.getLogger(__name__)

SELF_TEST_QUERIES = (
    "Can you store the recently played songs in a table",
    "Can you store the 'Made for you' and 'Popular albums' in a table",
)


def build_classifier(settings: Dict[str, object]) -> Optional[LLMIntentClassifier]:
    if not agent_settings.classifier_enabled(settings):
        logger.info("Intent classifier disabled or OPENAI_API_KEY missing")
        return None
    client = OpenAIChatCompletionClient(
        model=str(settings["model"]),
        temperature=float(settings["temperature"]),
    )
    return LLMIntentClassifier(client)


def build_orchestrator(
    settings: Optional[Dict[str, object]] = None,
    *,
    db_path: Optional[Path] = None,
    artifacts_dir: Optional[Path] = None,
) -> QueryOrchestrator:
    settings = settings if settings is not None else agent_settings.load_settings()
    store = SQLiteEntityStore(db_path or paths.db_path())
    routes = artifacts_dir or agent_settings.artifacts_dir(settings)
    return QueryOrchestrator(
        store,
        artifact_writer=directory_writer(routes),
        classifier=build_classifier(settings),
        verify_limit=int(settings.get("verify_sample_limit", 5)),
    )
