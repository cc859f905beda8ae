"""
Intent classification for natural-language provisioning requests.

Two stages run side by side:

- ``LLMIntentClassifier``: asks a chat model to describe the request as a
  structured ``Intent``.  The answer is advisory; it is logged but never
  decides what gets provisioned.
- ``derive_entity_kinds``: deterministic keyword matching against the known
  triggers.  This is the authoritative entity set.

The model is reached through the tiny ``CompletionClient`` protocol so tests
can plug in a stub and never touch the network.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Protocol, Sequence, Tuple

from openai import OpenAI

from catalog_agent.entity_store import COLUMNS, EntityKind
from catalog_agent.errors import ClassificationDegraded

logger = logging.getLogger(__name__)

OPERATIONS = ("create_table", "query_data", "update_data")

# Ordered: the derived entity set follows this order, not the query's.
KEYWORD_TRIGGERS: Tuple[Tuple[str, Tuple[EntityKind, ...]], ...] = (
    ("recently played", (EntityKind.TRACK, EntityKind.PLAY_HISTORY)),
    ("made for you", (EntityKind.CURATED_PLAYLIST,)),
    ("popular albums", (EntityKind.CURATED_ALBUM,)),
)


# --- Domain objects --------------------------------------------------------
@dataclass(frozen=True)
class Intent:
    """Structured reading of a request, as reported by the classifier."""

    operation: str
    entities: Tuple[str, ...]
    description: str
    needs_endpoint: bool = False
    needs_frontend_update: bool = False


class IntentClassifier(Protocol):
    def classify(self, text: str) -> Intent:  # pragma: no cover - interface only
        ...


# --- Model wiring ------------------------------------------------------------
class CompletionClient(Protocol):
    """Tiny protocol so we can swap out the actual model client in tests."""

    def complete(self, prompt: str) -> str:  # pragma: no cover - interface only
        ...


class OpenAIChatCompletionClient:
    """
    Small adapter around the OpenAI SDK so the classifier can stay decoupled.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        temperature: float = 0.0,
        system_prompt: str = "You are a careful database agent for a music streaming app.",
    ):
        self._client = OpenAI()
        self._model = model
        self._temperature = temperature
        self._system_prompt = system_prompt

    def complete(self, prompt: str) -> str:
        """
        Issues a chat completion and returns the assistant message text.
        """
        response = self._client.chat.completions.create(
            model=self._model,
            temperature=self._temperature,
            messages=[
                {"role": "system", "content": self._system_prompt},
                {"role": "user", "content": prompt},
            ],
        )
        return response.choices[0].message.content or ""


# --- Prompt assembly -------------------------------------------------------
class IntentRequestBuilder:
    """
    Builds the classification prompt: current schema plus the JSON contract.
    """

    def __init__(self, kinds: Sequence[EntityKind] = tuple(EntityKind)):
        self.kinds = kinds

    def build(self, query: str) -> str:
        schema_lines = "\n".join(
            f"- {kind.table}: {', '.join(COLUMNS[kind])}" for kind in self.kinds
        )
        contract = json.dumps(
            {
                "operation": " | ".join(OPERATIONS),
                "tables": ["table_names"],
                "description": "what this query wants to achieve",
                "needsAPIRoute": True,
                "needsFrontendUpdate": False,
            },
            indent=2,
        )
        prompt = f"""
Analyze the request below and decide which tables it touches, whether they
need to be created or populated, and whether a read endpoint is required.

Query: "{query}"

Current database schema:
{schema_lines}

Return ONLY valid JSON that matches this schema:
{contract}
"""
        return "\n".join(line.rstrip() for line in prompt.strip().splitlines())


# --- Response parsing ------------------------------------------------------
class IntentResponseParser:
    """
    Ensures the model output matches the expected schema.
    """

    def parse(self, response_text: str) -> Intent:
        json_text = self._extract_json(response_text)
        try:
            payload = json.loads(json_text)
        except json.JSONDecodeError as exc:
            raise ValueError("Classifier response was not valid JSON") from exc
        if not isinstance(payload, dict):
            raise ValueError("Classifier response must be a JSON object")

        operation = payload.get("operation")
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation in classifier response: {operation!r}")

        tables = payload.get("tables")
        if not isinstance(tables, list):
            raise ValueError("Classifier response missing 'tables' list")

        return Intent(
            operation=operation,
            entities=tuple(dict.fromkeys(str(t) for t in tables)),
            description=str(payload.get("description") or ""),
            needs_endpoint=bool(payload.get("needsAPIRoute", False)),
            needs_frontend_update=bool(payload.get("needsFrontendUpdate", False)),
        )

    def _extract_json(self, text: str) -> str:
        """
        Models sometimes wrap JSON in ```json fences. Strip those first.
        """
        if "```" not in text:
            return text.strip()
        match = re.search(r"```(?:json)?\s*(.*)```", text, re.DOTALL)
        if not match:
            return text.strip()
        return match.group(1).strip()


class LLMIntentClassifier:
    """``IntentClassifier`` backed by a chat completion, one call, no retry."""

    def __init__(self, client: CompletionClient):
        self.client = client
        self.builder = IntentRequestBuilder()
        self.parser = IntentResponseParser()

    def classify(self, text: str) -> Intent:
        prompt = self.builder.build(text)
        try:
            raw_response = self.client.complete(prompt)
        except Exception as exc:  # network/SDK errors
            raise ClassificationDegraded(f"Classifier call failed: {exc}") from exc
        try:
            return self.parser.parse(raw_response)
        except ValueError as exc:
            raise ClassificationDegraded(str(exc)) from exc


# --- Keyword stage -----------------------------------------------------------
def derive_entity_kinds(query: str) -> Tuple[EntityKind, ...]:
    """Authoritative entity kinds for ``query``, by trigger substring."""
    lowered = query.lower()
    kinds: Dict[EntityKind, None] = {}
    for trigger, trigger_kinds in KEYWORD_TRIGGERS:
        if trigger in lowered:
            for kind in trigger_kinds:
                kinds[kind] = None
    return tuple(kinds)


def advisory_entity_kinds(intent: Intent) -> Tuple[Tuple[EntityKind, ...], List[str]]:
    """
    Map the classifier's table names onto entity kinds.

    Returns (kinds, unknown_names).
    """
    by_table = {kind.table: kind for kind in EntityKind}
    kinds: Dict[EntityKind, None] = {}
    unknown: List[str] = []
    for name in intent.entities:
        kind = by_table.get(name.strip().lower())
        if kind is None:
            unknown.append(name)
        else:
            kinds[kind] = None
    return tuple(kinds), unknown


__all__ = [
    "Intent",
    "IntentClassifier",
    "CompletionClient",
    "OpenAIChatCompletionClient",
    "IntentRequestBuilder",
    "IntentResponseParser",
    "LLMIntentClassifier",
    "KEYWORD_TRIGGERS",
    "derive_entity_kinds",
    "advisory_entity_kinds",
]
