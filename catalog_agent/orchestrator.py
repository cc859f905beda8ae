"""
Query orchestration: free text in, provisioned tables and read endpoints out.

A run walks a fixed sequence of states::

    IDLE -> CLASSIFYING -> PROVISIONING -> GENERATING_ARTIFACTS -> REPORTING_DONE

and drops to FAILED on the first fatal error.  Nothing survives between
runs except what the entity store persisted.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from catalog_agent.artifacts import Artifact, has_artifact, render_artifact, write_artifact
from catalog_agent.entity_store import EntityKind, EntityStore
from catalog_agent.errors import (
    ArtifactWriteFailure,
    ClassificationDegraded,
    ProvisioningError,
)
from catalog_agent.intent_classifier import (
    Intent,
    IntentClassifier,
    advisory_entity_kinds,
    derive_entity_kinds,
)
from catalog_agent.provisioning import ProvisioningEngine, ProvisionReport, utcnow
from catalog_agent.seed_data import SeedSource
from catalog_agent.step_log import StepLog

logger = logging.getLogger(__name__)

ArtifactWriter = Callable[[Artifact], Path]


class AgentState(str, Enum):
    IDLE = "idle"
    CLASSIFYING = "classifying"
    PROVISIONING = "provisioning"
    GENERATING_ARTIFACTS = "generating_artifacts"
    REPORTING_DONE = "reporting_done"
    FAILED = "failed"


@dataclass
class RunReport:
    """Everything one run produced, in order."""

    query: str
    state: AgentState = AgentState.IDLE
    transitions: List[AgentState] = field(default_factory=list)
    steps: List[str] = field(default_factory=list)
    intent: Optional[Intent] = None
    degraded: bool = False
    kinds: Tuple[EntityKind, ...] = ()
    provisioned: List[ProvisionReport] = field(default_factory=list)
    artifacts: List[Path] = field(default_factory=list)
    error: Optional[Union[ProvisioningError, ArtifactWriteFailure]] = None

    @property
    def succeeded(self) -> bool:
        return self.state is AgentState.REPORTING_DONE

    @property
    def failed(self) -> bool:
        return self.state is AgentState.FAILED

    def render(self) -> str:
        return "\n".join(self.steps)


def directory_writer(root: Path) -> ArtifactWriter:
    """Artifact writer that places every artifact under ``root``."""

    def _write(artifact: Artifact) -> Path:
        return write_artifact(artifact, root)

    return _write


class QueryOrchestrator:
    def __init__(
        self,
        store: EntityStore,
        *,
        artifact_writer: ArtifactWriter,
        classifier: Optional[IntentClassifier] = None,
        seed_source: Optional[SeedSource] = None,
        verify_limit: int = 5,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.classifier = classifier
        self.artifact_writer = artifact_writer
        self.engine = ProvisioningEngine(
            store, seed_source, verify_limit=verify_limit, clock=clock
        )
        self.state = AgentState.IDLE

    def run(self, query: str) -> RunReport:
        """Process one query. Fatal errors end up on ``report.error``."""
        log = StepLog()
        report = RunReport(query=query)
        logger.info("Processing query: %s", query)
        try:
            self._transition(report, AgentState.CLASSIFYING)
            self._analyze(query, report, log)

            self._transition(report, AgentState.PROVISIONING)
            self._provision(report, log)

            self._transition(report, AgentState.GENERATING_ARTIFACTS)
            self._generate(report, log)
            self._integration_notice(log)

            self._transition(report, AgentState.REPORTING_DONE)
            log.note("✅ Agent completed successfully!")
        except (ProvisioningError, ArtifactWriteFailure) as exc:
            report.error = exc
            log.note(f"❌ Agent failed: {exc}")
            logger.error("Run failed in %s: %s", self.state.value, exc)
            self._transition(report, AgentState.FAILED)
        finally:
            report.steps = list(log.lines)
            self.state = AgentState.IDLE
        return report

    def process_query(self, query: str) -> RunReport:
        """Like ``run`` but re-raises the error that failed the run."""
        report = self.run(query)
        if report.error is not None:
            raise report.error
        return report

    def _transition(self, report: RunReport, state: AgentState) -> None:
        logger.debug("%s -> %s", self.state.value, state.value)
        self.state = state
        report.state = state
        report.transitions.append(state)

    # --- Steps ---------------------------------------------------------------
    def _analyze(self, query: str, report: RunReport, log: StepLog) -> None:
        log.step("🧠 Analyzing query...")
        advisory: Tuple[EntityKind, ...] = ()
        if self.classifier is None:
            report.degraded = True
            log.note("Classifier unavailable; using keyword matching only (reduced confidence)")
        else:
            try:
                intent = self.classifier.classify(query)
                advisory, unknown = advisory_entity_kinds(intent)
            except ClassificationDegraded as exc:
                report.degraded = True
                logger.warning("Classification degraded: %s", exc)
                log.note(f"Classification degraded ({exc}); using keyword matching only (reduced confidence)")
            except Exception as exc:  # injected classifiers may raise anything
                report.degraded = True
                logger.warning("Classifier raised %s: %s", type(exc).__name__, exc)
                log.note(
                    f"Classifier error ({type(exc).__name__}: {exc}); "
                    "using keyword matching only (reduced confidence)"
                )
            else:
                report.intent = intent
                log.note(f"📋 Operation: {intent.operation}")
                log.note(f"🗃️  Tables: {', '.join(intent.entities) or 'none'}")
                log.note(f"📝 Description: {intent.description}")
                if unknown:
                    log.note(f"Ignoring unknown tables from classifier: {', '.join(unknown)}")

        report.kinds = derive_entity_kinds(query)
        if report.kinds:
            log.note(f"Keyword match: {', '.join(kind.table for kind in report.kinds)}")
        else:
            log.note("No known entity kinds matched the query")
        if report.intent is not None and set(advisory) != set(report.kinds):
            log.note("Classifier and keyword matching disagree; keyword matching is authoritative")

    def _provision(self, report: RunReport, log: StepLog) -> None:
        log.step("🔧 Executing database operations...")
        if not report.kinds:
            log.note("Nothing to provision")
            return
        for kind in report.kinds:
            report.provisioned.append(self.engine.provision(kind, log))

    def _generate(self, report: RunReport, log: StepLog) -> None:
        log.step("🛣️  Creating API routes...")
        for kind in report.kinds:
            if not has_artifact(kind):
                continue
            artifact = render_artifact(kind)
            try:
                destination = self.artifact_writer(artifact)
            except OSError as exc:
                raise ArtifactWriteFailure(
                    f"Could not write {artifact.path}: {exc}", path=artifact.path
                ) from exc
            report.artifacts.append(destination)
            log.note(f"Created {artifact.path} at {destination}")
        if not report.artifacts:
            log.note("No read endpoints to generate")

    def _integration_notice(self, log: StepLog) -> None:
        log.step("🎨 Frontend integration...")
        log.note("Frontend integration is not automated; read endpoints are ready for the UI to consume")


__all__ = [
    "AgentState",
    "RunReport",
    "ArtifactWriter",
    "QueryOrchestrator",
    "directory_writer",
]
