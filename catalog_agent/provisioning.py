"""
Idempotent provisioning of one entity kind.

``ProvisioningEngine.provision`` runs the same three phases for every kind:

1. ensure schema: probe the table, create it once if the probe fails
2. populate once: seed an empty table, leave a non-empty one untouched
3. verify: read back a bounded sample and log what was found

Phases 1 and 2 raise ``ProvisioningError`` subclasses, which abort the
caller's run.  Phase 3 only ever logs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Mapping, Optional, Sequence

from catalog_agent.entity_store import EntityKind, EntityStore, InsertResult
from catalog_agent.errors import (
    PopulationFailure,
    SchemaCreationFailure,
    StoreError,
    VerificationMismatch,
)
from catalog_agent.seed_data import SeedSource, default_catalog
from catalog_agent.step_log import StepLog

logger = logging.getLogger(__name__)

HISTORY_SPACING = timedelta(hours=1)


@dataclass
class ProvisionReport:
    kind: EntityKind
    schema_created: bool = False
    already_populated: bool = False
    inserted: int = 0
    conflicts: int = 0
    dependent_inserted: int = 0
    observed: int = 0
    verified: bool = True


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProvisioningEngine:
    def __init__(
        self,
        store: EntityStore,
        seed_source: Optional[SeedSource] = None,
        *,
        verify_limit: int = 5,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.seed_source = seed_source or default_catalog()
        self.verify_limit = verify_limit
        self.clock = clock

    def provision(self, kind: EntityKind, log: Optional[StepLog] = None) -> ProvisionReport:
        log = log if log is not None else StepLog()
        report = ProvisionReport(kind=kind)
        log.note(f"Working with {kind.label}...")

        if kind is EntityKind.PLAY_HISTORY:
            # History rows reference tracks, so that table has to exist first.
            self._ensure_schema(EntityKind.TRACK, log)
        report.schema_created = self._ensure_schema(kind, log)
        self._populate_once(kind, report, log)
        self._verify(kind, report, log)

        log.note(f"{kind.table} table is ready!")
        return report

    # --- Phase 1 -------------------------------------------------------------
    def _ensure_schema(self, kind: EntityKind, log: StepLog) -> bool:
        log.note(f"Verifying table {kind.table} exists...")
        try:
            existing = self.store.count(kind)
        except StoreError as exc:
            if exc.missing_relation:
                log.note(f"Table {kind.table} not found, creating...")
            else:
                log.note(f"Table {kind.table} could not be read ({exc}), creating...")
            try:
                self.store.ensure_schema(kind)
            except StoreError as create_exc:
                log.note(f"❌ Error creating table {kind.table}: {create_exc}")
                raise SchemaCreationFailure(
                    f"Could not create table {kind.table}: {create_exc}", kind=kind.table
                ) from create_exc
            log.note(f"Table {kind.table} created or already exists")
            logger.info("Created table %s", kind.table)
            return True

        state = "has data" if existing else "empty"
        log.note(f"✅ Table {kind.table} is ready ({state})")
        return False

    # --- Phase 2 -------------------------------------------------------------
    def _populate_once(self, kind: EntityKind, report: ProvisionReport, log: StepLog) -> None:
        try:
            count = self.store.count(kind)
        except StoreError as exc:
            raise PopulationFailure(
                f"Could not count rows in {kind.table}: {exc}", kind=kind.table
            ) from exc

        if count > 0:
            report.already_populated = True
            log.note(f"Table already has {count} records, already populated; skipping population")
            return

        rows = self.seed_source.fixture_rows(kind)
        log.note(f"Reading {len(rows)} seed rows for {kind.label}...")
        try:
            if kind is EntityKind.PLAY_HISTORY:
                self._insert_history(rows, report)
            else:
                for row in rows:
                    self._tally(report, self.store.insert(kind, row))
        except StoreError as exc:
            log.note(f"❌ Error populating {kind.table}: {exc}")
            raise PopulationFailure(
                f"Could not populate {kind.table}: {exc}", kind=kind.table
            ) from exc

        message = f"✅ {kind.table} populated with {report.inserted} rows"
        if report.conflicts:
            message += f" ({report.conflicts} already present)"
        log.note(message)

    def _insert_history(self, tracks: Sequence[Mapping[str, object]], report: ProvisionReport) -> None:
        for track in tracks:
            if self.store.insert(EntityKind.TRACK, track) is InsertResult.INSERTED:
                report.dependent_inserted += 1

        now = self.clock()
        for index, track in enumerate(tracks):
            entry = {
                "id": f"recent-{index + 1}",
                "track_id": track["id"],
                "played_at": (now - index * HISTORY_SPACING).isoformat(),
            }
            self._tally(report, self.store.insert(EntityKind.PLAY_HISTORY, entry))

    @staticmethod
    def _tally(report: ProvisionReport, result: InsertResult) -> None:
        if result is InsertResult.INSERTED:
            report.inserted += 1
        else:
            report.conflicts += 1

    # --- Phase 3 -------------------------------------------------------------
    def _verify(self, kind: EntityKind, report: ProvisionReport, log: StepLog) -> None:
        try:
            report.observed = self._check_sample(kind)
        except (StoreError, VerificationMismatch) as exc:
            report.verified = False
            logger.warning("Verification of %s failed: %s", kind.table, exc)
            log.note(f"⚠️  Verification mismatch for {kind.table}: {exc}")
            return
        log.note(f"Found {report.observed} {kind.label}")

    def _check_sample(self, kind: EntityKind) -> int:
        sample = self.store.select(kind, limit=self.verify_limit)
        expected = min(self.store.count(kind), self.verify_limit)
        if len(sample) != expected:
            raise VerificationMismatch(
                f"expected {expected} rows in sample, observed {len(sample)}"
            )
        return len(sample)


__all__ = ["ProvisioningEngine", "ProvisionReport", "HISTORY_SPACING"]
