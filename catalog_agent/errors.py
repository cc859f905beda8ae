"""Error types shared by the provisioning agent."""
from __future__ import annotations

from typing import Optional


class CatalogAgentError(Exception):
    """Base error for the catalog agent."""


class StoreError(CatalogAgentError):
    """Raised when the entity store cannot complete a read or write."""

    def __init__(self, message: str, *, table: Optional[str] = None, missing_relation: bool = False):
        super().__init__(message)
        self.table = table
        self.missing_relation = missing_relation


class SeedDataError(CatalogAgentError):
    """Raised when the packaged seed catalog is malformed."""


class ClassificationDegraded(CatalogAgentError):
    """Advisory classification failed; callers fall back to keyword matching."""


class VerificationMismatch(CatalogAgentError):
    """Post-provisioning sample did not match expectations. Never fatal."""


# --- Fatal to the run -----------------------------------------------------
class ProvisioningError(CatalogAgentError):
    """Base for failures that abort the whole orchestrator run."""

    def __init__(self, message: str, *, kind: Optional[str] = None):
        super().__init__(message)
        self.kind = kind


class SchemaCreationFailure(ProvisioningError):
    """The create-schema statement for an entity kind failed."""


class PopulationFailure(ProvisioningError):
    """Counting or inserting seed rows failed."""


class ArtifactWriteFailure(CatalogAgentError):
    """A generated read endpoint could not be written to disk."""

    def __init__(self, message: str, *, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


__all__ = [
    "CatalogAgentError",
    "StoreError",
    "SeedDataError",
    "ClassificationDegraded",
    "VerificationMismatch",
    "ProvisioningError",
    "SchemaCreationFailure",
    "PopulationFailure",
    "ArtifactWriteFailure",
]
