"""Provenance records for resource lifecycle operations.

Every create, read, update, delete and import emits one structured audit
record answering:
- "What happened to resource X, and when?"
- "Which field groups reached Azure before a failure?"
- "Which version of the provisioner made the change?"
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

# Version is set at build time or falls back to dev
PROVISIONER_VERSION = os.environ.get("PROVISIONER_VERSION", "dev")


@dataclass
class OperationProvenance:
    """Audit record for a single lifecycle operation."""

    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    # Identity
    operation: str = ""
    provisioner_version: str = PROVISIONER_VERSION
    git_commit_sha: str = ""

    # Target
    kind: str = ""
    name: str = ""
    resource_group: str = ""
    resource_id: str | None = None

    # Outcome
    groups_applied: list[str] = field(default_factory=list)
    resource_absent: bool = False
    duration_seconds: float = 0.0
    error: str | None = None
    error_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = asdict(self)
        result["timestamp"] = self.timestamp.isoformat()
        return result


class ProvenanceLogger:
    """Logs provenance records to the structured logger.

    Args:
        enabled: When False, records are built but not emitted.
    """

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled
        self._git_commit_sha = os.environ.get("GIT_COMMIT_SHA", "")

    @property
    def enabled(self) -> bool:
        return self._enabled

    def create_provenance(
        self,
        operation: str,
        kind: str,
        name: str,
        resource_group: str,
        resource_id: str | None = None,
    ) -> OperationProvenance:
        """Start a record for an operation about to run."""
        return OperationProvenance(
            operation=operation,
            git_commit_sha=self._git_commit_sha,
            kind=kind,
            name=name,
            resource_group=resource_group,
            resource_id=resource_id,
        )

    def log_provenance(self, provenance: OperationProvenance) -> None:
        """Emit a completed record; ERROR level when the operation failed."""
        if not self._enabled:
            return

        log_level = logging.ERROR if provenance.error else logging.INFO
        logger.log(
            log_level,
            "Operation provenance",
            extra={
                "provenance": provenance.to_dict(),
                # Flatten key fields for easier querying
                "operation": provenance.operation,
                "kind": provenance.kind,
                "resource_id": provenance.resource_id,
                "groups_applied": provenance.groups_applied,
                "duration_seconds": provenance.duration_seconds,
            },
        )
