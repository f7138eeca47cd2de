"""
ProvisionState — what the last run did.

Serialized to .state/current.json after every run.  Besides the run
summary it keeps the final Environment of the last successful run, so
``provisioner exec`` can run commands with the toolchain path and
identity that provisioning produced.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from provisioner.core.models.environment import Environment


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class StepRecord(BaseModel):
    """Outcome of one step in the last run."""

    id: str
    kind: str = ""
    status: str = ""  # ok, failed, skipped, pending
    exit_status: int | None = None
    duration_ms: int = 0


class RunRecord(BaseModel):
    """Summary of the last run."""

    run_id: str = ""
    recipe: str = ""
    status: str = ""  # pending, running, succeeded, failed
    started_at: str = ""
    ended_at: str = ""
    steps_total: int = 0
    steps_completed: int = 0
    failed_step: str | None = None
    failure_kind: str | None = None
    exit_status: int | None = None


class ProvisionState(BaseModel):
    """Root state model — serialized to .state/current.json."""

    schema_version: int = 1

    recipe_name: str = ""

    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    last_run: RunRecord = Field(default_factory=RunRecord)
    steps: list[StepRecord] = Field(default_factory=list)

    # Final environment of the last *successful* run
    environment: Environment | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()
