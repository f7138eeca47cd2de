"""
Receipt model — the outcome of one step.

This is the I/O contract between the provisioner and adapters: the
provisioner hands a step to an adapter, the adapter returns a Receipt.
Never exceptions.

A receipt may carry a replacement ``Environment``.  The provisioner
adopts it for every later step; steps that don't change the
environment leave it ``None``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from provisioner.core.models.environment import Environment


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Receipt(BaseModel):
    """Result of executing a step through an adapter."""

    adapter: str
    step_id: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    exit_status: int | None = None
    command: str = ""                  # the command that decided the outcome
    output: str = ""
    error: str | None = None

    environment: Environment | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the step succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the step failed."""
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        adapter: str,
        step_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(
            adapter=adapter,
            step_id=step_id,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        step_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            adapter=adapter,
            step_id=step_id,
            status="failed",
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        adapter: str,
        step_id: str,
        reason: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a skip receipt."""
        return cls(
            adapter=adapter,
            step_id=step_id,
            status="skipped",
            output=reason,
            **kwargs,
        )
