"""
Provisioner — the central execution loop.

Executes an ordered sequence of steps against a base environment,
strictly one after another.  The first failing step ends the run:
no later step executes, nothing is retried, nothing is rolled back.

Flow:
    PENDING → RUNNING → step₁ → step₂ → … → SUCCEEDED
                           └─ any failure ─→ FAILED

Each step receives the environment produced by the steps before it.
A receipt carrying an Environment replaces it for the rest of the run.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.engine.failures import StepFailure
from provisioner.core.models.environment import Environment
from provisioner.core.models.receipt import Receipt
from provisioner.core.models.recipe import DEFAULT_TIMEOUT
from provisioner.core.models.step import Step
from provisioner.core.observability.logging_config import run_context, step_context

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# (event, index, step, receipt); event is "started" or "finished"
StepObserver = Callable[[str, int, Step, Receipt | None], None]


@dataclass
class ProvisionResult:
    """Either the final environment, or the failure that stopped the run."""

    run_id: str = ""
    status: RunStatus = RunStatus.PENDING
    environment: Environment | None = None
    receipts: list[Receipt] = field(default_factory=list)
    failure: StepFailure | None = None
    started_at: str = ""
    ended_at: str = ""
    steps_total: int = 0

    @property
    def ok(self) -> bool:
        return self.status is RunStatus.SUCCEEDED

    @property
    def steps_completed(self) -> int:
        return sum(1 for r in self.receipts if r.ok)

    @property
    def exit_code(self) -> int:
        """Process exit code: 0, or the failing step's exit status."""
        if self.ok:
            return 0
        if self.failure and self.failure.exit_status:
            return self.failure.exit_status
        return 1

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "steps_total": self.steps_total,
            "steps_completed": self.steps_completed,
            "failure": self.failure.to_dict() if self.failure else None,
            "environment": (
                self.environment.model_dump(mode="json") if self.environment else None
            ),
            "receipts": [
                r.model_dump(mode="json", exclude={"environment"}) for r in self.receipts
            ],
        }


class Provisioner:
    """Execute an ordered step sequence against a base environment.

    A Provisioner runs once.  Its status moves PENDING → RUNNING →
    SUCCEEDED or FAILED and never leaves a terminal state; a second
    ``run`` raises ``RuntimeError``.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        *,
        recipe_root: str = ".",
        default_timeout: int = DEFAULT_TIMEOUT,
        dry_run: bool = False,
        observer: StepObserver | None = None,
        run_id: str | None = None,
    ):
        self._registry = registry
        self._recipe_root = recipe_root
        self._default_timeout = default_timeout
        self._dry_run = dry_run
        self._observer = observer
        self._run_id = run_id or generate_run_id()
        self._status = RunStatus.PENDING

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def run_id(self) -> str:
        return self._run_id

    def _notify(self, event: str, index: int, step: Step, receipt: Receipt | None) -> None:
        if self._observer is None:
            return
        try:
            self._observer(event, index, step, receipt)
        except Exception as e:
            logger.warning("Step observer failed on %s/%s: %s", event, step.id, e)

    def run(self, steps: Sequence[Step], environment: Environment) -> ProvisionResult:
        """Run every step in order, stopping at the first failure.

        Args:
            steps: Ordered steps.
            environment: Base environment for the first step.

        Returns:
            ProvisionResult.  On success ``environment`` is the final
            environment; on failure it is the environment the failing
            step ran in, and ``failure`` describes the step.
        """
        if self._status is not RunStatus.PENDING:
            raise RuntimeError(f"Provisioner {self._run_id} already ran ({self._status.value})")

        self._status = RunStatus.RUNNING
        result = ProvisionResult(
            run_id=self._run_id,
            status=RunStatus.RUNNING,
            started_at=_now_iso(),
            steps_total=len(steps),
        )
        with run_context(self._run_id):
            return self._run_steps(steps, environment, result)

    def _run_steps(
        self,
        steps: Sequence[Step],
        environment: Environment,
        result: ProvisionResult,
    ) -> ProvisionResult:
        env = environment
        logger.info("Run %s: %d steps", self._run_id, len(steps))

        for index, step in enumerate(steps):
            self._notify("started", index, step, None)

            with step_context(step.id):
                receipt = self._registry.execute_step(
                    step,
                    env,
                    index=index,
                    recipe_root=self._recipe_root,
                    default_timeout=self._default_timeout,
                    dry_run=self._dry_run,
                )
            result.receipts.append(receipt)

            status_marker = "✓" if receipt.ok else "✗" if receipt.failed else "⊘"
            logger.info(
                "%s [%d/%d] %s:%s → %s",
                status_marker,
                index + 1,
                len(steps),
                step.kind,
                step.id,
                receipt.status,
            )
            self._notify("finished", index, step, receipt)

            if receipt.failed:
                result.failure = StepFailure.from_receipt(index, step, receipt)
                result.environment = env
                logger.error("Run %s stopped: %s", self._run_id, result.failure)
                return self._finish(result, RunStatus.FAILED)

            if receipt.environment is not None:
                env = receipt.environment

        result.environment = env
        return self._finish(result, RunStatus.SUCCEEDED)

    def _finish(self, result: ProvisionResult, status: RunStatus) -> ProvisionResult:
        self._status = status
        result.status = status
        result.ended_at = _now_iso()
        return result


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"
