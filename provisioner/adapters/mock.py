"""
Mock adapter — universal test double for all step kinds.

Used in mock mode to simulate provisioning without touching the
system.  Configurable to return success, failure, or custom receipts
per step id.

Environment-changing kinds (``user``, ``env``) still thread the
environment they would produce, so a mock run ends with the same
search path and identity as a real one.
"""

from __future__ import annotations

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.environment import Environment
from provisioner.core.models.receipt import Receipt
from provisioner.core.services.env_changes import environment_after


def simulate_environment(context: ExecutionContext) -> Environment | None:
    """Environment a step of this kind would hand back, if any."""
    if context.step.kind not in ("env", "user"):
        return None
    return environment_after(context.step, context.environment)


class MockAdapter(Adapter):
    """Universal mock adapter for testing.

    By default, returns success for everything. Can be configured
    with custom responses per step ID.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._responses: dict[str, Receipt] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times execute has been called."""
        return len(self._call_log)

    @property
    def executed_ids(self) -> list[str]:
        """Step ids in the order they were executed."""
        return [ctx.step.id for ctx in self._call_log]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, step_id: str, receipt: Receipt) -> None:
        """Set a custom response for a specific step ID."""
        self._responses[step_id] = receipt

    def set_failure(
        self,
        step_id: str,
        error: str = "Mock failure",
        exit_status: int | None = 1,
    ) -> None:
        """Configure a specific step to fail."""
        self._responses[step_id] = Receipt.failure(
            adapter=self._name,
            step_id=step_id,
            error=error,
            exit_status=exit_status,
        )

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)

        if context.step.id in self._responses:
            return self._responses[context.step.id]

        return Receipt.success(
            adapter=self._name,
            step_id=context.step.id,
            output=self._default_output,
            exit_status=0,
            environment=simulate_environment(context),
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Clear call log and custom responses."""
        self._call_log.clear()
        self._responses.clear()
