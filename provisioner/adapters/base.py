"""
Adapter base — the protocol contract between the provisioner and tools.

This defines the abstract interface that every adapter must implement.
The provisioner only talks to adapters through this protocol, never
directly to external tools.

``CommandAdapter`` is the shared base for adapters whose work is a
sequence of external commands: they declare the commands in
``plan_commands`` and the base runs them in order through the
injected runner, stopping at the first unexpected exit status.
"""

from __future__ import annotations

import posixpath
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from provisioner.core.models.environment import Environment
from provisioner.core.models.receipt import Receipt
from provisioner.core.models.recipe import DEFAULT_TIMEOUT
from provisioner.core.models.step import Step
from provisioner.core.services.invocation import PlannedCommand, build_argv, render_command
from provisioner.core.services.subprocess_runner import (
    CommandResult,
    CommandRunner,
    run_command,
)


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute a step.

    This is the adapter's view of the world: the step to perform,
    the environment it runs in, where the recipe lives (for local
    sources), and the resolved timeout.
    """

    step: Step
    environment: Environment = Field(default_factory=Environment)
    index: int = 0
    recipe_root: str = "."
    timeout: int = DEFAULT_TIMEOUT
    dry_run: bool = False

    @property
    def params(self) -> dict[str, Any]:
        return self.step.params

    @property
    def working_dir(self) -> str:
        """Resolved working directory for the step."""
        if not self.step.cwd:
            return self.environment.working_dir
        cwd = self.environment.expand(self.step.cwd)
        return posixpath.join(self.environment.working_dir, cwd)


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform external side effects and return receipts.
    They NEVER raise exceptions — failures are captured in the Receipt.

    To create a new adapter:
        1. Subclass Adapter (or CommandAdapter)
        2. Implement name, is_available, validate, execute
        3. Register it in the AdapterRegistry
    """

    # Adapters with no external side effects still run in mock mode
    side_effect_free: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier — matches ``Step.kind``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the step can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the step and return a receipt.

        MUST never raise exceptions. All failures are captured
        in the Receipt with status='failed'.
        """

    def preview(self, context: ExecutionContext) -> list[str]:
        """Commands this step would run, for plans and rendering."""
        return []

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class CommandAdapter(Adapter):
    """Adapter whose work is an ordered list of external commands."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        invoking_user: str | None = None,
    ):
        self._runner: CommandRunner = runner or run_command
        self._invoking_user = invoking_user

    @abstractmethod
    def plan_commands(self, context: ExecutionContext) -> list[PlannedCommand]:
        """The commands this step runs, in order."""

    def is_available(self) -> bool:
        return True

    def preview(self, context: ExecutionContext) -> list[str]:
        user = context.environment.user
        lines = []
        for c in self.plan_commands(context):
            text = render_command(c.argv, c.privilege, c.user or user)
            if c.input_display:
                text = f"{c.input_display} | {text}"
            lines.append(text)
        return lines

    def execute(self, context: ExecutionContext) -> Receipt:
        return self.run_sequence(context, self.plan_commands(context))

    # ── Helpers ─────────────────────────────────────────────────

    def run_planned(
        self,
        context: ExecutionContext,
        command: PlannedCommand,
        environment: Environment | None = None,
    ) -> CommandResult:
        """Run one planned command inside the step's environment."""
        env = environment or context.environment
        if command.user and command.user != env.user:
            env = env.model_copy(update={"user": command.user})
        argv = build_argv(
            command.argv,
            env,
            privilege=command.privilege,
            invoking_user=self._invoking_user,
        )
        return self._runner(
            argv,
            cwd=command.cwd or context.working_dir,
            timeout=context.timeout,
            input_text=command.input_text,
        )

    def run_sequence(
        self,
        context: ExecutionContext,
        commands: list[PlannedCommand],
        *,
        environment: Environment | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Receipt:
        """Run commands in order; the first unexpected exit fails the step.

        Args:
            context: Execution context.
            commands: Planned commands.
            environment: Environment to hand back on success (None = unchanged).
            metadata: Extra receipt metadata.
        """
        outputs: list[str] = []
        last: CommandResult | None = None
        meta = {"commands": [c.display() for c in commands]}
        meta.update(metadata or {})

        for command in commands:
            last = self.run_planned(context, command)
            if last.stdout:
                outputs.append(last.stdout)
            if last.exit_status != command.expected_exit:
                return self.failure_from(context, command, last, outputs, meta)

        return Receipt.success(
            adapter=self.name,
            step_id=context.step.id,
            output="\n".join(outputs),
            exit_status=last.exit_status if last else 0,
            command=commands[-1].display() if commands else "",
            environment=environment,
            metadata=meta,
        )

    def failure_from(
        self,
        context: ExecutionContext,
        command: PlannedCommand,
        result: CommandResult,
        outputs: list[str],
        metadata: dict[str, Any],
    ) -> Receipt:
        """Failure receipt for a command that exited unexpectedly."""
        if result.error:
            error = result.error
        elif result.stderr:
            error = result.stderr
        else:
            error = f"Command exited with code {result.exit_status}"
            if command.expected_exit != 0:
                error += f" (expected {command.expected_exit})"
        return Receipt.failure(
            adapter=self.name,
            step_id=context.step.id,
            error=error,
            exit_status=result.exit_status,
            command=command.display(),
            output="\n".join(outputs),
            metadata={**metadata, "stderr": result.stderr, "timed_out": result.timed_out},
        )
