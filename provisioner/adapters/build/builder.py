"""
Build adapter — compile an artifact.

The Builder capability: run a build command in a source directory and,
when the step names an ``artifact``, check that the build produced it.
"""

from __future__ import annotations

import posixpath

from provisioner.adapters.base import CommandAdapter, ExecutionContext
from provisioner.core.models.receipt import Receipt
from provisioner.core.services.invocation import PlannedCommand, shell_argv


class BuildAdapter(CommandAdapter):
    """Run a build command.

    Step params:
        command (str | list[str]): The build command.
        artifact (str): Path the build must produce (relative to the step cwd).
    """

    @property
    def name(self) -> str:
        return "build"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.params.get("command"):
            return False, "Missing required param: 'command'"
        return True, ""

    def _artifact(self, context: ExecutionContext) -> str | None:
        artifact = context.params.get("artifact")
        if not artifact:
            return None
        return posixpath.join(context.working_dir, context.environment.expand(str(artifact)))

    def plan_commands(self, context: ExecutionContext) -> list[PlannedCommand]:
        commands = [
            PlannedCommand(
                argv=shell_argv(context.params["command"]),
                privilege=context.step.privilege,
                expected_exit=context.step.expected_exit,
            )
        ]
        artifact = self._artifact(context)
        if artifact:
            commands.append(PlannedCommand(argv=["test", "-e", artifact]))
        return commands

    def execute(self, context: ExecutionContext) -> Receipt:
        artifact = self._artifact(context)
        receipt = self.run_sequence(
            context,
            self.plan_commands(context),
            metadata={"artifact": artifact} if artifact else None,
        )
        if receipt.failed and artifact and receipt.command.startswith("test -e"):
            receipt.error = f"Build finished but artifact is missing: {artifact}"
        return receipt
