"""
Shell command adapter — execute arbitrary commands.

This is the most fundamental adapter: it runs one command and captures
its output.  The other command adapters follow the same pattern.
"""

from __future__ import annotations

import shutil

from provisioner.adapters.base import CommandAdapter, ExecutionContext
from provisioner.core.services.invocation import PlannedCommand, shell_argv


class ShellCommandAdapter(CommandAdapter):
    """Execute a shell command and capture output.

    Step params:
        command (str | list[str]): The command. Strings run via ``sh -c``.
        input (str): Optional text piped to stdin.
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.params.get("command"):
            return False, "Missing required param: 'command'"
        return True, ""

    def plan_commands(self, context: ExecutionContext) -> list[PlannedCommand]:
        return [
            PlannedCommand(
                argv=shell_argv(context.params["command"]),
                privilege=context.step.privilege,
                input_text=context.params.get("input"),
                expected_exit=context.step.expected_exit,
            )
        ]
