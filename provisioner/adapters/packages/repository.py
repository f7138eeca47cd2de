"""
Repository adapter — register a remote package repository.

Adds a named repository to a language package manager and refreshes
its index, so later package steps can resolve packages from it.
"""

from __future__ import annotations

import shutil

from provisioner.adapters.base import CommandAdapter, ExecutionContext
from provisioner.core.services.invocation import PlannedCommand

_REPO_ADD = {
    "opam": ("opam", "repo", "add"),
}
_REPO_UPDATE = {
    "opam": ("opam", "update"),
}


class RepositoryAdapter(CommandAdapter):
    """Add a package repository.

    Step params:
        manager (str): Package manager (default: 'opam').
        repo (str): Repository name.
        url (str): Repository URL or local path.
        update (bool): Refresh the index afterwards (default: True).
    """

    @property
    def name(self) -> str:
        return "repository"

    def is_available(self) -> bool:
        return shutil.which("opam") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        manager = context.params.get("manager", "opam")
        if manager not in _REPO_ADD:
            return False, (
                f"Unknown package manager '{manager}'. "
                f"Valid: {', '.join(sorted(_REPO_ADD))}"
            )
        for key in ("repo", "url"):
            if not context.params.get(key):
                return False, f"Missing required param: '{key}'"
        return True, ""

    def plan_commands(self, context: ExecutionContext) -> list[PlannedCommand]:
        params = context.params
        manager = params.get("manager", "opam")
        url = context.environment.expand(str(params["url"]))

        commands = [
            PlannedCommand(
                argv=[*_REPO_ADD[manager], str(params["repo"]), url],
                privilege=context.step.privilege,
                expected_exit=context.step.expected_exit,
            )
        ]
        if params.get("update", True):
            commands.append(
                PlannedCommand(argv=list(_REPO_UPDATE[manager]), privilege=context.step.privilege)
            )
        return commands
