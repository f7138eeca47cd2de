"""
Git adapter — fetch remote repositories.

The RepositoryFetcher capability: clone a repository (optionally a
single branch, optionally shallow) into the environment.  Uses the git
CLI — never raw API calls.
"""

from __future__ import annotations

import shutil

from provisioner.adapters.base import CommandAdapter, ExecutionContext
from provisioner.core.services.invocation import PlannedCommand


class GitAdapter(CommandAdapter):
    """Clone a git repository.

    Step params:
        url (str): Repository URL.
        dest (str): Target directory (default: git's choice from the URL).
        branch (str): Branch or tag to check out.
        single_branch (bool): Fetch only ``branch`` (default: False).
        depth (int): Shallow clone depth.
    """

    @property
    def name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return shutil.which("git") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.params.get("url"):
            return False, "Missing required param: 'url'"
        if context.params.get("single_branch") and not context.params.get("branch"):
            return False, "'single_branch' requires 'branch'"
        depth = context.params.get("depth")
        if depth is not None and (not isinstance(depth, int) or depth < 1):
            return False, f"'depth' must be a positive integer, got {depth!r}"
        return True, ""

    def plan_commands(self, context: ExecutionContext) -> list[PlannedCommand]:
        params = context.params
        argv = ["git", "clone"]
        if params.get("branch"):
            argv += ["-b", str(params["branch"])]
        if params.get("single_branch"):
            argv.append("--single-branch")
        if params.get("depth"):
            argv += ["--depth", str(params["depth"])]
        argv.append(str(params["url"]))
        if params.get("dest"):
            argv.append(context.environment.expand(str(params["dest"])))

        return [
            PlannedCommand(
                argv=argv,
                privilege=context.step.privilege,
                expected_exit=context.step.expected_exit,
            )
        ]
