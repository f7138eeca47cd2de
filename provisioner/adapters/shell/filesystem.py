"""
Copy adapter — bring a local source tree into the environment.

The source resolves against the recipe's directory; the destination
lives inside the provisioned environment.  With ``owner`` the copy is
made as root and then handed over, mirroring ``COPY`` followed by
``chown -R``.
"""

from __future__ import annotations

import posixpath
from pathlib import Path

from provisioner.adapters.base import CommandAdapter, ExecutionContext
from provisioner.core.services.invocation import PlannedCommand


class CopyAdapter(CommandAdapter):
    """Copy a local file or directory tree.

    Step params:
        src (str): Source path, relative to the recipe directory.
        dest (str): Destination path inside the environment.
        owner (str): Optional ``user`` or ``user:group`` to chown to.
    """

    @property
    def name(self) -> str:
        return "copy"

    def _source(self, context: ExecutionContext) -> Path:
        src = Path(str(context.params.get("src", "")))
        if not src.is_absolute():
            src = Path(context.recipe_root) / src
        return src.resolve()

    def _dest(self, context: ExecutionContext) -> str:
        dest = context.environment.expand(str(context.params["dest"]))
        return posixpath.join(context.environment.working_dir, dest)

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        for key in ("src", "dest"):
            if not context.params.get(key):
                return False, f"Missing required param: '{key}'"
        src = self._source(context)
        if not src.exists():
            return False, f"Source does not exist: {src}"
        return True, ""

    def plan_commands(self, context: ExecutionContext) -> list[PlannedCommand]:
        src = self._source(context)
        dest = self._dest(context)
        owner = context.params.get("owner")
        privilege = "elevated" if owner else context.step.privilege

        if src.is_dir():
            commands = [
                PlannedCommand(argv=["mkdir", "-p", dest], privilege=privilege),
                PlannedCommand(argv=["cp", "-a", f"{src}/.", dest], privilege=privilege),
            ]
        else:
            commands = [
                PlannedCommand(
                    argv=["mkdir", "-p", posixpath.dirname(dest) or "/"],
                    privilege=privilege,
                ),
                PlannedCommand(argv=["cp", "-a", str(src), dest], privilege=privilege),
            ]

        if owner:
            commands.append(
                PlannedCommand(argv=["chown", "-R", str(owner), dest], privilege="elevated")
            )
        return commands
