"""
Register adapter — install a plugin into the analysis platform.

Runs the platform's install command for the built artifact and then,
when a listing command is given, checks that the plugin shows up in
the platform's registered-plugin set.  A plugin that installs but is
not listed is a registration failure.
"""

from __future__ import annotations

from provisioner.adapters.base import CommandAdapter, ExecutionContext
from provisioner.core.models.receipt import Receipt
from provisioner.core.services.invocation import PlannedCommand, shell_argv


def plugin_listed(listing: str, plugin: str) -> bool:
    """Whether ``plugin`` appears as a word in a plugin listing."""
    for line in listing.splitlines():
        tokens = line.replace(":", " ").replace(",", " ").split()
        if plugin in tokens:
            return True
    return False


class RegisterAdapter(CommandAdapter):
    """Install and verify a platform plugin.

    Step params:
        command (str | list[str]): Install command (e.g. 'bapbundle install x.plugin').
        plugin (str): Plugin name as the platform lists it.
        list_command (str | list[str]): Command printing registered plugins.
    """

    @property
    def name(self) -> str:
        return "register"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.params.get("command"):
            return False, "Missing required param: 'command'"
        if context.params.get("list_command") and not context.params.get("plugin"):
            return False, "'list_command' requires 'plugin'"
        return True, ""

    def _install(self, context: ExecutionContext) -> PlannedCommand:
        return PlannedCommand(
            argv=shell_argv(context.params["command"]),
            privilege=context.step.privilege,
            expected_exit=context.step.expected_exit,
        )

    def _listing(self, context: ExecutionContext) -> PlannedCommand | None:
        list_command = context.params.get("list_command")
        if not list_command:
            return None
        return PlannedCommand(argv=shell_argv(list_command))

    def plan_commands(self, context: ExecutionContext) -> list[PlannedCommand]:
        commands = [self._install(context)]
        listing = self._listing(context)
        if listing is not None:
            commands.append(listing)
        return commands

    def execute(self, context: ExecutionContext) -> Receipt:
        plugin = context.params.get("plugin")
        meta = {"plugin": plugin} if plugin else {}

        installed = self.run_sequence(context, [self._install(context)], metadata=meta)
        listing = self._listing(context)
        if installed.failed or listing is None:
            return installed

        result = self.run_planned(context, listing)
        if not result.ok:
            return self.failure_from(context, listing, result, [installed.output], meta)

        if not plugin_listed(result.stdout, str(plugin)):
            return Receipt.failure(
                adapter=self.name,
                step_id=context.step.id,
                error=f"Plugin '{plugin}' is not listed by '{listing.display()}'",
                exit_status=result.exit_status,
                command=listing.display(),
                output=result.stdout,
                metadata={**meta, "registered": False},
            )

        return installed.model_copy(
            update={"metadata": {**installed.metadata, "registered": True}}
        )
