"""
User adapter — create the unprivileged account that provisioning continues as.

Creates the account, sets its password, adds it to groups, grants
passwordless sudo according to the chosen policy, verifies the grant
with ``sudo -n true`` as the new user, and finally hands back an
Environment whose active identity is that user.  Every later step
runs under that identity.
"""

from __future__ import annotations

import shlex
import shutil

from provisioner.adapters.base import CommandAdapter, ExecutionContext
from provisioner.core.models.receipt import Receipt
from provisioner.core.services.env_changes import apply_user_switch, user_home
from provisioner.core.services.invocation import PlannedCommand
from provisioner.core.services.sudoers import (
    NOPASSWD_CHECK,
    SUDO_POLICIES,
    dropin_script,
    group_rewrite_argv,
    is_valid_username,
)


class UserAdapter(CommandAdapter):
    """Create a user and grant it passwordless sudo.

    Step params:
        username (str): Account name.
        password (str): Optional password (set with chpasswd).
        groups (list[str]): Supplementary groups (default: ['sudo']).
        shell (str): Login shell (default: /bin/bash).
        home (str): Home directory (default: /home/<name>).
        sudo (str): 'dropin' (default), 'group' or 'none'.
        switch (bool): Continue as this user (default: True).
        chdir (bool): Also move to its home directory (default: True).
    """

    @property
    def name(self) -> str:
        return "user"

    def is_available(self) -> bool:
        return shutil.which("useradd") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.params
        name = str(params.get("username", ""))
        if not name:
            return False, "Missing required param: 'username'"
        if not is_valid_username(name):
            return False, f"Invalid account name: {name!r}"
        if name == "root":
            return False, "Refusing to manage the root account"
        policy = params.get("sudo", "dropin")
        if policy not in SUDO_POLICIES:
            return False, f"Unknown sudo policy '{policy}'. Valid: {', '.join(SUDO_POLICIES)}"
        if policy == "group" and "sudo" not in params.get("groups", ["sudo"]):
            return False, "sudo policy 'group' requires membership of the 'sudo' group"
        return True, ""

    def plan_commands(self, context: ExecutionContext) -> list[PlannedCommand]:
        params = context.params
        name = str(params["username"])
        groups = [str(g) for g in params.get("groups", ["sudo"])]
        policy = params.get("sudo", "dropin")

        commands = [
            PlannedCommand(
                argv=[
                    "useradd", "-m",
                    "-d", user_home(params),
                    "-s", str(params.get("shell", "/bin/bash")),
                    name,
                ],
                privilege="elevated",
                expected_exit=context.step.expected_exit,
            )
        ]
        if params.get("password") is not None:
            commands.append(
                PlannedCommand(
                    argv=["chpasswd"],
                    privilege="elevated",
                    input_text=f"{name}:{params['password']}\n",
                    input_display=f"echo {shlex.quote(name + ':' + str(params['password']))}",
                )
            )
        if groups:
            commands.append(
                PlannedCommand(argv=["usermod", "-aG", ",".join(groups), name], privilege="elevated")
            )
        if policy == "dropin":
            commands.append(
                PlannedCommand(argv=["sh", "-c", dropin_script(name)], privilege="elevated")
            )
        elif policy == "group":
            commands.append(PlannedCommand(argv=group_rewrite_argv(), privilege="elevated"))

        if policy != "none":
            commands.append(PlannedCommand(argv=list(NOPASSWD_CHECK), user=name))
        return commands

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.params
        receipt = self.run_sequence(
            context,
            self.plan_commands(context),
            environment=apply_user_switch(context.environment, params),
            metadata={
                "user": params["username"],
                "home": user_home(params),
                "sudo": params.get("sudo", "dropin"),
            },
        )
        if receipt.failed and receipt.command == shlex.join(NOPASSWD_CHECK):
            receipt.error = (
                f"User '{params['username']}' cannot run sudo without a password: "
                f"{receipt.error}"
            )
        return receipt
