"""
Command invocation — how a step's command becomes an argv.

Pure functions, no I/O.  Every command goes through ``build_argv``,
which applies three things in order:

1. identity: run as the environment's active user
   (``sudo -n -H -u <user> --`` when that differs from the invoking user)
2. privilege: ``elevated`` steps under a non-root identity go through
   that identity's own sudo (``sudo -n -E -H --``)
3. environment: ``env PATH=... VAR=...`` inside every sudo wrapper, so
   sudo's ``secure_path`` cannot reset the search path

``-n`` makes sudo fail instead of prompting.  A step that would need an
interactive password fails immediately.
"""

from __future__ import annotations

import os
import pwd
import shlex
from dataclasses import dataclass

from provisioner.core.models.environment import Environment
from provisioner.core.models.step import Privilege

SUDO = ("sudo", "-n", "-H")


@dataclass
class PlannedCommand:
    """One command an adapter intends to run."""

    argv: list[str]
    privilege: Privilege = "normal"
    input_text: str | None = None
    expected_exit: int = 0
    user: str | None = None        # run as this identity instead of the active one
    cwd: str | None = None
    input_display: str | None = None   # shell form of input_text, e.g. "yes y"

    def display(self) -> str:
        """Shell-quoted form for plans and logs."""
        return shlex.join(self.argv)


def current_user() -> str:
    """Name of the user this process runs as."""
    return pwd.getpwuid(os.geteuid()).pw_name


def shell_argv(command: str | list[str]) -> list[str]:
    """Normalize a recipe command: strings run through ``sh -c``."""
    if isinstance(command, str):
        return ["sh", "-c", command]
    return [str(part) for part in command]


def identity_prefix(active_user: str, invoking_user: str) -> list[str]:
    """sudo wrapper that switches from the invoking to the active user."""
    if active_user == invoking_user:
        return []
    if active_user == "root":
        return [*SUDO, "--"]
    return [*SUDO, "-u", active_user, "--"]


def privilege_prefix(privilege: Privilege, active_user: str) -> list[str]:
    """sudo wrapper for elevated steps run by a non-root identity."""
    if privilege == "elevated" and active_user != "root":
        return ["sudo", "-n", "-E", "-H", "--"]
    return []


def env_prefix(environment: Environment) -> list[str]:
    """``env K=V ...`` applying the environment's variables."""
    return ["env", *(f"{k}={v}" for k, v in environment.as_env().items())]


def build_argv(
    command: str | list[str],
    environment: Environment,
    *,
    privilege: Privilege = "normal",
    invoking_user: str | None = None,
) -> list[str]:
    """Build the full argv for running ``command`` inside ``environment``.

    Args:
        command: Shell string or argv list.
        environment: Identity, search path and variables to apply.
        privilege: ``elevated`` runs the command as root.
        invoking_user: User this process runs as (default: detected).

    Returns:
        Complete argv for ``subprocess.run``.
    """
    invoking = invoking_user if invoking_user is not None else current_user()
    return [
        *identity_prefix(environment.user, invoking),
        *privilege_prefix(privilege, environment.user),
        *env_prefix(environment),
        *shell_argv(command),
    ]


def render_command(argv: list[str], privilege: Privilege, active_user: str) -> str:
    """Human-readable command as it would appear in a build recipe."""
    text = shlex.join(argv)
    if len(argv) == 3 and argv[:2] == ["sh", "-c"]:
        text = argv[2]
    if privilege == "elevated" and active_user != "root":
        return f"sudo -EH {text}"
    return text
