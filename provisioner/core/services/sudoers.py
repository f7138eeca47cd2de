"""
Sudoers policy — how a provisioned account gets passwordless sudo.

Three policies:

    dropin  ``/etc/sudoers.d/<user>`` granting only that account
    group   rewrite the ``%sudo`` rule in /etc/sudoers for every member
    none    grant nothing

The group rewrite mirrors the classic container recipe
``sed -i.bkp -e 's/%sudo ... ALL/%sudo ALL=NOPASSWD:ALL/g' /etc/sudoers``.
"""

from __future__ import annotations

import re
import shlex

SUDO_POLICIES: tuple[str, ...] = ("dropin", "group", "none")

SUDOERS_FILE = "/etc/sudoers"
SUDOERS_DIR = "/etc/sudoers.d"

_USER_RE = re.compile(r"^[a-z_][a-z0-9_-]*\$?$")

GROUP_NOPASSWD_RULE = "%sudo ALL=NOPASSWD:ALL"
_GROUP_RULE_SED = r"s/%sudo\s\+ALL=(ALL\(:ALL\)\?)\s\+ALL/" + GROUP_NOPASSWD_RULE + "/g"

# Run as the provisioned account; fails instead of prompting
NOPASSWD_CHECK: tuple[str, ...] = ("sudo", "-n", "true")


def is_valid_username(name: str) -> bool:
    """Whether ``name`` is a safe POSIX account name."""
    return bool(name) and len(name) <= 32 and bool(_USER_RE.match(name))


def dropin_path(user: str) -> str:
    """Path of the per-user sudoers drop-in."""
    return f"{SUDOERS_DIR}/{user}"


def dropin_rule(user: str) -> str:
    """Rule granting ``user`` passwordless sudo."""
    return f"{user} ALL=(ALL) NOPASSWD:ALL"


def dropin_script(user: str) -> str:
    """Shell script that writes, locks down and validates the drop-in."""
    path = shlex.quote(dropin_path(user))
    rule = shlex.quote(dropin_rule(user))
    return (
        f"printf '%s\\n' {rule} > {path}"
        f" && chmod 0440 {path}"
        f" && visudo -cf {path}"
    )


def group_rewrite_argv() -> list[str]:
    """In-place rewrite of the ``%sudo`` rule, keeping a ``.bkp`` copy."""
    return ["sed", "-i.bkp", "-e", _GROUP_RULE_SED, SUDOERS_FILE]

