"""
Package adapter — install system and language packages.

The PackageInstaller capability.  One adapter covers the OS package
manager and the language package managers a recipe bootstraps; each
manager is a small table of command templates.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass

from provisioner.adapters.base import CommandAdapter, ExecutionContext
from provisioner.core.services.invocation import PlannedCommand


@dataclass(frozen=True)
class PackageManager:
    """Command templates for one package manager."""

    cli: str
    install: tuple[str, ...]
    update: tuple[str, ...] | None = None
    depext: tuple[str, ...] | None = None   # install with system dependencies
    needs_root: bool = False
    jobs_var: str | None = None             # env var limiting parallel jobs


MANAGERS: dict[str, PackageManager] = {
    "apt": PackageManager(
        cli="apt-get",
        install=("apt-get", "-y", "install"),
        update=("apt-get", "-y", "update"),
        needs_root=True,
    ),
    "opam": PackageManager(
        cli="opam",
        install=("opam", "install", "--yes"),
        update=("opam", "update"),
        depext=("opam", "depext", "--install", "--yes"),
        jobs_var="OPAMJOBS",
    ),
    "pip": PackageManager(
        cli="pip",
        install=("pip", "install"),
    ),
}


def build_install_argv(
    manager: str,
    packages: list[str],
    *,
    depext: bool = False,
    options: list[str] | None = None,
) -> list[str]:
    """Build the install command for ``packages``.

    Raises:
        KeyError: Unknown manager, or ``depext`` on a manager without it.
    """
    pm = MANAGERS[manager]
    if depext:
        if pm.depext is None:
            raise KeyError(f"{manager} has no depext mode")
        base = list(pm.depext)
    else:
        base = list(pm.install)
    return base + list(options or []) + list(packages)


class PackageAdapter(CommandAdapter):
    """Install packages with a system or language package manager.

    Step params:
        manager (str): One of 'apt', 'opam', 'pip' (default: 'apt').
        packages (list[str]): Packages to install.
        update (bool): Refresh package indexes first (default: False).
        depext (bool): Also install system dependencies (opam only).
        jobs (int): Limit parallel build jobs (opam only).
        options (list[str]): Extra arguments to the install command.
    """

    @property
    def name(self) -> str:
        return "packages"

    def is_available(self) -> bool:
        return shutil.which("apt-get") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.params
        manager = params.get("manager", "apt")
        if manager not in MANAGERS:
            return False, (
                f"Unknown package manager '{manager}'. "
                f"Valid: {', '.join(sorted(MANAGERS))}"
            )
        packages = params.get("packages")
        if not packages or not isinstance(packages, list):
            return False, "Missing required param: 'packages' (non-empty list)"
        if params.get("depext") and MANAGERS[manager].depext is None:
            return False, f"'depext' is not supported by {manager}"
        if params.get("jobs") is not None and MANAGERS[manager].jobs_var is None:
            return False, f"'jobs' is not supported by {manager}"
        return True, ""

    def plan_commands(self, context: ExecutionContext) -> list[PlannedCommand]:
        params = context.params
        manager = params.get("manager", "apt")
        pm = MANAGERS[manager]
        privilege = "elevated" if pm.needs_root else context.step.privilege

        prefix: list[str] = []
        if params.get("jobs") is not None and pm.jobs_var:
            prefix = ["env", f"{pm.jobs_var}={params['jobs']}"]

        commands: list[PlannedCommand] = []
        if params.get("update") and pm.update:
            commands.append(PlannedCommand(argv=list(pm.update), privilege=privilege))

        argv = build_install_argv(
            manager,
            [str(p) for p in params["packages"]],
            depext=bool(params.get("depext")),
            options=[str(o) for o in params.get("options", [])],
        )
        commands.append(
            PlannedCommand(
                argv=prefix + argv,
                privilege=privilege,
                expected_exit=context.step.expected_exit,
            )
        )
        return commands
