"""
Exec use case — run a command inside the provisioned environment.

Equivalent of ``docker run <image> CMD...``: the command goes through
the recipe's entrypoint wrapper (``opam config exec --`` for the
built-in recipe), as the identity and with the search path recorded by
the last successful run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from provisioner.core.config.loader import RecipeError, resolve_recipe
from provisioner.core.persistence.state_file import default_state_path, load_state
from provisioner.core.services.invocation import build_argv
from provisioner.core.services.subprocess_runner import run_attached

logger = logging.getLogger(__name__)


@dataclass
class ExecResult:
    """Outcome of an exec."""

    argv: list[str] = field(default_factory=list)
    exit_code: int = 0
    error: str | None = None


def exec_in_environment(
    command: Sequence[str],
    recipe: str | None = None,
    cwd: Path | None = None,
    dry_run: bool = False,
    invoking_user: str | None = None,
    runner: Callable[..., int] = run_attached,
) -> ExecResult:
    """Run ``command`` through the recipe's entrypoint.

    Args:
        command: Command and arguments.
        recipe: Recipe path, ``builtin:<name>``, or None to search.
        cwd: Directory for recipe search.
        dry_run: Build the argv but don't run it.
        invoking_user: User this process runs as (default: detected).
        runner: Attached runner (injectable for tests).
    """
    result = ExecResult()

    try:
        loaded = resolve_recipe(recipe, cwd=cwd)
    except RecipeError as e:
        result.error = str(e)
        result.exit_code = 1
        return result

    state = load_state(default_state_path(loaded.root))
    if state.environment is None:
        result.error = (
            f"Recipe '{loaded.recipe.name}' has no successful run recorded. "
            "Run 'provisioner run' first."
        )
        result.exit_code = 1
        return result

    env = state.environment
    full = [*loaded.recipe.entrypoint, *command]
    if not full:
        result.error = "No command given and the recipe has no entrypoint."
        result.exit_code = 2
        return result

    result.argv = build_argv(full, env, invoking_user=invoking_user)
    if dry_run:
        return result

    logger.info("exec as %s in %s: %s", env.user, env.working_dir, full)
    result.exit_code = runner(result.argv, cwd=env.working_dir)
    return result
