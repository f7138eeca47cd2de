"""
Dockerfile generator — render a recipe as a container build recipe.

Walks the steps with the same environment threading the provisioner
uses, so identity and search-path changes land where they would
during a real run:

    packages/download/git/...  →  RUN cmd₁ && cmd₂
    user                       →  RUN ... then USER / WORKDIR, then RUN sudo -n true
    env                        →  ENV PATH=... / ENV K=V / WORKDIR
    copy                       →  COPY src dest (+ RUN chown)
    entrypoint                 →  ENTRYPOINT [...]
"""

from __future__ import annotations

import json
import posixpath
import shlex

from provisioner.adapters.registry import AdapterRegistry, default_registry
from provisioner.core.config.loader import LoadedRecipe
from provisioner.core.models.environment import Environment
from provisioner.core.models.recipe import Recipe
from provisioner.core.models.step import Step
from provisioner.core.models.template import GeneratedFile
from provisioner.core.services.env_changes import apply_env_params, apply_user_switch
from provisioner.core.services.invocation import render_command
from provisioner.core.services.sudoers import NOPASSWD_CHECK

DOCKERFILE = "Dockerfile"
SUDO_CHECK = shlex.join(NOPASSWD_CHECK)


# ── Per-kind rendering ──────────────────────────────────────────


def _env_lines(before: Environment, after: Environment) -> list[str]:
    lines = []
    if after.path != before.path:
        lines.append(f'ENV PATH="{after.search_path}"')
    for key, value in after.variables.items():
        if before.variables.get(key) != value:
            lines.append(f'ENV {key}="{value}"')
    if after.user != before.user:
        lines.append(f"USER {after.user}")
    if after.working_dir != before.working_dir:
        lines.append(f"WORKDIR {after.working_dir}")
    return lines


def _copy_lines(step: Step, env: Environment) -> list[str]:
    src = str(step.params.get("src", "."))
    dest = posixpath.join(env.working_dir, env.expand(str(step.params.get("dest", ""))))
    if src in (".", "./") and not dest.endswith("/"):
        dest += "/"
    lines = [f"COPY {src} {dest}"]
    owner = step.params.get("owner")
    if owner:
        chown = render_command(["chown", "-R", str(owner), dest.rstrip("/")], "elevated", env.user)
        lines.append(f"RUN {chown}")
    return lines


def _run_line(commands: list[str], working_dir: str, env: Environment) -> str | None:
    if not commands:
        return None
    if working_dir != env.working_dir:
        commands = [f"cd {working_dir}", *commands]
    return "RUN " + " \\\n    && ".join(commands)


# ── Public API ──────────────────────────────────────────────────


def render_dockerfile(
    recipe: Recipe,
    registry: AdapterRegistry | None = None,
    recipe_root: str = ".",
) -> str:
    """Render a recipe as Dockerfile text.

    Args:
        recipe: The recipe to render.
        registry: Adapters that describe each step's commands.
        recipe_root: Directory local sources resolve against.

    Returns:
        Dockerfile content.
    """
    if registry is None:
        registry = default_registry()

    env = recipe.base
    lines = [f"FROM {recipe.base_image}"]
    lines.extend(_env_lines(Environment(), env))

    for index, step in enumerate(recipe.steps):
        lines.append("")
        lines.append(f"# {step.label}")

        if step.kind == "copy":
            lines.extend(_copy_lines(step, env))
            continue

        if step.kind == "env":
            after = apply_env_params(env, step.params)
            lines.extend(_env_lines(env, after))
            env = after
            continue

        context = registry.build_context(
            step, env, index=index, recipe_root=recipe_root,
            default_timeout=recipe.defaults.timeout,
        )
        commands = registry.preview_step(context)
        verify = []
        if step.kind == "user":
            # The sudo check runs as the new user, after USER
            verify = [c for c in commands if c == SUDO_CHECK]
            commands = [c for c in commands if c != SUDO_CHECK]

        run = _run_line(commands, context.working_dir, env)
        if run:
            lines.append(run)

        if step.kind == "user":
            after = apply_user_switch(env, step.params)
            lines.extend(_env_lines(env, after))
            if verify and after.user != env.user:
                lines.append(f"RUN {SUDO_CHECK}")
            env = after

    if recipe.entrypoint:
        lines.append("")
        lines.append(f"ENTRYPOINT {json.dumps(recipe.entrypoint)}")

    return "\n".join(lines) + "\n"


def generate_dockerfile(
    loaded: LoadedRecipe,
    registry: AdapterRegistry | None = None,
) -> GeneratedFile:
    """Render a loaded recipe into a Dockerfile beside it."""
    return GeneratedFile(
        path=DOCKERFILE,
        content=render_dockerfile(loaded.recipe, registry, recipe_root=str(loaded.root)),
        overwrite=False,
        reason=f"Container build for recipe '{loaded.recipe.name}'",
    )
