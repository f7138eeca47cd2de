"""
Plan use case — what a run would do, step by step, without doing it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from provisioner.adapters.registry import AdapterRegistry, default_registry
from provisioner.core.config.loader import LoadedRecipe, RecipeError, resolve_recipe
from provisioner.core.services.env_changes import thread_environment


@dataclass
class PlannedStep:
    index: int
    id: str
    name: str
    kind: str
    privilege: str
    user: str
    working_dir: str
    commands: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "privilege": self.privilege,
            "user": self.user,
            "working_dir": self.working_dir,
            "commands": self.commands,
        }


@dataclass
class PlanResult:
    loaded: LoadedRecipe | None = None
    steps: list[PlannedStep] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        assert self.loaded is not None
        return {
            "recipe": self.loaded.recipe.name,
            "source": self.loaded.source,
            "entrypoint": self.loaded.recipe.entrypoint,
            "steps": [s.to_dict() for s in self.steps],
        }


def plan_recipe(
    recipe: str | None = None,
    cwd: Path | None = None,
    registry: AdapterRegistry | None = None,
) -> PlanResult:
    """List a recipe's steps in order with the commands each would run."""
    result = PlanResult()
    try:
        loaded = resolve_recipe(recipe, cwd=cwd)
    except RecipeError as e:
        result.error = str(e)
        return result
    result.loaded = loaded

    if registry is None:
        registry = default_registry()

    definition = loaded.recipe
    for index, step, env in thread_environment(definition.steps, definition.base):
        context = registry.build_context(
            step, env, index=index, recipe_root=str(loaded.root),
            default_timeout=definition.defaults.timeout,
        )
        result.steps.append(
            PlannedStep(
                index=index,
                id=step.id,
                name=step.label,
                kind=step.kind,
                privilege=step.privilege,
                user=env.user,
                working_dir=context.working_dir,
                commands=registry.preview_step(context),
            )
        )
    return result
