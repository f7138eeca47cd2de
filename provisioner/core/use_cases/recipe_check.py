"""
Recipe check use case — validate a recipe and report issues.

Schema errors come from the loader; this adds the semantic checks a
schema can't express (unknown step kinds, adapter param validation
against the environment each step would see).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from provisioner.adapters.registry import AdapterRegistry, default_registry
from provisioner.core.config.loader import LoadedRecipe, RecipeError, resolve_recipe
from provisioner.core.services.env_changes import thread_environment


@dataclass
class RecipeCheckResult:
    """Result of recipe validation."""

    valid: bool = False
    loaded: LoadedRecipe | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        recipe = self.loaded.recipe if self.loaded else None
        return {
            "valid": self.valid,
            "source": self.loaded.source if self.loaded else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "recipe_name": recipe.name if recipe else None,
            "step_count": len(recipe.steps) if recipe else 0,
        }


def check_recipe(
    recipe: str | None = None,
    cwd: Path | None = None,
    registry: AdapterRegistry | None = None,
) -> RecipeCheckResult:
    """Validate a recipe and report issues.

    Args:
        recipe: Recipe path, ``builtin:<name>``, or None to search.
        cwd: Directory for recipe search.
        registry: Adapter registry used for per-step validation.

    Returns:
        RecipeCheckResult with validation status and any issues.
    """
    result = RecipeCheckResult()

    try:
        loaded = resolve_recipe(recipe, cwd=cwd)
    except RecipeError as e:
        result.errors.append(str(e))
        return result
    result.loaded = loaded
    definition = loaded.recipe

    if not definition.steps:
        result.warnings.append("No steps defined. The recipe does nothing.")

    if not definition.entrypoint:
        result.warnings.append("No entrypoint defined. 'exec' will run commands directly.")

    if registry is None:
        registry = default_registry()

    # Validate each step against the environment it would see
    for index, step, env in thread_environment(definition.steps, definition.base):
        adapter = registry.get(step.kind)
        if adapter is None:
            result.errors.append(f"Step '{step.id}': unknown kind '{step.kind}'")
            continue

        context = registry.build_context(
            step, env, index=index, recipe_root=str(loaded.root),
            default_timeout=definition.defaults.timeout,
        )
        valid, message = adapter.validate(context)
        if not valid:
            result.errors.append(f"Step '{step.id}': {message}")
            continue

        if step.privilege == "elevated" and env.user == "root":
            result.warnings.append(
                f"Step '{step.id}' is elevated but already runs as root."
            )

    result.valid = not result.errors
    return result
