"""
Status use case — what the last run left behind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from provisioner.core.config.loader import LoadedRecipe, RecipeError, resolve_recipe
from provisioner.core.models.state import ProvisionState
from provisioner.core.persistence.audit import AuditEntry, AuditWriter
from provisioner.core.persistence.state_file import default_state_path, load_state


@dataclass
class StatusResult:
    """Last recorded run for a recipe."""

    loaded: LoadedRecipe | None = None
    state: ProvisionState | None = None
    history: list[AuditEntry] = field(default_factory=list)
    error: str | None = None

    @property
    def has_run(self) -> bool:
        return bool(self.state and self.state.last_run.run_id)

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        assert self.loaded is not None and self.state is not None
        return {
            "recipe": self.loaded.recipe.name,
            "source": self.loaded.source,
            "has_run": self.has_run,
            "last_run": self.state.last_run.model_dump(mode="json"),
            "steps": [s.model_dump(mode="json") for s in self.state.steps],
            "environment": (
                self.state.environment.model_dump(mode="json")
                if self.state.environment
                else None
            ),
            "history": [e.model_dump(mode="json") for e in self.history],
        }


def get_status(
    recipe: str | None = None,
    cwd: Path | None = None,
    history: int = 0,
) -> StatusResult:
    """Load the state and (optionally) recent audit entries for a recipe.

    Args:
        recipe: Recipe path, ``builtin:<name>``, or None to search.
        cwd: Directory for recipe search.
        history: Number of audit entries to include.
    """
    result = StatusResult()
    try:
        loaded = resolve_recipe(recipe, cwd=cwd)
    except RecipeError as e:
        result.error = str(e)
        return result

    result.loaded = loaded
    result.state = load_state(default_state_path(loaded.root))
    if history:
        # Newest first
        result.history = AuditWriter(state_root=loaded.root).read_recent(history)[::-1]
    return result
