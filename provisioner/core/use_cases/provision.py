"""
Provision use case — run a recipe end to end.

This is the top-level orchestrator: it loads the recipe, builds the
adapter registry, runs the provisioner, and persists results.  The
full vertical slice from user intent to audited execution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from provisioner.adapters.registry import AdapterRegistry, default_registry
from provisioner.core.config.loader import LoadedRecipe, RecipeError, resolve_recipe
from provisioner.core.engine.provisioner import (
    ProvisionResult,
    Provisioner,
    StepObserver,
)
from provisioner.core.models.state import RunRecord, StepRecord
from provisioner.core.persistence.audit import AuditEntry, AuditWriter
from provisioner.core.persistence.state_file import default_state_path, load_state, save_state

logger = logging.getLogger(__name__)


@dataclass
class ProvisionRunResult:
    """Result of provisioning from a recipe."""

    result: ProvisionResult | None = None
    loaded: LoadedRecipe | None = None
    dry_run: bool = False
    mock: bool = False
    state_saved: bool = False
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error or self.result is None:
            return 1
        return self.result.exit_code

    def to_dict(self) -> dict:
        data: dict = {}
        if self.error:
            data["error"] = self.error
            return data

        assert self.loaded is not None
        data["recipe"] = self.loaded.recipe.name
        data["source"] = self.loaded.source
        data["dry_run"] = self.dry_run
        data["mock"] = self.mock
        if self.result:
            data["run"] = self.result.to_dict()
        return data


def run_provision(
    recipe: str | None = None,
    cwd: Path | None = None,
    dry_run: bool = False,
    mock_mode: bool = False,
    timeout: int | None = None,
    registry: AdapterRegistry | None = None,
    observer: StepObserver | None = None,
) -> ProvisionRunResult:
    """Run a recipe.

    Args:
        recipe: Recipe path, ``builtin:<name>``, or None to search.
        cwd: Directory for recipe search and built-in recipe root.
        dry_run: Validate each step without executing anything.
        mock_mode: Route side-effecting steps to the mock adapter.
        timeout: Override the recipe's default step timeout.
        registry: Optional pre-configured adapter registry.
        observer: Optional per-step progress callback.

    Returns:
        ProvisionRunResult with the run result.
    """
    out = ProvisionRunResult(dry_run=dry_run, mock=mock_mode)

    # ── Load recipe ──────────────────────────────────────────────
    try:
        loaded = resolve_recipe(recipe, cwd=cwd)
    except RecipeError as e:
        out.error = str(e)
        return out
    out.loaded = loaded
    definition = loaded.recipe

    if not definition.steps:
        out.error = f"Recipe '{definition.name}' has no steps."
        return out

    # ── Run ──────────────────────────────────────────────────────
    if registry is None:
        registry = default_registry(mock_mode=mock_mode)

    provisioner = Provisioner(
        registry,
        recipe_root=str(loaded.root),
        default_timeout=timeout or definition.defaults.timeout,
        dry_run=dry_run,
        observer=observer,
    )
    result = provisioner.run(definition.steps, definition.base)
    out.result = result

    if dry_run:
        return out

    # ── Persist state ────────────────────────────────────────────
    state_path = default_state_path(loaded.root)
    state = load_state(state_path)
    state.recipe_name = definition.name
    state.last_run = RunRecord(
        run_id=result.run_id,
        recipe=definition.name,
        status=result.status.value,
        started_at=result.started_at,
        ended_at=result.ended_at,
        steps_total=result.steps_total,
        steps_completed=result.steps_completed,
        failed_step=result.failure.step_id if result.failure else None,
        failure_kind=result.failure.kind.value if result.failure else None,
        exit_status=result.failure.exit_status if result.failure else 0,
    )

    # Receipts line up with the leading steps; the rest never ran
    state.steps = []
    for index, step in enumerate(definition.steps):
        receipt = result.receipts[index] if index < len(result.receipts) else None
        state.steps.append(
            StepRecord(
                id=step.id,
                kind=step.kind,
                status=receipt.status if receipt else "pending",
                exit_status=receipt.exit_status if receipt else None,
                duration_ms=receipt.duration_ms if receipt else 0,
            )
        )
    if result.ok:
        state.environment = result.environment
    state.metadata["mock"] = mock_mode
    state.metadata["source"] = loaded.source

    try:
        save_state(state, state_path)
        out.state_saved = True
    except OSError as e:
        logger.warning("Run state not saved: %s", e)

    # ── Write audit log ──────────────────────────────────────────
    AuditWriter(state_root=loaded.root).write(
        AuditEntry(
            run_id=result.run_id,
            recipe=definition.name,
            source=loaded.source,
            status=result.status.value,
            mock=mock_mode,
            steps_total=result.steps_total,
            steps_completed=result.steps_completed,
            failed_step=result.failure.step_id if result.failure else None,
            failure_kind=result.failure.kind.value if result.failure else None,
            exit_status=result.exit_code,
            duration_ms=sum(r.duration_ms for r in result.receipts),
            errors=[result.failure.error] if result.failure else [],
        )
    )

    return out
