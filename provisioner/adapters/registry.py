"""
Adapter registry — central dispatch for all step execution.

The registry is the single point of adapter management. It handles
registration, lookup, mock mode, and step execution. The provisioner
never talks to adapters directly — always through the registry.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.adapters.mock import MockAdapter
from provisioner.core.models.environment import Environment
from provisioner.core.models.receipt import Receipt
from provisioner.core.models.recipe import DEFAULT_TIMEOUT
from provisioner.core.models.step import Step
from provisioner.core.services.env_changes import environment_after
from provisioner.core.services.subprocess_runner import CommandRunner

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry and dispatcher for adapters.

    Features:
        - Register/unregister adapters by step kind
        - Mock mode: route side-effecting steps to a mock adapter
        - Execute steps through the appropriate adapter
        - Query adapter availability
    """

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode
        self._mock_adapter: Adapter | None = None

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        """Enable or disable mock mode.

        Args:
            enabled: Whether to use mock mode.
            mock_adapter: Optional custom mock adapter. If None, uses default.
        """
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter

    def register(self, adapter: Adapter) -> None:
        """Register an adapter under its name."""
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def unregister(self, name: str) -> None:
        """Remove an adapter from the registry."""
        self._adapters.pop(name, None)

    def get(self, name: str) -> Adapter | None:
        """Look up an adapter by name."""
        return self._adapters.get(name)

    def list_adapters(self) -> list[str]:
        """List all registered adapter names."""
        return list(self._adapters.keys())

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Get availability status of all registered adapters."""
        status = {}
        for name, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status

    def _resolve(self, kind: str) -> Adapter | None:
        adapter = self._adapters.get(kind)
        if not self._mock_mode:
            return adapter
        if adapter is not None and adapter.side_effect_free:
            return adapter
        if self._mock_adapter is None:
            self._mock_adapter = MockAdapter()
        return self._mock_adapter

    def build_context(
        self,
        step: Step,
        environment: Environment,
        *,
        index: int = 0,
        recipe_root: str = ".",
        default_timeout: int = DEFAULT_TIMEOUT,
        dry_run: bool = False,
    ) -> ExecutionContext:
        """Execution context for ``step`` with its timeout resolved."""
        return ExecutionContext(
            step=step,
            environment=environment,
            index=index,
            recipe_root=recipe_root,
            timeout=step.timeout or default_timeout,
            dry_run=dry_run,
        )

    def execute_step(
        self,
        step: Step,
        environment: Environment,
        *,
        index: int = 0,
        recipe_root: str = ".",
        default_timeout: int = DEFAULT_TIMEOUT,
        dry_run: bool = False,
    ) -> Receipt:
        """Execute a step through the appropriate adapter.

        This is the main dispatch method. It:
        1. Resolves the adapter (or mock)
        2. Builds the execution context
        3. Validates the step
        4. Executes (or dry-runs)
        5. Returns a Receipt (never raises)

        Args:
            step: The step to execute.
            environment: Environment the step runs in.
            index: Position of the step in its sequence.
            recipe_root: Directory local sources resolve against.
            default_timeout: Timeout for steps that don't set one.
            dry_run: If True, validate but don't execute.

        Returns:
            Receipt with execution results.
        """
        start_time = time.monotonic()

        context = self.build_context(
            step,
            environment,
            index=index,
            recipe_root=recipe_root,
            default_timeout=default_timeout,
            dry_run=dry_run,
        )

        adapter = self._resolve(step.kind)
        if adapter is None:
            return Receipt.failure(
                adapter=step.kind,
                step_id=step.id,
                error=f"No adapter registered for '{step.kind}'",
            )

        # Validate
        try:
            is_valid, error_msg = adapter.validate(context)
            if not is_valid:
                return Receipt.failure(
                    adapter=step.kind,
                    step_id=step.id,
                    error=f"Validation failed: {error_msg}",
                )
        except Exception as e:
            return Receipt.failure(
                adapter=step.kind,
                step_id=step.id,
                error=f"Validation error: {e}",
            )

        # Dry run: validated but not executed
        if dry_run:
            return Receipt.skip(
                adapter=step.kind,
                step_id=step.id,
                reason=f"[dry-run] Would execute {step.kind}:{step.id}",
                metadata={"dry_run": True, "commands": self.preview_step(context)},
                environment=environment_after(step, environment),
            )

        # Execute
        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised during execution: %s", step.kind, e)
            receipt = Receipt.failure(
                adapter=step.kind,
                step_id=step.id,
                error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - start_time) * 1000)
        return receipt

    def preview_step(self, context: ExecutionContext) -> list[str]:
        """Commands the step's adapter would run (empty if unknown)."""
        adapter = self._adapters.get(context.step.kind)
        if adapter is None:
            return []
        try:
            return adapter.preview(context)
        except Exception as e:
            logger.debug("Preview failed for %s: %s", context.step.id, e)
            return []


def default_registry(
    mock_mode: bool = False,
    runner: CommandRunner | None = None,
    invoking_user: str | None = None,
) -> AdapterRegistry:
    """Registry with every built-in adapter registered.

    Args:
        mock_mode: Route side-effecting steps to the mock adapter.
        runner: Command runner shared by all command adapters.
        invoking_user: User this process runs as (default: detected).
    """
    from provisioner.adapters.build.builder import BuildAdapter
    from provisioner.adapters.build.register import RegisterAdapter
    from provisioner.adapters.network.download import DownloadAdapter
    from provisioner.adapters.packages.installer import PackageAdapter
    from provisioner.adapters.packages.repository import RepositoryAdapter
    from provisioner.adapters.shell.command import ShellCommandAdapter
    from provisioner.adapters.shell.filesystem import CopyAdapter
    from provisioner.adapters.system.environment import EnvAdapter
    from provisioner.adapters.system.user import UserAdapter
    from provisioner.adapters.vcs.git import GitAdapter

    registry = AdapterRegistry(mock_mode=mock_mode)
    command_adapters = (
        ShellCommandAdapter,
        PackageAdapter,
        RepositoryAdapter,
        DownloadAdapter,
        GitAdapter,
        BuildAdapter,
        RegisterAdapter,
        UserAdapter,
        CopyAdapter,
    )
    for adapter_cls in command_adapters:
        registry.register(adapter_cls(runner=runner, invoking_user=invoking_user))
    registry.register(EnvAdapter())
    return registry
