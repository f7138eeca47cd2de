"""
Step model — one unit of work in a provisioning recipe.

Steps are declared in YAML.  Anything that isn't a core step field is
collected into ``params`` and handed to the step's adapter, so recipes
can stay flat:

    - id: base-packages
      kind: packages
      manager: apt
      packages: [curl, git]
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

Privilege = Literal["normal", "elevated"]

_CORE_FIELDS = frozenset(
    {"id", "name", "kind", "params", "cwd", "privilege", "expected_exit", "timeout"}
)


class Step(BaseModel):
    """An ordered unit of work dispatched to one adapter."""

    id: str
    name: str = ""
    kind: str = "shell"                  # adapter that executes this step
    params: dict[str, Any] = Field(default_factory=dict)
    cwd: str | None = None               # None = environment working dir
    privilege: Privilege = "normal"
    expected_exit: int = 0
    timeout: int | None = None           # None = recipe default

    @model_validator(mode="before")
    @classmethod
    def _collect_params(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        extra = {k: v for k, v in data.items() if k not in _CORE_FIELDS}
        if not extra:
            return data
        core = {k: v for k, v in data.items() if k in _CORE_FIELDS}
        core["params"] = {**extra, **(core.get("params") or {})}
        return core

    @property
    def label(self) -> str:
        """Human-readable label for logs and CLI output."""
        return self.name or self.id
