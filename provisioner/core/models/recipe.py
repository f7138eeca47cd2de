"""
Recipe model — the root document of a provisioning run.

Loaded from provision.yml (or a built-in recipe), this declares the
base environment, the ordered steps, and the entrypoint wrapper used
to run commands inside the provisioned environment afterwards.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from provisioner.core.models.environment import Environment
from provisioner.core.models.step import Step

DEFAULT_TIMEOUT = 1800
DEFAULT_BASE_IMAGE = "ubuntu:bionic"


class RecipeDefaults(BaseModel):
    """Values applied to steps that don't set their own."""

    timeout: int = DEFAULT_TIMEOUT


class Recipe(BaseModel):
    """A named, ordered provisioning sequence."""

    version: int = 1

    name: str
    description: str = ""
    base_image: str = DEFAULT_BASE_IMAGE

    base: Environment = Field(default_factory=Environment)
    defaults: RecipeDefaults = Field(default_factory=RecipeDefaults)
    steps: list[Step] = Field(default_factory=list)
    entrypoint: list[str] = Field(default_factory=list)

    @field_validator("steps")
    @classmethod
    def _unique_step_ids(cls, steps: list[Step]) -> list[Step]:
        ids = [s.id for s in steps]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise ValueError(f"Duplicate step ids: {', '.join(dupes)}")
        return steps
