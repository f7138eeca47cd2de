"""
Domain models — Pydantic types for the provisioner.

All models are re-exported here for convenient access:

    from provisioner.core.models import Environment, Recipe, Receipt, Step
"""

from provisioner.core.models.environment import DEFAULT_PATH, Environment
from provisioner.core.models.receipt import Receipt
from provisioner.core.models.recipe import DEFAULT_TIMEOUT, Recipe, RecipeDefaults
from provisioner.core.models.state import ProvisionState, RunRecord, StepRecord
from provisioner.core.models.step import Privilege, Step
from provisioner.core.models.template import GeneratedFile

__all__ = [
    "DEFAULT_PATH",
    "DEFAULT_TIMEOUT",
    # environment.py
    "Environment",
    # template.py
    "GeneratedFile",
    "Privilege",
    # state.py
    "ProvisionState",
    # receipt.py
    "Receipt",
    # recipe.py
    "Recipe",
    "RecipeDefaults",
    "RunRecord",
    # step.py
    "Step",
    "StepRecord",
]
