"""
Recipe loader — reads provision.yml into domain models.

This is the primary entry point for loading recipes.  It reads YAML,
validates against Pydantic schemas, and returns typed domain objects.

Recipes come from a file (``provision.yml``, searched upward from the
working directory) or from the package's built-in set
(``builtin:<name>``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path

import yaml
from pydantic import ValidationError

from provisioner.core.models.recipe import Recipe

logger = logging.getLogger(__name__)

# Default recipe filename
RECIPE_FILE = "provision.yml"
BUILTIN_PREFIX = "builtin:"
_BUILTIN_PACKAGE = "provisioner.recipes"


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


class RecipeError(ConfigError):
    """Raised when a recipe cannot be found, parsed or validated."""


@dataclass
class LoadedRecipe:
    """A recipe plus where it came from."""

    recipe: Recipe
    path: Path | None          # None for built-in recipes
    root: Path                 # local sources and .state/ resolve here

    @property
    def source(self) -> str:
        if self.path is None:
            return f"{BUILTIN_PREFIX}{self.recipe.name}"
        return str(self.path)


def find_recipe_file(start_dir: Path | None = None) -> Path | None:
    """Search for provision.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to provision.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / RECIPE_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def parse_recipe(raw: str, source: str = "<string>") -> Recipe:
    """Parse and validate recipe YAML.

    Raises:
        RecipeError: If the YAML is invalid or fails validation.
    """
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise RecipeError(f"Invalid YAML in {source}: {e}") from e

    if not isinstance(data, dict):
        raise RecipeError(f"Expected a YAML mapping in {source}, got {type(data).__name__}")

    # The YAML may wrap everything under a "recipe" key or be flat
    recipe_data = data["recipe"] if isinstance(data.get("recipe"), dict) else data

    try:
        return Recipe.model_validate(recipe_data)
    except ValidationError as e:
        raise RecipeError(f"Invalid recipe in {source}: {e}") from e


def load_recipe(path: Path | None = None) -> Recipe:
    """Load and validate a recipe file.

    Args:
        path: Explicit path to provision.yml. If None, searches upward.

    Returns:
        Validated Recipe model.

    Raises:
        RecipeError: If the file is missing or invalid.
    """
    if path is None:
        path = find_recipe_file()

    if path is None:
        raise RecipeError(
            f"No {RECIPE_FILE} found. "
            f"Specify --recipe PATH or --recipe {BUILTIN_PREFIX}<name>."
        )

    if not path.is_file():
        raise RecipeError(f"Recipe file not found: {path}")

    logger.debug("Loading recipe from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RecipeError(f"Cannot read {path}: {e}") from e

    recipe = parse_recipe(raw, source=str(path))
    logger.info("Loaded recipe '%s' with %d steps", recipe.name, len(recipe.steps))
    return recipe


def list_builtin_recipes() -> list[str]:
    """Names of the recipes shipped with the package."""
    names = []
    for entry in resources.files(_BUILTIN_PACKAGE).iterdir():
        if entry.name.endswith((".yml", ".yaml")):
            names.append(entry.name.rsplit(".", 1)[0])
    return sorted(names)


def load_builtin_recipe(name: str) -> Recipe:
    """Load a recipe shipped with the package.

    Raises:
        RecipeError: If no built-in recipe has that name.
    """
    for suffix in (".yml", ".yaml"):
        entry = resources.files(_BUILTIN_PACKAGE).joinpath(f"{name}{suffix}")
        if entry.is_file():
            return parse_recipe(entry.read_text(encoding="utf-8"), source=f"{BUILTIN_PREFIX}{name}")

    available = ", ".join(list_builtin_recipes()) or "none"
    raise RecipeError(f"Unknown built-in recipe '{name}'. Available: {available}")


def resolve_recipe(ref: str | None = None, cwd: Path | None = None) -> LoadedRecipe:
    """Resolve a ``--recipe`` value into a loaded recipe.

    Args:
        ref: A path, ``builtin:<name>``, or None to search for provision.yml.
        cwd: Directory used for searching and as root for built-ins.

    Raises:
        RecipeError: If the recipe cannot be loaded.
    """
    base = (cwd or Path.cwd()).resolve()

    if ref and ref.startswith(BUILTIN_PREFIX):
        recipe = load_builtin_recipe(ref[len(BUILTIN_PREFIX):])
        return LoadedRecipe(recipe=recipe, path=None, root=base)

    path = Path(ref) if ref else find_recipe_file(base)
    if path is None:
        raise RecipeError(
            f"No {RECIPE_FILE} found in {base} or its parents. "
            f"Specify --recipe PATH or --recipe {BUILTIN_PREFIX}<name>."
        )
    if not path.is_absolute():
        path = base / path
    recipe = load_recipe(path)
    return LoadedRecipe(recipe=recipe, path=path, root=path.parent.resolve())
