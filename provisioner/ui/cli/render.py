"""
CLI commands for rendering a recipe into other formats.

Usage::

    provisioner render dockerfile
    provisioner --recipe builtin:cwe-checker render dockerfile -o Dockerfile
"""

from __future__ import annotations

import sys
from pathlib import Path

import click


@click.group()
def render() -> None:
    """Render the recipe as files for other tools."""


@render.command("dockerfile")
@click.option(
    "--output", "-o", "output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write to FILE instead of stdout.",
)
@click.option("--force", is_flag=True, help="Overwrite an existing file.")
@click.pass_context
def dockerfile(ctx: click.Context, output: Path | None, force: bool) -> None:
    """Render the recipe as a Dockerfile."""
    from provisioner.core.config.loader import RecipeError, resolve_recipe
    from provisioner.core.services.generators.dockerfile import generate_dockerfile

    try:
        loaded = resolve_recipe(ctx.obj.get("recipe"), cwd=ctx.obj.get("cwd"))
    except RecipeError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    generated = generate_dockerfile(loaded)

    if output is None:
        click.echo(generated.content, nl=False)
        return

    if output.exists() and not (force or generated.overwrite):
        click.secho(f"❌ {output} already exists (use --force to overwrite)", fg="red", err=True)
        sys.exit(1)

    output.write_text(generated.content, encoding="utf-8")
    click.secho(f"✅ Wrote {output}", fg="green")
