"""
Environment provisioner — CLI entrypoint.

Usage:
    provisioner --help
    provisioner --recipe builtin:cwe-checker plan
    provisioner run --mock
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from provisioner import __version__
from provisioner.core.observability.logging_config import resolve_level, setup_logging_from_env


@click.group()
@click.version_option(version=__version__, prog_name="provisioner")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--recipe",
    "-r",
    "recipe",
    default=None,
    help="Recipe file or builtin:<name> (default: provision.yml, searched upward).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    recipe: str | None,
) -> None:
    """Provision a binary-analysis environment from a recipe."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["recipe"] = recipe
    ctx.obj.setdefault("cwd", Path.cwd())

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging_from_env(resolve_level(debug=debug, verbose=verbose, quiet=quiet))


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--dry-run", is_flag=True, help="Validate every step but don't execute.")
@click.option("--mock", is_flag=True, help="Use mock adapter (no real execution).")
@click.option("--timeout", type=int, default=None, help="Default per-step timeout (seconds).")
@click.pass_context
def run(
    ctx: click.Context,
    as_json: bool,
    dry_run: bool,
    mock: bool,
    timeout: int | None,
) -> None:
    """Run every step of the recipe, stopping at the first failure.

    Examples:

        provisioner run

        provisioner --recipe builtin:cwe-checker run --mock

        provisioner run --dry-run
    """
    from provisioner.core.use_cases.provision import run_provision

    verbose = ctx.obj.get("verbose", False)

    def _progress(event, index, step, receipt) -> None:
        if as_json:
            return
        if event == "started":
            click.echo(f"   → [{index + 1}] {step.label} ({step.kind})")
            return
        timing = f" ({receipt.duration_ms}ms)" if receipt.duration_ms else ""
        if receipt.ok:
            click.secho(f"   ✓ {step.id}", fg="green", nl=False)
            click.echo(timing)
            if verbose and receipt.output:
                for line in receipt.output.split("\n")[-10:]:
                    click.echo(f"     │ {line}")
        elif receipt.failed:
            click.secho(f"   ✗ {step.id}", fg="red", nl=False)
            click.echo(timing)
            if receipt.error:
                for line in receipt.error.split("\n")[-5:]:
                    click.echo(f"     │ {line}")
        else:
            click.secho(f"   ⊘ {step.id} ", fg="yellow", nl=False)
            click.echo(f"({receipt.output})")

    if not as_json:
        mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
        click.secho(f"\n⚡ {mode_label}provision", fg="cyan", bold=True)

    result = run_provision(
        recipe=ctx.obj.get("recipe"),
        cwd=ctx.obj.get("cwd"),
        dry_run=dry_run,
        mock_mode=mock,
        timeout=timeout,
        observer=_progress,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    run_result = result.result
    assert run_result is not None

    click.echo()
    if run_result.ok and dry_run:
        click.secho(f"   Result: {run_result.steps_total} steps validated", fg="green", bold=True)
    elif run_result.ok:
        click.secho(
            f"   Result: {run_result.steps_completed}/{run_result.steps_total} succeeded",
            fg="green",
            bold=True,
        )
        if run_result.environment and not dry_run:
            env = run_result.environment
            click.echo(f"   User: {env.user}  Workdir: {env.working_dir}")
            click.echo(f"   PATH: {env.search_path}")
    else:
        failure = run_result.failure
        assert failure is not None
        click.secho(f"   Result: {failure.kind.value} at step '{failure.step_id}'", fg="red", bold=True)
        if failure.command:
            click.echo(f"   Command: {failure.command}")
        if failure.exit_status is not None:
            click.echo(f"   Exit status: {failure.exit_status}")
    click.echo()

    sys.exit(result.exit_code)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(ctx: click.Context, as_json: bool) -> None:
    """List the recipe's steps and the commands each would run."""
    from provisioner.core.use_cases.plan import plan_recipe

    result = plan_recipe(recipe=ctx.obj.get("recipe"), cwd=ctx.obj.get("cwd"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.loaded is not None
    click.secho(f"\n📋 {result.loaded.recipe.name}", fg="cyan", bold=True)
    if result.loaded.recipe.description:
        click.echo(f"   {result.loaded.recipe.description}")
    click.echo()

    for planned in result.steps:
        elevated = " 🔑" if planned.privilege == "elevated" else ""
        click.secho(f"   {planned.index + 1:>2}. {planned.name}", bold=True, nl=False)
        click.echo(f"  [{planned.kind}] as {planned.user} in {planned.working_dir}{elevated}")
        for command in planned.commands:
            click.echo(f"       $ {command}")

    if result.loaded.recipe.entrypoint:
        click.echo()
        click.echo(f"   Entrypoint: {' '.join(result.loaded.recipe.entrypoint)}")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check(ctx: click.Context, as_json: bool) -> None:
    """Validate the recipe."""
    from provisioner.core.use_cases.recipe_check import check_recipe

    result = check_recipe(recipe=ctx.obj.get("recipe"), cwd=ctx.obj.get("cwd"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.loaded is not None
        click.secho("✅ Recipe is valid", fg="green", bold=True)
        click.echo(f"   Recipe: {result.loaded.recipe.name}")
        click.echo(f"   Steps: {len(result.loaded.recipe.steps)}")
    else:
        click.secho("❌ Recipe errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    click.echo()
    if not result.valid:
        sys.exit(1)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show the last recorded run."""
    from provisioner.core.use_cases.status import get_status

    result = get_status(recipe=ctx.obj.get("recipe"), cwd=ctx.obj.get("cwd"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.loaded is not None and result.state is not None
    click.secho(f"\n📋 {result.loaded.recipe.name}", fg="cyan", bold=True)
    click.echo(f"   Source: {result.loaded.source}")

    if not result.has_run:
        click.echo("   No runs recorded yet.")
        click.echo()
        return

    last = result.state.last_run
    status_color = {"succeeded": "green", "failed": "red"}.get(last.status, "white")
    click.echo()
    click.secho("   Last run:", fg="white", bold=True)
    click.echo(f"     {last.run_id} — ", nl=False)
    click.secho(last.status, fg=status_color)
    click.echo(f"     Steps: {last.steps_completed}/{last.steps_total}")
    if last.failed_step:
        click.echo(f"     Failed: {last.failed_step} ({last.failure_kind}, exit {last.exit_status})")
    if last.ended_at:
        click.echo(f"     at {last.ended_at}")

    markers = {"ok": "✓", "failed": "✗", "skipped": "⊘", "pending": "·"}
    click.echo()
    for record in result.state.steps:
        click.echo(f"     {markers.get(record.status, '?')} {record.id} [{record.kind}]")

    if result.state.environment:
        env = result.state.environment
        click.echo()
        click.echo(f"   Environment: {env.user} @ {env.working_dir}")
        click.echo(f"   PATH: {env.search_path}")
    click.echo()


@cli.command("exec", context_settings={"ignore_unknown_options": True})
@click.option("--dry-run", is_flag=True, help="Print the command line instead of running it.")
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def exec_(ctx: click.Context, dry_run: bool, command: tuple[str, ...]) -> None:
    """Run a command through the recipe's entrypoint.

    Uses the identity and search path of the last successful run.

    Examples:

        provisioner exec -- bap --list-plugins

        provisioner exec -- bap /bin/ls --pass=cwe-checker
    """
    from provisioner.core.use_cases.exec_command import exec_in_environment

    result = exec_in_environment(
        list(command),
        recipe=ctx.obj.get("recipe"),
        cwd=ctx.obj.get("cwd"),
        dry_run=dry_run,
    )

    if result.error:
        click.secho(f"❌ {result.error}", fg="red", err=True)
    elif dry_run:
        import shlex

        click.echo(shlex.join(result.argv))
    sys.exit(result.exit_code)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def recipes(as_json: bool) -> None:
    """List the built-in recipes."""
    from provisioner.core.config.loader import (
        BUILTIN_PREFIX,
        list_builtin_recipes,
        load_builtin_recipe,
    )

    names = list_builtin_recipes()
    if as_json:
        click.echo(json.dumps(names, indent=2))
        return

    if not names:
        click.echo("No built-in recipes.")
        return

    click.secho("\n📦 Built-in recipes", fg="cyan", bold=True)
    for name in names:
        recipe = load_builtin_recipe(name)
        click.echo(f"   • {BUILTIN_PREFIX}{name} — {recipe.description or recipe.name}")
        click.echo(f"     {len(recipe.steps)} steps, base image {recipe.base_image}")
    click.echo()


# ── Register sub-command groups from provisioner/ui/cli/ ────────

from provisioner.ui.cli.history import history
from provisioner.ui.cli.render import render

cli.add_command(history)
cli.add_command(render)


if __name__ == "__main__":
    cli()
