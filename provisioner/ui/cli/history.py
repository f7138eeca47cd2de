"""
CLI command for the run history kept in the audit ledger.

Usage::

    provisioner history
    provisioner history -n 5 --json
"""

from __future__ import annotations

import json
import sys

import click


@click.command()
@click.option("-n", "--limit", default=10, show_default=True, help="Number of runs to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, limit: int, as_json: bool) -> None:
    """Show recent runs, newest first."""
    from provisioner.core.use_cases.status import get_status

    result = get_status(recipe=ctx.obj.get("recipe"), cwd=ctx.obj.get("cwd"), history=limit)

    if as_json:
        if result.error:
            click.echo(json.dumps({"error": result.error}, indent=2))
        else:
            click.echo(json.dumps([e.model_dump(mode="json") for e in result.history], indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if not result.history:
        click.echo("No runs recorded yet.")
        return

    click.secho(f"\n📜 Last {len(result.history)} run(s)", fg="cyan", bold=True)
    for entry in result.history:
        color = "green" if entry.status == "succeeded" else "red"
        mode = " [mock]" if entry.mock else ""
        click.echo(f"   {entry.timestamp}  {entry.run_id}{mode}  ", nl=False)
        click.secho(entry.status, fg=color, nl=False)
        click.echo(f"  {entry.steps_completed}/{entry.steps_total}")
        if entry.failed_step:
            click.echo(f"     ✗ {entry.failed_step} ({entry.failure_kind}, exit {entry.exit_status})")
    click.echo()
