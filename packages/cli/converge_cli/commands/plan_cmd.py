from __future__ import annotations

import json
from typing import Annotated

import typer
from converge import Action
from rich.console import Console
from rich.table import Table

from converge_cli.utils import handle_error, is_json, open_session

console = Console()

_SYMBOLS = {
    Action.CREATE: "[green]+ create[/green]",
    Action.UPDATE: "[yellow]~ update[/yellow]",
    Action.NOOP: "[dim]= noop[/dim]",
}


def plan(
    ctx: typer.Context,
    spec_file: Annotated[str | None, typer.Argument(help="Path to deployment YAML (default: .converge/spec.yaml)")] = None,
    state: Annotated[str | None, typer.Option("--state", help="Local state file")] = None,
) -> None:
    """Preview what apply would do, reading remote state only."""
    try:
        session = open_session(spec_file, state)
        with console.status("Reading remote state..."):
            result = session.engine.plan(session.deployment)
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    if is_json(ctx):
        print(json.dumps(result.to_dict()))
        return

    table = Table(title=f"Plan: {result.deployment}")
    table.add_column("Resource", style="cyan")
    table.add_column("Action")
    table.add_column("Changes")
    for entry in result.entries:
        if entry.error:
            table.add_row(str(entry.resource_id), "[red]? unknown[/red]", f"[red]{entry.error}[/red]")
            continue
        table.add_row(str(entry.resource_id), _SYMBOLS[entry.action], ", ".join(entry.drifted))
    console.print(table)
    console.print(result.summary())
