from __future__ import annotations

import json
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from converge_cli.utils import handle_error, is_json, open_session

console = Console()


def outputs(
    ctx: typer.Context,
    spec_file: Annotated[str | None, typer.Argument(help="Path to deployment YAML (default: .converge/spec.yaml)")] = None,
    state: Annotated[str | None, typer.Option("--state", help="Local state file")] = None,
) -> None:
    """Show the deployment's named outputs as currently recorded in local state."""
    try:
        session = open_session(spec_file, state)
        session.engine.validate(session.deployment)
        values: dict[str, Any] = {}
        for name, reference in session.deployment.outputs.items():
            observed = session.provider.read(reference.target)
            values[name] = observed.exported().get(reference.property) if observed else None
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    if is_json(ctx):
        print(json.dumps(values, default=str))
        return

    if not values:
        console.print("[dim]Deployment declares no outputs.[/dim]")
        return

    table = Table(title=f"Outputs: {session.deployment.name}")
    table.add_column("Name", style="bold")
    table.add_column("Reference", style="dim")
    table.add_column("Value", style="green")
    for name, value in values.items():
        shown = "[dim](not applied)[/dim]" if value is None else str(value)
        table.add_row(name, str(session.deployment.outputs[name]), shown)
    console.print(table)
