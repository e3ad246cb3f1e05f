"""Graph view — resources, their dependencies and the waves they run in."""

from __future__ import annotations

import json
from typing import Annotated

import typer
from converge.resolver import levels
from rich.console import Console
from rich.table import Table

from converge_cli.utils import handle_error, is_json, open_session

console = Console()


def graph(
    ctx: typer.Context,
    spec_file: Annotated[str | None, typer.Argument(help="Path to deployment YAML (default: .converge/spec.yaml)")] = None,
) -> None:
    """Show the dependency graph grouped into waves of independent resources."""
    try:
        session = open_session(spec_file)
        g = session.engine.validate(session.deployment)
        waves = levels(g)
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    if is_json(ctx):
        result = {
            "waves": [[str(rid) for rid in wave] for wave in waves],
            "edges": sorted([str(a), str(b)] for a, b in g.edges),
        }
        print(json.dumps(result))
        return

    table = Table(title=f"{session.deployment.name} ({len(g)} resources, {len(waves)} waves)")
    table.add_column("Wave", justify="right", style="dim")
    table.add_column("Resource", style="cyan")
    table.add_column("Depends on")
    for n, wave in enumerate(waves, 1):
        for rid in wave:
            deps = ", ".join(str(d) for d in g.sorted_by_declaration(g.dependencies(rid)))
            table.add_row(str(n), str(rid), deps or "[dim]-[/dim]")
    console.print(table)
