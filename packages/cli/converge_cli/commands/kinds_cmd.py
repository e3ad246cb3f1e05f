from __future__ import annotations

import json
from typing import Annotated

import typer
from converge.kinds import get_catalog
from rich.console import Console
from rich.table import Table

console = Console()


def kinds(
    ctx: typer.Context,
    namespace: Annotated[str | None, typer.Option("--namespace", "-n", help="Only kinds from this namespace")] = None,
) -> None:
    """List the resource kinds the local provider knows about."""
    defs = get_catalog().list_kinds(namespace)

    if ctx.obj and ctx.obj.get("json"):
        print(json.dumps([d.to_dict() for d in defs]))
        return

    if not defs:
        console.print("[yellow]No kinds found.[/yellow]")
        return

    table = Table(title=f"Resource kinds ({len(defs)})")
    table.add_column("Kind", style="cyan")
    table.add_column("Name")
    table.add_column("Patch", justify="center")
    table.add_column("Outputs", style="dim")
    for d in defs:
        table.add_row(d.kind, d.name, "yes" if d.partial_update else "no", ", ".join(d.outputs))
    console.print(table)
