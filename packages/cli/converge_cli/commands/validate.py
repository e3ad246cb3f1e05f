from __future__ import annotations

import json
from typing import Annotated

import typer
from rich.console import Console
from rich.rule import Rule

from converge_cli.utils import handle_error, is_json, open_session

console = Console()


def validate(
    ctx: typer.Context,
    spec_file: Annotated[str | None, typer.Argument(help="Path to deployment YAML (default: .converge/spec.yaml)")] = None,
) -> None:
    """Check a deployment: identities, references, cycles and providers. Makes no provider calls."""
    try:
        session = open_session(spec_file)
        order = session.engine.order(session.deployment)
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    if is_json(ctx):
        print(json.dumps({"valid": True, "resources": len(order), "order": [str(rid) for rid in order]}))
        return

    console.print(Rule(f"[bold]{session.deployment.name}[/bold]"))
    for i, rid in enumerate(order, 1):
        console.print(f"  [dim]{i:>3}.[/dim] [cyan]{rid.kind}[/cyan]:{rid.name}")
    console.print(f"\n[green]Valid.[/green] {len(order)} resource(s), no cycles.")
