"""Converge the local state to a deployment."""

from __future__ import annotations

import json
from typing import Annotated

import typer
from converge import ApplyState
from converge.errors import ExitCode
from converge.results import ResourceOutcome, RunResult
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from converge_cli.utils import handle_error, is_json, open_session

console = Console()


def apply(
    ctx: typer.Context,
    spec_file: Annotated[str | None, typer.Argument(help="Path to deployment YAML (default: .converge/spec.yaml)")] = None,
    parallelism: Annotated[int | None, typer.Option("--parallelism", "-p", help="Max resources in flight")] = None,
    state: Annotated[str | None, typer.Option("--state", help="Local state file")] = None,
) -> None:
    """Create or update every resource in dependency order. Exits 1 on partial failure."""
    json_mode = is_json(ctx)
    try:
        session = open_session(spec_file, state, parallelism=parallelism)
        on_event = None if json_mode else _print_outcome
        result = session.engine.apply(session.deployment, on_event=on_event)
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    if json_mode:
        print(json.dumps(result.to_dict(), default=str))
    else:
        render_result(result)

    if not result.success:
        raise typer.Exit(int(ExitCode.PARTIAL_FAILURE))


def _print_outcome(outcome: ResourceOutcome) -> None:
    if outcome.state is ApplyState.APPLIED:
        action = outcome.action.value if outcome.action else "done"
        console.print(f"  [green]✓[/green] {outcome.resource_id} [dim]({action})[/dim]")
    elif outcome.blocked_by is not None:
        console.print(f"  [yellow]-[/yellow] {outcome.resource_id} [dim](skipped: {outcome.blocked_by} failed)[/dim]")
    else:
        console.print(f"  [red]✗[/red] {outcome.resource_id}: {outcome.error}")


def render_result(result: RunResult) -> None:
    table = Table(title=f"{result.operation.title()}: {result.deployment}")
    table.add_column("Resource", style="cyan")
    table.add_column("State")
    table.add_column("Action")
    table.add_column("Attempts", justify="right")
    table.add_column("Detail", style="dim")
    for outcome in result.outcomes.values():
        table.add_row(
            str(outcome.resource_id),
            _state_label(outcome),
            outcome.action.value if outcome.action else "",
            str(outcome.attempts) if outcome.attempts else "",
            outcome.error or ", ".join(outcome.drifted),
        )
    console.print()
    console.print(table)

    if result.named_outputs:
        lines = "\n".join(f"[bold]{name}[/bold] = {value}" for name, value in result.named_outputs.items())
        console.print(Panel(lines, title="Outputs"))

    color = "green" if result.success else "red"
    console.print(f"[{color}]{result.summary()}[/{color}]")


def _state_label(outcome: ResourceOutcome) -> str:
    if outcome.skipped:
        return "[yellow]skipped[/yellow]"
    if outcome.state is ApplyState.APPLIED:
        return "[green]applied[/green]"
    return "[red]failed[/red]"
