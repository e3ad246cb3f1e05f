from __future__ import annotations

import json
from typing import Annotated

import typer
from converge.errors import ExitCode
from rich.console import Console

from converge_cli.commands.apply_cmd import render_result
from converge_cli.utils import handle_error, is_json, open_session

console = Console()


def destroy(
    ctx: typer.Context,
    spec_file: Annotated[str | None, typer.Argument(help="Path to deployment YAML (default: .converge/spec.yaml)")] = None,
    state: Annotated[str | None, typer.Option("--state", help="Local state file")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Delete every resource in the deployment, dependents first."""
    try:
        session = open_session(spec_file, state)
        session.engine.validate(session.deployment)
        if not yes:
            typer.confirm(
                f"Destroy {len(session.deployment.resources)} resource(s) in {session.deployment.name}?",
                abort=True,
            )
        result = session.engine.destroy(session.deployment)
    except (typer.Exit, typer.Abort):
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    if is_json(ctx):
        print(json.dumps(result.to_dict(), default=str))
    else:
        render_result(result)

    if not result.success:
        raise typer.Exit(int(ExitCode.PARTIAL_FAILURE))
