from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

import typer
from converge import Deployment, Engine, LocalStateProvider, ProviderRegistry
from converge.errors import ConvergeError, ExitCode, format_error_message
from rich.console import Console

from converge_cli.project import project_settings, resolve_spec_path, resolve_state_path

_err_console = Console(stderr=True)


def handle_error(ctx: typer.Context, e: Exception) -> None:
    """Print a clean error message and exit with the error's exit code."""
    import yaml

    verbose = ctx.obj.get("verbose", False) if ctx.obj else False
    json_mode = ctx.obj.get("json", False) if ctx.obj else False

    code = ExitCode.UNKNOWN_ERROR
    if isinstance(e, ConvergeError):
        msg = format_error_message(e)
        code = e.exit_code
    elif isinstance(e, FileNotFoundError):
        msg = f"File not found: {e}"
        code = ExitCode.CONFIG_ERROR
    elif isinstance(e, yaml.YAMLError):
        msg = f"Invalid YAML: {e}"
        code = ExitCode.CONFIG_ERROR
    elif "validation" in type(e).__name__.lower():
        msg = f"Invalid deployment: {e}"
        code = ExitCode.CONFIG_ERROR
    elif isinstance(e, ValueError):
        msg = str(e)
        code = ExitCode.CONFIG_ERROR
    else:
        msg = f"Error: {e}"

    if json_mode:
        print(json.dumps({"error": msg, "exit_code": int(code)}))
    else:
        _err_console.print(f"[red]Error:[/red] {msg}")

    if verbose:
        _err_console.print_exception()

    raise typer.Exit(int(code))


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


@dataclass
class Session:
    """Everything a command needs to run a deployment against local state."""

    deployment: Deployment
    engine: Engine
    provider: LocalStateProvider
    state_path: Path


def open_session(spec_file: str | None, state: str | None = None, **overrides) -> Session:
    settings = project_settings(**overrides)
    deployment = Deployment.from_file(resolve_spec_path(spec_file))
    state_path = resolve_state_path(state, settings)
    provider = LocalStateProvider(state_path)
    engine = Engine(ProviderRegistry(default=provider), settings)
    return Session(deployment=deployment, engine=engine, provider=provider, state_path=state_path)


def is_json(ctx: typer.Context) -> bool:
    return bool(ctx.obj and ctx.obj.get("json"))
