import typer

from converge_cli import __version__
from converge_cli.commands.apply_cmd import apply
from converge_cli.commands.destroy_cmd import destroy
from converge_cli.commands.graph_cmd import graph
from converge_cli.commands.kinds_cmd import kinds
from converge_cli.commands.outputs_cmd import outputs
from converge_cli.commands.plan_cmd import plan
from converge_cli.commands.validate import validate
from converge_cli.utils import configure_logging


def _version_callback(value: bool) -> None:
    if value:
        print(f"converge {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="converge",
    help="Declarative resource provisioning in dependency order",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V", help="Show version", callback=_version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["json"] = json_output
    configure_logging(verbose)


app.command()(validate)
app.command()(graph)
app.command()(plan)
app.command()(apply)
app.command()(destroy)
app.command()(outputs)
app.command()(kinds)
