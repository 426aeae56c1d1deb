"""calabaria-trafo CLI entry point.

Provides commands for inspecting and evaluating parameter transformations.
"""

import logging
import sys

import typer

from .evaluate import evaluate_command, show_command

# Create the main app
app = typer.Typer(
    name="calabaria-trafo",
    help="Inspect and evaluate symbolic parameter transformations",
    invoke_without_command=True,
)

app.command("evaluate")(evaluate_command)
app.command("show")(show_command)


@app.command("version")
def version():
    """Show version information."""
    from .. import __version__
    typer.echo(f"calabaria-trafo version {__version__}")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output")
):
    """Inspect and evaluate symbolic parameter transformations."""
    if verbose:
        logging.basicConfig(level=logging.INFO)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        typer.echo("\nError: Missing command.", err=True)
        raise typer.Exit(1)


def cli_main():
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("\nAborted", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli_main()
