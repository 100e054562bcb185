"""homefiles command-line interface."""

from __future__ import annotations

import typer

from homefiles import __version__
from homefiles.cli.commands import build, check, generations, switch

app = typer.Typer(
    name="homefiles",
    help="Declaratively link managed files into your home directory.",
    add_completion=False,
    no_args_is_help=True,
)

app.command()(switch)
app.command()(build)
app.command()(check)
app.command()(generations)


@app.command()
def version() -> None:
    """Print the homefiles version."""
    typer.echo(__version__)


def main() -> None:
    app()
