"""List generations recorded in the state directory."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from homefiles.cli.helpers import console, fail, load_context
from homefiles.deploy.errors import DeployError
from homefiles.deploy.generations import GenerationStore


def generations(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Declaration file to read"),
    json_output: bool = typer.Option(False, "--json", help="Output machine-readable JSON"),
) -> None:
    """Show every generation and which one is current."""
    _, _, settings = load_context(config)
    store = GenerationStore(settings.state_dir)
    current = store.pointer.read()
    try:
        items = store.list_generations()
    except DeployError as exc:
        fail(exc)

    if json_output:
        payload = [
            {
                "number": gen.number,
                "previous": gen.previous,
                "created_at": gen.created_at,
                "files": len(gen.entries),
                "current": gen.number == current,
                "path": str(gen.path),
            }
            for gen in items
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not items:
        console.print("[dim]No generations yet. Run 'homefiles switch'.[/dim]")
        return

    table = Table(title="Generations", show_header=True)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Created", style="magenta")
    table.add_column("Files", justify="right")
    table.add_column("Current", style="green")
    for gen in items:
        table.add_row(
            str(gen.number),
            gen.created_at,
            str(len(gen.entries)),
            "yes" if gen.number == current else "",
        )
    console.print(table)
