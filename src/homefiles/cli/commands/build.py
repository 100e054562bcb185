"""CLI commands that plan a generation without touching the live tree."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from homefiles.cli.helpers import (
    configure_logging,
    console,
    fail,
    load_context,
    read_entries,
    switch_lock,
)
from homefiles.deploy.activate import ActivationOptions, build_generation, check_generation
from homefiles.deploy.errors import DeployError
from homefiles.deploy.generations import GenerationStore


def build(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Declaration file to read"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Build the generation image for the declared files.

    The generation is committed to the state directory but the current
    generation pointer and the live tree are left alone.
    """
    config_path, payload, settings = load_context(config, verbose=verbose or None)
    configure_logging(settings.verbose)

    store = GenerationStore(settings.state_dir)
    with switch_lock(settings.state_dir):
        store.cleanup_orphaned_staging()
        entries = read_entries(config_path, payload, settings)
        try:
            generation = build_generation(entries, store)
        except DeployError as exc:
            fail(exc)

    console.print(f"Generation {generation.number}: {generation.image}")


def check(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Declaration file to read"),
    backup_ext: Optional[str] = typer.Option(None, "--backup-ext", "-b", help="Suffix a switch would back up with"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Check that the declared files could be switched to without collisions."""
    config_path, payload, settings = load_context(
        config, backup_ext=backup_ext, verbose=verbose or None
    )
    configure_logging(settings.verbose)

    store = GenerationStore(settings.state_dir)
    options = ActivationOptions(live_root=settings.root, backup_ext=settings.backup_ext)
    with switch_lock(settings.state_dir):
        entries = read_entries(config_path, payload, settings)
        try:
            result = check_generation(entries, store, options)
        except DeployError as exc:
            fail(exc)

    console.print(f"[green]No collisions[/green] across {len(entries)} declared file(s)")
    if result.identical:
        console.print(f"  {len(result.identical)} existing files already identical -- skipped")
    if result.would_backup:
        console.print(f"  [yellow]{len(result.would_backup)} existing files would be backed up[/yellow]")
