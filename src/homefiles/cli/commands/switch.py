"""CLI command that activates the declared files as a new generation.

Usage:
    homefiles switch                 # Build and switch
    homefiles switch --dry-run       # Report every step without changing anything
    homefiles switch -b backup       # Move colliding files to <name>.backup
    homefiles switch --verbose       # Trace every filesystem operation
"""

from __future__ import annotations

import json
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
from homefiles.deploy.activate import ActivationOptions, activate
from homefiles.deploy.errors import DeployError
from homefiles.deploy.generations import GenerationStore
from homefiles.deploy.report import TransitionReport


def _print_report(report: TransitionReport, verbose: bool) -> None:
    if report.dry_run:
        console.print("[bold]Dry run -- no changes made[/bold]")

    if report.reused:
        console.print(f"No change so reusing generation {report.incoming}")
    elif report.outgoing is None:
        console.print(f"Activated generation {report.incoming}")
    else:
        console.print(f"Activated generation {report.incoming} (previous: {report.outgoing})")

    action = "would" if report.dry_run else "were"
    console.print(f"  {len(report.created)} links {action} created")
    console.print(f"  {len(report.removed)} orphan links {action} removed")
    if report.backed_up:
        console.print(f"  [yellow]{len(report.backed_up)} files {action} backed up[/yellow]")
    if report.ownership_mismatches:
        console.print(
            f"  [yellow]{len(report.ownership_mismatches)} paths no longer managed -- kept[/yellow]"
        )

    if verbose:
        for rel in report.created:
            console.print(f"    [green]linked: {rel}[/green]")
        for rel in report.removed:
            console.print(f"    [dim]removed: {rel}[/dim]")
        for src, dst in report.backed_up:
            console.print(f"    [blue]backed up: {src} -> {dst}[/blue]")
        for rel in report.skipped:
            console.print(f"    [dim]identical: {rel}[/dim]")

    for hook in report.hooks:
        if hook.skipped:
            console.print(f"  [dim]would run hook for {hook.target}[/dim]")
        elif hook.ok:
            console.print(f"  [green]hook for {hook.target} succeeded[/green]")
        else:
            detail = hook.error or f"exit status {hook.returncode}"
            console.print(f"  [red]hook for {hook.target} failed: {detail}[/red]")

    for error in report.errors:
        console.print(f"  [red]{error.path}: {error.message}[/red]")


def switch(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Declaration file to read"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would change without modifying the filesystem"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Trace every filesystem operation"),
    backup_ext: Optional[str] = typer.Option(None, "--backup-ext", "-b", help="Move colliding files aside using this suffix"),
    json_output: bool = typer.Option(False, "--json", help="Output the transition report as JSON"),
) -> None:
    """Build a generation from the declared files and make it live.

    Existing files that are in the way abort the switch before anything
    changes, unless they can be backed up. Files that only the previous
    generation had are removed, and onChange hooks of changed files run
    once every link is in place.
    """
    config_path, payload, settings = load_context(
        config,
        backup_ext=backup_ext,
        dry_run=dry_run or None,
        verbose=verbose or None,
    )
    configure_logging(settings.verbose, quiet=json_output)

    store = GenerationStore(settings.state_dir)
    options = ActivationOptions(
        live_root=settings.root,
        backup_ext=settings.backup_ext,
        dry_run=settings.dry_run,
        verbose=settings.verbose,
    )
    with switch_lock(settings.state_dir):
        store.cleanup_orphaned_staging()
        entries = read_entries(config_path, payload, settings)
        try:
            report = activate(entries, store, options)
        except DeployError as exc:
            fail(exc)

    if json_output:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(report, settings.verbose)

    if not report.ok:
        raise typer.Exit(1)
