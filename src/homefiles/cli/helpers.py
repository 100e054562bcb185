"""Shared helpers for homefiles CLI commands."""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Iterator, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler

from homefiles.config import (
    ConfigError,
    Settings,
    default_config_path,
    load_config_file,
    load_entries,
    load_settings,
)
from homefiles.deploy.entries import FileEntry
from homefiles.deploy.errors import CollisionError, DeployError

console = Console()

LOCK_FILENAME = ".switch.lock"


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Route engine log records through rich on stderr.

    *quiet* keeps only warnings and errors, for machine-readable output.
    """
    if quiet:
        level = logging.WARNING
    else:
        level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                show_time=False,
                show_path=False,
                markup=False,
            )
        ],
        force=True,
    )


def _lock_exclusive(fd: IO[str]) -> None:
    """Acquire an exclusive file lock, blocking if another process holds it."""
    if sys.platform == "win32":
        import msvcrt

        msvcrt.locking(fd.fileno(), msvcrt.LK_LOCK, 1)
    else:
        import fcntl

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            console.print("[yellow]Another switch is running; waiting for it to finish...[/yellow]")
            fcntl.flock(fd, fcntl.LOCK_EX)


@contextmanager
def switch_lock(state_dir: Path) -> Iterator[None]:
    """Serialize transitions against one state directory.

    The engine itself does not lock; every command that builds or switches
    generations runs under this lock.
    """
    state_dir.mkdir(parents=True, exist_ok=True)
    lock_fd = open(state_dir / LOCK_FILENAME, "w")  # noqa: SIM115 -- need fd for flock
    try:
        _lock_exclusive(lock_fd)
        yield
    finally:
        lock_fd.close()


def load_context(
    config: Path | None, **overrides: Any
) -> tuple[Path, dict[str, Any], Settings]:
    """Read the declaration file and resolve settings, or exit with an error."""
    config_path = config if config is not None else default_config_path()
    try:
        payload = load_config_file(config_path)
        settings = load_settings(payload, **overrides)
    except ConfigError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)
    return config_path, payload, settings


def read_entries(config_path: Path, payload: dict[str, Any], settings: Settings) -> list[FileEntry]:
    try:
        return load_entries(config_path, payload, settings)
    except (ConfigError, DeployError) as exc:
        fail(exc)


def fail(exc: Exception) -> NoReturn:
    """Print a planning error and exit non-zero."""
    if isinstance(exc, CollisionError):
        console.print(f"[red]{len(exc.collisions)} existing file(s) in the way:[/red]")
        for collision in exc.collisions:
            console.print(f"  [red]{collision.live_path}[/red]: {collision.describe()}")
        console.print(
            "Please move the above files and try again or use "
            "'homefiles switch -b backup' to back up existing files automatically."
        )
    else:
        console.print(f"[red]Error:[/red] {exc}")
    raise typer.Exit(1)
