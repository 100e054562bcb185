"""Pre-flight check that the incoming generation can be linked safely.

A live path is only ever replaced without asking when it is a symlink
recognized as belonging to an earlier generation (or a directory of nothing
but such symlinks), when it already has the wanted content, when it can be
backed up, or when its target is forced.
Anything else is a collision and aborts the whole transition.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable

from .compare import iter_leaves, same_content
from .errors import CollisionError

logger = logging.getLogger(__name__)

ManagedPredicate = Callable[[Path], bool]


@dataclass(frozen=True)
class Collision:
    target: str
    live_path: Path
    source: Path
    reason: str = "exists"  # "exists" or "backup_exists"
    backup: Path | None = None

    def describe(self) -> str:
        if self.reason == "backup_exists":
            return f"backup '{self.backup}' already exists"
        return f"in the way of '{self.source}'"


@dataclass
class CollisionReport:
    identical: list[str] = field(default_factory=list)
    would_backup: list[tuple[Path, Path]] = field(default_factory=list)
    forced: list[str] = field(default_factory=list)
    collisions: list[Collision] = field(default_factory=list)


def backup_path(path: Path, backup_ext: str) -> Path:
    return path.with_name(f"{path.name}.{backup_ext}")


def is_forced(target: str, forced_targets: Iterable[str]) -> bool:
    """Return True if *target* is, or lies under, a forced target."""
    path = PurePosixPath(target)
    for forced in forced_targets:
        forced_path = PurePosixPath(forced)
        if path == forced_path or forced_path in path.parents:
            return True
    return False


def managed_ancestor(live_root: Path, target: str, is_managed: ManagedPredicate) -> Path | None:
    """Return the first managed symlink on the way from *live_root* to *target*.

    The leaf itself counts, so a live path sitting inside a directory that
    an earlier generation linked whole is recognized as managed too.
    """
    current = live_root
    for part in PurePosixPath(target).parts:
        current = current / part
        if is_managed(current):
            return current
        if not current.is_dir():
            break
    return None


def managed_directory(path: Path, is_managed: ManagedPredicate) -> bool:
    """Return True for a real directory holding nothing but managed links.

    Such a directory is what an earlier generation left behind after linking
    a source recursively.
    """
    if path.is_symlink() or not path.is_dir():
        return False
    leaves = iter_leaves(path)
    return bool(leaves) and all(is_managed(path / rel) for rel in leaves)


def check_collisions(
    image: Path,
    live_root: Path,
    forced_targets: Iterable[str],
    is_managed: ManagedPredicate,
    backup_ext: str | None = None,
) -> CollisionReport:
    """Compare every leaf of *image* against *live_root*.

    Raises:
        CollisionError: After the full scan, if any leaf collides.
    """
    forced_targets = list(forced_targets)
    report = CollisionReport()

    for rel in iter_leaves(image):
        source = image / rel
        live = live_root / rel

        if is_forced(rel, forced_targets):
            logger.debug("Skipping collision check for %s", live)
            report.forced.append(rel)
            continue
        if not live.exists() or managed_ancestor(live_root, rel, is_managed) is not None:
            continue
        if managed_directory(live, is_managed):
            logger.debug("Directory %s only holds managed links", live)
            continue

        if same_content(source, live):
            logger.warning(
                "Existing file '%s' is in the way of '%s', will be skipped since they are the same",
                live,
                source,
            )
            report.identical.append(rel)
        elif not live.is_symlink() and backup_ext:
            backup = backup_path(live, backup_ext)
            if os.path.lexists(backup):
                logger.error(
                    "Existing file '%s' would be clobbered by backing up '%s'", backup, live
                )
                report.collisions.append(
                    Collision(rel, live, source, reason="backup_exists", backup=backup)
                )
            else:
                logger.warning(
                    "Existing file '%s' is in the way of '%s', will be moved to '%s'",
                    live,
                    source,
                    backup,
                )
                report.would_backup.append((live, backup))
        else:
            logger.error("Existing file '%s' is in the way of '%s'", live, source)
            report.collisions.append(Collision(rel, live, source))

    if report.collisions:
        raise CollisionError(report.collisions)
    return report
