"""Exception hierarchy for the deployment engine.

Planning errors (validation, ordering, collisions) are raised before the
live tree is touched. Per-target failures during the apply phase are not
raised; they are collected into the transition report instead.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .collisions import Collision
    from .entries import FileEntry


class DeployError(Exception):
    """Base exception for deployment errors."""
    pass


class ValidationError(DeployError):
    """Declared entries are invalid and no generation can be built."""

    def __init__(self, message: str, targets: Sequence[str] = ()):
        self.targets = list(targets)
        super().__init__(message)


class DuplicateTargetError(ValidationError):
    """Two or more entries resolve to the same target path."""

    def __init__(self, targets: Sequence[str]):
        targets = sorted(targets)
        super().__init__(
            f"Conflicting managed target files: {', '.join(targets)}",
            targets,
        )


class PathTraversalError(ValidationError):
    """Resolving a path would climb above the filesystem root."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Illegal path traversal in '{path}'", [path])


class OutsideRootError(ValidationError):
    """A target does not resolve to a path under the deployment root."""

    def __init__(self, path: str, root: str):
        self.path = path
        self.root = root
        super().__init__(
            f"Target '{path}' is not under the deployment root '{root}'",
            [path],
        )


class CycleError(DeployError):
    """The placement order over the declared entries is not acyclic."""

    def __init__(self, cycle: Sequence["FileEntry"]):
        self.cycle = list(cycle)
        chain = " -> ".join(entry.target for entry in self.cycle)
        super().__init__(f"Unable to topologically sort managed files: {chain}")


class SnapshotError(DeployError):
    """Fatal failure while building a generation image."""
    pass


class CollisionError(DeployError):
    """Live files are in the way of the incoming generation."""

    def __init__(self, collisions: Sequence["Collision"]):
        self.collisions = list(collisions)
        lines = [f"  {c.live_path}: {c.describe()}" for c in self.collisions]
        super().__init__(
            f"{len(self.collisions)} existing file(s) in the way:\n"
            + "\n".join(lines)
            + "\nPlease move the above files and try again or pass "
            "--backup-ext to back up existing files automatically."
        )

    @property
    def paths(self) -> list[Path]:
        return [c.live_path for c in self.collisions]


class BackupClobberError(DeployError):
    """The backup location for a live file is already occupied."""

    def __init__(self, path: Path, backup: Path):
        self.path = path
        self.backup = backup
        super().__init__(
            f"Existing file '{backup}' would be clobbered by backing up '{path}'"
        )
