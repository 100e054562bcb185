"""Build the on-disk image of a generation.

The image is a directory tree holding one entry per declared file. Files
whose execute bit already matches the declaration are symlinked to their
source; all others are copied with the bit set explicitly. Directories are
either linked whole or mirrored with symlinked leaves.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from .entries import FileEntry
from .errors import SnapshotError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlacedEntry:
    """An entry that made it into an image, kept for hook comparison."""

    target: str
    source: Path
    on_change: str = ""
    force: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "source": str(self.source),
            "on_change": self.on_change,
            "force": self.force,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlacedEntry":
        return cls(
            target=str(data["target"]),
            source=Path(data["source"]),
            on_change=str(data.get("on_change", "")),
            force=bool(data.get("force", False)),
        )


@dataclass(frozen=True)
class TargetConflict:
    """A declared entry skipped because its place in the image was taken."""

    target: str
    path: Path


@dataclass
class Snapshot:
    image_root: Path
    placed: list[PlacedEntry] = field(default_factory=list)
    conflicts: list[TargetConflict] = field(default_factory=list)


def _is_executable(path: Path) -> bool:
    return bool(path.stat().st_mode & stat.S_IXUSR)


def _overlay_link(source: Path, target: Path) -> None:
    """Mirror *source* under *target*, symlinking every leaf.

    Existing directories are merged into and existing leaves are left
    alone, so earlier entries always win.
    """
    target.mkdir(parents=True, exist_ok=True)
    for dirpath, dirnames, filenames in os.walk(source):
        src_dir = Path(dirpath)
        dest_dir = target / src_dir.relative_to(source)
        if os.path.lexists(dest_dir) and not dest_dir.is_dir():
            logger.debug("Not descending into %s: occupied by a file", dest_dir)
            dirnames[:] = []
            continue
        dest_dir.mkdir(exist_ok=True)

        leaves = list(filenames)
        for name in list(dirnames):
            if (src_dir / name).is_symlink():
                dirnames.remove(name)
                leaves.append(name)
        for name in leaves:
            dest = dest_dir / name
            if not os.path.lexists(dest):
                os.symlink(src_dir / name, dest)


def _place_file(entry: FileEntry, placement: Path) -> None:
    source = entry.source
    if entry.executable is None or _is_executable(source) == entry.executable:
        os.symlink(source, placement)
        return

    shutil.copyfile(source, placement)
    mode = stat.S_IMODE(source.stat().st_mode)
    if entry.executable:
        mode |= 0o111
    else:
        mode &= ~0o111
    os.chmod(placement, mode)


def build_snapshot(entries: Sequence[FileEntry], image_root: Path) -> Snapshot:
    """Place every entry of *entries*, in order, under *image_root*.

    *entries* must already be ordered. An entry whose place is already
    taken by a non-directory is reported as a :class:`TargetConflict` and
    skipped.

    Raises:
        SnapshotError: If an entry would be placed outside *image_root* or
            its source does not exist.
    """
    image_root.mkdir(parents=True, exist_ok=True)
    real_root = Path(os.path.realpath(image_root))
    snapshot = Snapshot(image_root=image_root)

    for entry in entries:
        placement = image_root / entry.target
        if os.path.lexists(placement) and not placement.is_dir():
            logger.warning("File conflict for file '%s'", entry.target)
            snapshot.conflicts.append(TargetConflict(entry.target, placement))
            continue

        resolved = Path(os.path.realpath(placement))
        if resolved == real_root or real_root not in resolved.parents:
            raise SnapshotError(
                f"Error installing file '{entry.target}' outside the deployment root: "
                f"expected a path under '{real_root}' but it resolves to '{resolved}'"
            )
        resolved.parent.mkdir(parents=True, exist_ok=True)

        source = entry.source
        if not source.is_dir() and os.path.lexists(resolved):
            # A file cannot be placed where a child entry already made a directory.
            logger.warning("File conflict for file '%s': a directory is in the way", entry.target)
            snapshot.conflicts.append(TargetConflict(entry.target, placement))
            continue

        if source.is_dir():
            if entry.recursive:
                _overlay_link(source, resolved)
            elif resolved.exists():
                logger.info(
                    "Target '%s' already exists; recursively linking children of '%s'",
                    entry.target,
                    source,
                )
                _overlay_link(source, resolved)
            else:
                os.symlink(source, resolved)
        elif source.exists():
            _place_file(entry, resolved)
        elif os.path.lexists(source):
            os.symlink(source, resolved)
        else:
            raise SnapshotError(f"Source for '{entry.target}' does not exist: {source}")

        snapshot.placed.append(
            PlacedEntry(entry.target, source, on_change=entry.on_change, force=entry.force)
        )

    return snapshot
