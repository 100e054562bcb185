"""Generation bookkeeping: numbered images, manifests and the current pointer.

Layout under the state directory::

    state/
      current -> generations/3      # the pointer, swapped atomically
      store/                        # materialized inline text
      generations/
        3/
          manifest.json
          home-files/               # the image, write-once
        .staging-XXXX/              # a build in progress

Retired generations are never deleted here; removing old images is left to
whoever garbage-collects the state directory.
"""

from __future__ import annotations

import fnmatch
import json
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator

from .compare import same_image
from .content import ContentStore
from .errors import DeployError
from .snapshot import PlacedEntry, Snapshot

logger = logging.getLogger(__name__)

GENERATIONS_DIRNAME = "generations"
IMAGE_DIRNAME = "home-files"
MANIFEST_FILENAME = "manifest.json"
POINTER_NAME = "current"
STAGING_PREFIX = ".staging-"


class StoreError(DeployError):
    """Raised when generation metadata on disk is missing or corrupt."""


@dataclass(frozen=True)
class Generation:
    """A committed (or, in dry-run mode, staged) generation."""

    number: int
    path: Path
    previous: int | None = None
    created_at: str = ""
    entries: tuple[PlacedEntry, ...] = ()

    @property
    def image(self) -> Path:
        return self.path / IMAGE_DIRNAME

    @property
    def real_image(self) -> Path:
        return Path(os.path.realpath(self.image))


class GenerationPointer:
    """Handle on the "current generation" marker.

    The marker is a relative symlink next to the generations directory.
    Readers only ever see the old or the new value because the swap is a
    single ``os.replace``.
    """

    def __init__(self, path: Path):
        self.path = path

    def read(self) -> int | None:
        if not os.path.lexists(self.path):
            return None
        name = Path(os.readlink(self.path)).name
        try:
            return int(name)
        except ValueError:
            logger.warning("Ignoring malformed generation pointer %s -> %s", self.path, name)
            return None

    def set(self, generation: Generation) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f".{self.path.name}.tmp-{os.getpid()}")
        if os.path.lexists(tmp):
            tmp.unlink()
        os.symlink(os.path.relpath(generation.path, self.path.parent), tmp)
        os.replace(tmp, self.path)


class GenerationStore:
    """Numbered generations under a state directory."""

    def __init__(self, state_dir: Path):
        self.state_dir = state_dir
        self.generations_dir = state_dir / GENERATIONS_DIRNAME
        self.pointer = GenerationPointer(state_dir / POINTER_NAME)
        self.content = ContentStore(state_dir / "store")

    def numbers(self) -> list[int]:
        if not self.generations_dir.is_dir():
            return []
        return sorted(
            int(child.name)
            for child in self.generations_dir.iterdir()
            if child.name.isdigit() and (child / MANIFEST_FILENAME).is_file()
        )

    def load(self, number: int) -> Generation:
        path = self.generations_dir / str(number)
        manifest_path = path / MANIFEST_FILENAME
        try:
            data = json.loads(manifest_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise StoreError(f"Generation {number} not found at {path}") from exc
        except json.JSONDecodeError as exc:
            raise StoreError(f"Invalid manifest for generation {number}: {exc}") from exc

        return Generation(
            number=number,
            path=path,
            previous=data.get("previous"),
            created_at=data.get("created_at", ""),
            entries=tuple(PlacedEntry.from_dict(item) for item in data.get("entries", [])),
        )

    def current(self) -> Generation | None:
        number = self.pointer.read()
        if number is None:
            return None
        return self.load(number)

    def list_generations(self) -> list[Generation]:
        return [self.load(number) for number in self.numbers()]

    def next_number(self) -> int:
        return max(self.numbers(), default=0) + 1

    @contextmanager
    def staging(self) -> Iterator[Path]:
        """Yield a fresh staging directory, removed on exit unless committed."""
        self.generations_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=self.generations_dir))
        try:
            yield staging
        finally:
            if staging.exists():
                shutil.rmtree(staging)

    def cleanup_orphaned_staging(self) -> None:
        """Remove staging directories left behind by interrupted builds.

        Must only be called while holding the switch lock, otherwise it may
        delete another process's build in progress.
        """
        if not self.generations_dir.is_dir():
            return
        for child in self.generations_dir.iterdir():
            if child.is_dir() and child.name.startswith(STAGING_PREFIX):
                logger.debug("Removing orphaned staging directory %s", child)
                shutil.rmtree(child)

    def commit(self, staging: Path, snapshot: Snapshot, dry_run: bool = False) -> Generation:
        """Turn a staged image into a generation.

        If the staged image and manifest are identical to the current
        generation, the current generation is returned unchanged and the
        staging directory is left for :meth:`staging` to discard. In
        dry-run mode the staged image is returned as an uncommitted
        generation.
        """
        current = self.current()
        entries = tuple(snapshot.placed)
        if (
            current is not None
            and [e.to_dict() for e in current.entries] == [e.to_dict() for e in entries]
            and same_image(staging / IMAGE_DIRNAME, current.image)
        ):
            logger.info("No change so reusing latest generation %d", current.number)
            return current

        number = self.next_number()
        previous = current.number if current is not None else None
        created_at = datetime.now(timezone.utc).isoformat()
        if dry_run:
            return Generation(number, staging, previous, created_at, entries)

        manifest = {
            "number": number,
            "previous": previous,
            "created_at": created_at,
            "entries": [entry.to_dict() for entry in entries],
        }
        (staging / MANIFEST_FILENAME).write_text(
            json.dumps(manifest, indent=2, sort_keys=True) + "\n", encoding="utf-8"
        )
        path = self.generations_dir / str(number)
        os.rename(staging, path)
        logger.info("Created generation %d at %s", number, path)
        return Generation(number, path, previous, created_at, entries)


def managed_link_predicate(generations_dir: Path) -> Callable[[Path], bool]:
    """Return a predicate recognizing live symlinks into any generation image."""
    pattern = os.path.join(os.path.realpath(generations_dir), "*", IMAGE_DIRNAME, "*")

    def is_managed(path: Path) -> bool:
        if not path.is_symlink():
            return False
        return fnmatch.fnmatchcase(os.readlink(path), pattern)

    return is_managed
