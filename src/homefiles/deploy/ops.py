"""Mutating filesystem operations with dry-run and verbose support.

Every change the switcher makes to the live tree goes through
:class:`FileOps`. In dry-run mode each operation only logs what it would
have done.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


class FileOps:
    def __init__(self, dry_run: bool = False, verbose: bool = False):
        self.dry_run = dry_run
        self.verbose = verbose

    def _trace(self, message: str, *args: object) -> None:
        if self.dry_run:
            logger.info("would " + message, *args)
        elif self.verbose:
            logger.info(message, *args)
        else:
            logger.debug(message, *args)

    def makedirs(self, path: Path) -> None:
        if path.is_dir():
            return
        self._trace("mkdir -p %s", path)
        if not self.dry_run:
            path.mkdir(parents=True, exist_ok=True)

    def symlink(self, source: Path, path: Path) -> None:
        """Point *path* at *source*, replacing whatever link is there."""
        self._trace("link %s -> %s", path, source)
        if self.dry_run:
            return
        tmp = path.with_name(f".{path.name}.hf-tmp-{os.getpid()}")
        if os.path.lexists(tmp):
            tmp.unlink()
        os.symlink(source, tmp)
        try:
            os.replace(tmp, path)
        except OSError:
            tmp.unlink()
            raise

    def move(self, path: Path, dest: Path) -> None:
        self._trace("move %s -> %s", path, dest)
        if not self.dry_run:
            os.rename(path, dest)

    def remove(self, path: Path) -> None:
        """Remove a file, a symlink or a whole real directory."""
        self._trace("remove %s", path)
        if self.dry_run:
            return
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()

    def rmdir(self, path: Path) -> None:
        self._trace("rmdir %s", path)
        if not self.dry_run:
            path.rmdir()

    def prune_empty_parents(self, path: Path, stop: Path) -> None:
        """Remove empty ancestors of *path*, never touching *stop* itself."""
        parent = path.parent
        while parent != stop and stop in parent.parents:
            if not parent.is_dir() or parent.is_symlink() or any(parent.iterdir()):
                break
            self.rmdir(parent)
            if self.dry_run:
                break
            parent = parent.parent
