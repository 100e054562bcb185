"""Content layer adapters used to turn declarations into concrete sources.

Inline text and sources given by path are copied into a write-once store
under a content-derived name and never modified afterwards, so a generation
image keeps showing what it was built from. Only out-of-store entries point
back at a mutable path.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import shutil
import stat
import tempfile
from pathlib import Path
from typing import Protocol

from .errors import ValidationError

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9+._?=-]")


def store_file_name(name: str) -> str:
    """Turn an arbitrary declaration name into a safe store file name."""
    cleaned = _UNSAFE_NAME_CHARS.sub("-", name.strip("/")).lstrip(".")
    return cleaned or "file"


def _feed_leaf(hasher, rel: str, path: Path) -> None:
    if path.is_symlink():
        hasher.update(f"l\0{rel}\0{os.readlink(path)}\0".encode("utf-8"))
        return
    mode = "x" if path.stat().st_mode & stat.S_IXUSR else "-"
    hasher.update(f"f\0{rel}\0{mode}\0".encode("utf-8"))
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(65536), b""):
            hasher.update(chunk)


def tree_digest(path: Path) -> str:
    """Hash a file or directory tree: names, link targets, execute bits and bytes."""
    hasher = hashlib.sha256(b"path\0")
    if not path.is_dir():
        _feed_leaf(hasher, ".", path)
        return hasher.hexdigest()

    for dirpath, dirnames, filenames in os.walk(path):
        dirnames.sort()
        base = Path(dirpath)
        hasher.update(f"d\0{base.relative_to(path).as_posix()}\0".encode("utf-8"))
        for name in sorted(filenames + [d for d in dirnames if (base / d).is_symlink()]):
            _feed_leaf(hasher, (base / name).relative_to(path).as_posix(), base / name)
    return hasher.hexdigest()


def _make_read_only(path: Path) -> None:
    """Clear write bits on every regular file; directories stay writable."""
    if path.is_symlink():
        return
    if path.is_file():
        os.chmod(path, stat.S_IMODE(path.stat().st_mode) & ~0o222)
        return
    for dirpath, _, filenames in os.walk(path):
        for name in filenames:
            _make_read_only(Path(dirpath) / name)


class SourceResolver(Protocol):
    """Turns a declared source reference into a stable filesystem path."""

    def resolve(self, reference: str) -> Path: ...


class PathResolver:
    """Resolve source references relative to the declaration file."""

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir

    def resolve(self, reference: str) -> Path:
        path = Path(reference).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        path = Path(os.path.abspath(path))
        if not os.path.lexists(path):
            raise ValidationError(f"Source '{reference}' does not exist: {path}")
        return path


class ContentStore:
    """Write-once directory holding inline text and imported sources."""

    def __init__(self, root: Path):
        self.root = root

    def _entry_path(self, digest: str, name: str) -> Path:
        return self.root / f"{digest[:32]}-{store_file_name(name)}"

    def add_text(self, name: str, text: str, executable: bool = False) -> Path:
        """Materialize *text* and return its store path.

        Identical text with the same mode always maps to the same path, so
        repeated builds reuse the existing store entry.
        """
        hasher = hashlib.sha256()
        hasher.update(b"x" if executable else b"-")
        hasher.update(text.encode("utf-8"))
        path = self._entry_path(hasher.hexdigest(), name)
        if path.exists():
            return path

        self.root.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", dir=self.root)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.chmod(tmp_name, 0o555 if executable else 0o444)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.lexists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("Stored text for '%s' at %s", name, path)
        return path

    def add_path(self, name: str, source: Path) -> Path:
        """Copy a source file or directory into the store and return its path.

        Modes are kept, so the execute bit can still be inherited from the
        copy. A dangling symlink has nothing to copy and is returned as is.
        """
        if not source.exists():
            return source
        source = Path(os.path.realpath(source))
        path = self._entry_path(tree_digest(source), name)
        if os.path.lexists(path):
            return path

        self.root.mkdir(parents=True, exist_ok=True)
        tmp_dir = Path(tempfile.mkdtemp(prefix=".tmp-", dir=self.root))
        staged = tmp_dir / "entry"
        try:
            if source.is_dir():
                shutil.copytree(source, staged, symlinks=True)
            else:
                shutil.copy2(source, staged)
            _make_read_only(staged)
            os.replace(staged, path)
        finally:
            shutil.rmtree(tmp_dir)
        logger.debug("Imported '%s' into the store at %s", source, path)
        return path

    def link_out_of_store(self, target: Path) -> Path:
        """Return a store entry that is a symlink to a mutable *target*.

        Deploying this entry links the live tree, through the store, to a
        path that can be edited in place without a rebuild.
        """
        target = Path(os.path.abspath(target.expanduser()))
        digest = hashlib.sha256(str(target).encode("utf-8")).hexdigest()
        path = self._entry_path(digest, target.name)
        if os.path.lexists(path):
            return path

        self.root.mkdir(parents=True, exist_ok=True)
        tmp_link = self.root / f".tmp-{digest[:16]}"
        if os.path.lexists(tmp_link):
            os.unlink(tmp_link)
        os.symlink(target, tmp_link)
        os.replace(tmp_link, path)
        return path
