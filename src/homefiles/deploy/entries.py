"""Declared file entries and their translation into engine input."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .content import ContentStore, SourceResolver
from .errors import DuplicateTargetError, ValidationError
from .paths import normalized_target, resolve_target


@dataclass(frozen=True)
class FileEntry:
    """One file the engine places in every generation that declares it.

    ``executable`` is tri-state: ``True`` forces the execute bit on,
    ``False`` forces it off and ``None`` inherits it from the source.
    """

    target: str
    source: Path
    executable: bool | None = None
    recursive: bool = False
    on_change: str = ""
    force: bool = False

    @property
    def normalized_target(self) -> str:
        return normalized_target(self.target)


@dataclass(frozen=True)
class FileDeclaration:
    """A file as written by the user, before normalization."""

    name: str
    base_path: str
    target: str | None = None
    text: str | None = None
    source: str | None = None
    executable: bool | None = None
    recursive: bool = False
    on_change: str = ""
    force: bool = False
    out_of_store: bool = False


def make_entry(
    declaration: FileDeclaration,
    deployment_root: str,
    content_store: ContentStore,
    resolver: SourceResolver,
) -> FileEntry:
    """Build a :class:`FileEntry` from a declaration.

    Inline text wins over a source reference; it is written to the content
    store with the requested execute bit (off when inheriting, since text
    has no mode of its own). A source reference is copied into the store
    unless the declaration asks for an out-of-store link.
    """
    raw_target = declaration.target if declaration.target is not None else declaration.name
    target = resolve_target(deployment_root, declaration.base_path, raw_target)

    if declaration.text is not None:
        source = content_store.add_text(
            declaration.name, declaration.text, executable=bool(declaration.executable)
        )
    elif declaration.source is not None:
        source = resolver.resolve(declaration.source)
        if declaration.out_of_store:
            source = content_store.link_out_of_store(source)
        else:
            source = content_store.add_path(declaration.name, source)
    else:
        raise ValidationError(
            f"File '{declaration.name}' must set either 'text' or 'source'",
            [target],
        )

    return FileEntry(
        target=target,
        source=source,
        executable=declaration.executable,
        recursive=declaration.recursive,
        on_change=declaration.on_change,
        force=declaration.force,
    )


def check_unique_targets(entries: Iterable[FileEntry]) -> None:
    """Raise :class:`DuplicateTargetError` if any target is declared twice."""
    counts = Counter(entry.target for entry in entries)
    dups = [target for target, count in counts.items() if count > 1]
    if dups:
        raise DuplicateTargetError(dups)
