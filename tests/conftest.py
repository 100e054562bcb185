from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from homefiles.deploy.entries import FileEntry
from homefiles.deploy.generations import GenerationStore


@pytest.fixture()
def live_root(tmp_path: Path) -> Path:
    """An empty directory standing in for $HOME."""
    root = tmp_path / "home"
    root.mkdir()
    return root


@pytest.fixture()
def store(tmp_path: Path) -> GenerationStore:
    return GenerationStore(tmp_path / "state")


@pytest.fixture()
def sources(tmp_path: Path) -> Path:
    """Directory for hand-made source files and directories."""
    path = tmp_path / "sources"
    path.mkdir()
    return path


@pytest.fixture()
def text_entry(store: GenerationStore) -> Callable[..., FileEntry]:
    """Factory for entries backed by inline text in the content store."""

    def _make(target: str, text: str, executable: bool | None = None, **kwargs: object) -> FileEntry:
        source = store.content.add_text(target, text, executable=bool(executable))
        return FileEntry(target=target, source=source, executable=executable, **kwargs)

    return _make
