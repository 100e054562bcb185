"""Tests for homefiles.deploy.entries and the content layer adapters."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from homefiles.deploy.content import ContentStore, PathResolver, store_file_name
from homefiles.deploy.entries import (
    FileDeclaration,
    FileEntry,
    check_unique_targets,
    make_entry,
)
from homefiles.deploy.errors import (
    DuplicateTargetError,
    OutsideRootError,
    ValidationError,
)
from tests.utils import is_executable, write_file

ROOT = "/home/u"


@pytest.fixture()
def content(tmp_path: Path) -> ContentStore:
    return ContentStore(tmp_path / "store")


@pytest.fixture()
def resolver(sources: Path) -> PathResolver:
    return PathResolver(sources)


def _declare(name: str, **kwargs: object) -> FileDeclaration:
    kwargs.setdefault("base_path", ROOT)
    return FileDeclaration(name=name, **kwargs)


# ---------------------------------------------------------------------------
# make_entry()
# ---------------------------------------------------------------------------


class TestMakeEntry:
    def test_target_defaults_to_name(self, content: ContentStore, resolver: PathResolver) -> None:
        entry = make_entry(_declare(".bashrc", text="echo hi\n"), ROOT, content, resolver)
        assert entry.target == ".bashrc"
        assert entry.normalized_target == ".bashrc/"

    def test_explicit_absolute_target(self, content: ContentStore, resolver: PathResolver) -> None:
        decl = _declare("anything", target="/home/u/.config/app/conf", text="x")
        entry = make_entry(decl, ROOT, content, resolver)
        assert entry.target == ".config/app/conf"

    def test_relative_target_uses_base_path(self, content: ContentStore, resolver: PathResolver) -> None:
        decl = _declare("nvim/init.lua", base_path="/home/u/.config", text="-- init")
        entry = make_entry(decl, ROOT, content, resolver)
        assert entry.target == ".config/nvim/init.lua"

    def test_target_outside_root_rejected(self, content: ContentStore, resolver: PathResolver) -> None:
        with pytest.raises(OutsideRootError):
            make_entry(_declare("x", target="/etc/passwd", text="x"), ROOT, content, resolver)

    def test_text_materialized_in_store(self, content: ContentStore, resolver: PathResolver) -> None:
        entry = make_entry(_declare("note", text="hello"), ROOT, content, resolver)
        assert entry.source.parent == content.root
        assert entry.source.read_text() == "hello"
        assert not is_executable(entry.source)

    def test_executable_text(self, content: ContentStore, resolver: PathResolver) -> None:
        entry = make_entry(_declare("bin/run", text="#!/bin/sh\n", executable=True), ROOT, content, resolver)
        assert is_executable(entry.source)
        assert entry.executable is True

    def test_text_takes_precedence_over_source(
        self, content: ContentStore, resolver: PathResolver, sources: Path
    ) -> None:
        write_file(sources / "file.txt", "from source")
        decl = _declare("f", text="from text", source="file.txt")
        entry = make_entry(decl, ROOT, content, resolver)
        assert entry.source.read_text() == "from text"

    def test_source_resolved_relative_to_declaration_dir(
        self, content: ContentStore, resolver: PathResolver, sources: Path
    ) -> None:
        write_file(sources / "tool.sh", "#!/bin/sh\n", executable=True)
        entry = make_entry(_declare("bin/tool", source="tool.sh"), ROOT, content, resolver)
        assert entry.source.parent == content.root
        assert entry.source.read_text() == "#!/bin/sh\n"
        assert is_executable(entry.source)
        assert entry.executable is None

    def test_source_copy_unaffected_by_later_edits(
        self, content: ContentStore, resolver: PathResolver, sources: Path
    ) -> None:
        write_file(sources / "app.conf", "v1")
        first = make_entry(_declare("app.conf", source="app.conf"), ROOT, content, resolver)

        (sources / "app.conf").write_text("v2")
        second = make_entry(_declare("app.conf", source="app.conf"), ROOT, content, resolver)

        assert first.source.read_text() == "v1"
        assert second.source.read_text() == "v2"
        assert first.source != second.source

    def test_missing_source_rejected(self, content: ContentStore, resolver: PathResolver) -> None:
        with pytest.raises(ValidationError, match="does not exist"):
            make_entry(_declare("f", source="nope.txt"), ROOT, content, resolver)

    def test_neither_text_nor_source(self, content: ContentStore, resolver: PathResolver) -> None:
        with pytest.raises(ValidationError, match="either 'text' or 'source'"):
            make_entry(_declare("empty"), ROOT, content, resolver)

    def test_out_of_store_source(
        self, content: ContentStore, resolver: PathResolver, sources: Path
    ) -> None:
        write_file(sources / "live.conf", "v1")
        entry = make_entry(_declare("live.conf", source="live.conf", out_of_store=True), ROOT, content, resolver)

        assert entry.source.is_symlink()
        assert entry.source.parent == content.root
        assert os.readlink(entry.source) == str(sources / "live.conf")
        (sources / "live.conf").write_text("v2")
        assert entry.source.read_text() == "v2"


# ---------------------------------------------------------------------------
# check_unique_targets()
# ---------------------------------------------------------------------------


class TestUniqueTargets:
    def test_unique_targets_pass(self) -> None:
        check_unique_targets([FileEntry("a", Path("/s/a")), FileEntry("b", Path("/s/b"))])

    def test_duplicates_listed_exactly(self) -> None:
        entries = [
            FileEntry(target, Path("/s") / target)
            for target in ["b", "a", "c", "a", "b", "d"]
        ]
        with pytest.raises(DuplicateTargetError) as excinfo:
            check_unique_targets(entries)
        assert excinfo.value.targets == ["a", "b"]
        assert "Conflicting managed target files: a, b" in str(excinfo.value)

    def test_empty_leaf_collapses_onto_parent(
        self, content: ContentStore, resolver: PathResolver
    ) -> None:
        """'a/b/' with an empty last segment is the same target as 'a/b'."""
        entries = [
            make_entry(_declare("one", target="a/b/", text="X"), ROOT, content, resolver),
            make_entry(_declare("two", target="a/b", text="Y"), ROOT, content, resolver),
        ]
        with pytest.raises(DuplicateTargetError) as excinfo:
            check_unique_targets(entries)
        assert excinfo.value.targets == ["a/b"]


# ---------------------------------------------------------------------------
# ContentStore
# ---------------------------------------------------------------------------


class TestContentStore:
    def test_same_text_same_path(self, content: ContentStore) -> None:
        first = content.add_text("note", "hello")
        second = content.add_text("note", "hello")
        assert first == second
        assert [p.name for p in content.root.iterdir()] == [first.name]

    def test_mode_is_part_of_identity(self, content: ContentStore) -> None:
        plain = content.add_text("run", "echo")
        executable = content.add_text("run", "echo", executable=True)
        assert plain != executable
        assert is_executable(executable) and not is_executable(plain)

    def test_store_entries_read_only(self, content: ContentStore) -> None:
        path = content.add_text("note", "hello")
        assert path.stat().st_mode & 0o222 == 0

    def test_store_file_name_sanitized(self) -> None:
        assert store_file_name(".config/app conf") == "config-app-conf"
        assert store_file_name("///") == "file"

    def test_same_source_content_same_path(self, content: ContentStore, sources: Path) -> None:
        write_file(sources / "a", "same")
        write_file(sources / "b", "same")
        assert content.add_path("conf", sources / "a") == content.add_path("conf", sources / "b")

    def test_imported_file_read_only_keeps_exec_bit(
        self, content: ContentStore, sources: Path
    ) -> None:
        write_file(sources / "run.sh", "#!/bin/sh\n", executable=True)
        path = content.add_path("run.sh", sources / "run.sh")
        assert path.stat().st_mode & 0o222 == 0
        assert is_executable(path)

    def test_directory_imported_as_tree(self, content: ContentStore, sources: Path) -> None:
        write_file(sources / "cfg" / "x", "x")
        write_file(sources / "cfg" / "sub" / "y", "y")
        os.symlink("x", sources / "cfg" / "alias")

        path = content.add_path("cfg", sources / "cfg")

        assert path.is_dir() and not path.is_symlink()
        assert (path / "sub" / "y").read_text() == "y"
        assert os.readlink(path / "alias") == "x"

    def test_directory_change_gives_new_path(self, content: ContentStore, sources: Path) -> None:
        write_file(sources / "cfg" / "x", "x")
        first = content.add_path("cfg", sources / "cfg")
        write_file(sources / "cfg" / "y", "y")
        assert content.add_path("cfg", sources / "cfg") != first

    def test_dangling_symlink_source_returned_unchanged(
        self, content: ContentStore, sources: Path
    ) -> None:
        os.symlink(sources / "missing", sources / "broken")
        assert content.add_path("broken", sources / "broken") == sources / "broken"
