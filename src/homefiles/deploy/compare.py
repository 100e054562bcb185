"""Tree walking and content comparison shared by the engine stages."""

from __future__ import annotations

import filecmp
import os
import stat
from pathlib import Path


def iter_leaves(root: Path) -> list[str]:
    """Return sorted POSIX paths, relative to *root*, of every leaf.

    A leaf is anything that is not a real directory: regular files and
    symlinks, including symlinks to directories, which are never descended.
    """
    if not root.is_dir():
        return []
    leaves: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        base = Path(dirpath)
        for name in list(dirnames):
            if (base / name).is_symlink():
                leaves.append((base / name).relative_to(root).as_posix())
        for name in filenames:
            leaves.append((base / name).relative_to(root).as_posix())
    return sorted(leaves)


def _same_tree(left: Path, right: Path) -> bool:
    cmp = filecmp.dircmp(left, right)
    if cmp.left_only or cmp.right_only or cmp.common_funny:
        return False
    _, mismatch, errors = filecmp.cmpfiles(left, right, cmp.common_files, shallow=False)
    if mismatch or errors:
        return False
    return all(_same_tree(left / name, right / name) for name in cmp.common_dirs)


def same_content(left: Path, right: Path) -> bool:
    """Return True when *left* and *right* hold the same bytes.

    Symlinks are followed. Two directories are compared recursively; a
    file is never equal to a directory.
    """
    try:
        if left.is_dir() and right.is_dir():
            return _same_tree(left, right)
        if left.is_file() and right.is_file():
            return filecmp.cmp(left, right, shallow=False)
    except OSError:
        return False
    return False


def _leaf_signature(path: Path) -> tuple[str, str | bool]:
    if path.is_symlink():
        return ("link", os.readlink(path))
    return ("file", bool(path.stat().st_mode & stat.S_IXUSR))


def same_image(left: Path, right: Path) -> bool:
    """Return True when two generation images are indistinguishable.

    Symlinked leaves must point at the same place; copied leaves must have
    the same bytes and execute bit.
    """
    leaves = iter_leaves(left)
    if leaves != iter_leaves(right):
        return False
    for rel in leaves:
        a, b = left / rel, right / rel
        if _leaf_signature(a) != _leaf_signature(b):
            return False
        if not a.is_symlink() and not filecmp.cmp(a, b, shallow=False):
            return False
    return True
