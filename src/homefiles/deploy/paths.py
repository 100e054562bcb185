"""Lexical path normalization for declared targets.

Nothing here touches the filesystem: ``..`` is resolved textually and
symlinks are never followed, so the same declaration always produces the
same target regardless of what currently exists on disk.
"""

from __future__ import annotations

from .errors import OutsideRootError, PathTraversalError


def clean_path(path: str) -> str:
    """Return the absolute, slash-clean form of *path*.

    Removes ``.`` segments and empty segments, and resolves ``..`` against
    the preceding segment.

    Raises:
        PathTraversalError: If *path* is relative, or ``..`` would climb
            above the filesystem root.
    """
    if not path.startswith("/"):
        raise PathTraversalError(path)

    parts: list[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not parts:
                raise PathTraversalError(path)
            parts.pop()
            continue
        parts.append(segment)
    return "/" + "/".join(parts)


def normalize(base_path: str, raw_path: str) -> str:
    """Canonicalize *raw_path*, resolving it against *base_path* if relative."""
    if raw_path.startswith("/"):
        return clean_path(raw_path)
    return clean_path(f"{clean_path(base_path)}/{raw_path}")


def relative_to_root(deployment_root: str, canonical_path: str) -> str:
    """Express *canonical_path* relative to *deployment_root*.

    The root itself is not a valid target: only paths strictly below it
    are accepted.
    """
    root = clean_path(deployment_root)
    prefix = root if root.endswith("/") else root + "/"
    if not canonical_path.startswith(prefix) or canonical_path == prefix:
        raise OutsideRootError(canonical_path, root)
    return canonical_path[len(prefix):]


def resolve_target(deployment_root: str, base_path: str, raw_target: str) -> str:
    """Normalize a declared target and make it relative to the root."""
    return relative_to_root(deployment_root, normalize(base_path, raw_target))


def normalized_target(target: str) -> str:
    """Return *target* with exactly one trailing separator."""
    return target.rstrip("/") + "/"
