"""Placement order for declared entries.

Children are placed before their ancestors so that creating a parent
directory never clobbers a child that is already in place, and siblings
are placed in name order so that builds are reproducible.
"""

from __future__ import annotations

import heapq
import posixpath
from collections import deque
from typing import Sequence

from .entries import FileEntry
from .errors import CycleError


def _parent_and_name(normalized: str) -> tuple[str, str]:
    stripped = normalized.rstrip("/")
    return posixpath.dirname(stripped), posixpath.basename(stripped)


def file_before(a: FileEntry, b: FileEntry) -> bool:
    """Return True when *a* must be placed before *b*."""
    a_norm, b_norm = a.normalized_target, b.normalized_target
    if a_norm != b_norm and a_norm.startswith(b_norm):
        return True
    a_parent, a_name = _parent_and_name(a_norm)
    b_parent, b_name = _parent_and_name(b_norm)
    return a_parent == b_parent and a_name < b_name


def _shortest_cycle(nodes: Sequence[int], succ: dict[int, list[int]]) -> list[int]:
    """Return the shortest cycle among *nodes* as a list of indices."""
    best: list[int] = []
    allowed = set(nodes)
    for start in nodes:
        parents = {start: -1}
        queue = deque([start])
        found: list[int] | None = None
        while queue and found is None:
            node = queue.popleft()
            for nxt in succ[node]:
                if nxt not in allowed:
                    continue
                if nxt == start:
                    path = [node]
                    while parents[path[-1]] != -1:
                        path.append(parents[path[-1]])
                    found = list(reversed(path))
                    break
                if nxt not in parents:
                    parents[nxt] = node
                    queue.append(nxt)
        if found and (not best or len(found) < len(best)):
            best = found
    return best


def order(entries: Sequence[FileEntry]) -> list[FileEntry]:
    """Topologically sort *entries* under :func:`file_before`.

    Among entries that are ready at the same time the one that came first
    in the input wins, so identical input always gives identical output.

    Raises:
        CycleError: If the relation over *entries* contains a cycle.
    """
    count = len(entries)
    succ: dict[int, list[int]] = {i: [] for i in range(count)}
    indegree = [0] * count
    for i in range(count):
        for j in range(count):
            if i != j and file_before(entries[i], entries[j]):
                succ[i].append(j)
                indegree[j] += 1

    ready = [i for i in range(count) if indegree[i] == 0]
    heapq.heapify(ready)
    result: list[int] = []
    while ready:
        node = heapq.heappop(ready)
        result.append(node)
        for nxt in succ[node]:
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                heapq.heappush(ready, nxt)

    if len(result) < count:
        placed = set(result)
        remaining = [i for i in range(count) if i not in placed]
        cycle = _shortest_cycle(remaining, succ)
        raise CycleError([entries[i] for i in cycle])

    return [entries[i] for i in result]
