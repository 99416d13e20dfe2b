"""Read-only views over the ``blocks`` / ``depends_on`` graph."""

from __future__ import annotations

from collections import deque
from typing import Iterable, Mapping, Optional

from .model import Task


def build_lookup(tasks: Iterable[Task]) -> dict[str, Task]:
    """Index *tasks* by id.  Build one per operation; do not keep it around."""
    return {t.id: t for t in tasks}


def would_create_cycle(lookup: Mapping[str, Task], blocker_id: str, blocked_id: str) -> bool:
    """Return True if adding ``blocker_id -> blocked_id`` closes a loop.

    Walks the existing ``blocks`` edges outward from *blocked_id*; reaching
    *blocker_id* means the new edge would complete a cycle.  Ids missing from
    *lookup* are dead ends, and the visited set keeps corrupt (already cyclic)
    data from looping forever.
    """
    seen: set[str] = set()
    stack = [blocked_id]
    while stack:
        current = stack.pop()
        if current == blocker_id:
            return True
        if current in seen:
            continue
        seen.add(current)
        node = lookup.get(current)
        if node is None:
            continue
        stack.extend(node.blocks)
    return False


def dependency_subgraph(tasks: Iterable[Task], task_id: Optional[str] = None) -> dict[str, list[str]]:
    """Return adjacency list: ``{task_id: [depends_on_ids]}``.

    If *task_id* is given, return only the component reachable from it by
    following edges in either direction.
    """
    task_list = list(tasks)
    graph: dict[str, list[str]] = {t.id: list(t.depends_on) for t in task_list}
    if task_id is None:
        return graph
    dependents: dict[str, list[str]] = {t.id: list(t.blocks) for t in task_list}

    visited: set[str] = set()
    queue: deque[str] = deque([task_id])
    sub: dict[str, list[str]] = {}
    while queue:
        nid = queue.popleft()
        if nid in visited or nid not in graph:
            continue
        visited.add(nid)
        sub[nid] = graph[nid]
        queue.extend(graph[nid])
        queue.extend(dependents.get(nid, []))
    return sub
