"""Symmetric edge mutation.

``link_pair`` and ``unlink_pair`` never validate: callers run
:func:`~.policy.can_link` and :func:`~.graph.would_create_cycle` first.
Keeping the command unconditional lets administrative cleanup remove edges
that no longer satisfy the current policy.
"""

from __future__ import annotations

from dataclasses import replace
from typing import NamedTuple

from .model import Task, normalize_ids


class LinkedPair(NamedTuple):
    a: Task
    b: Task


def normalize_edges(task: Task) -> Task:
    """Return a copy of *task* with deduplicated, self-free edge lists."""
    return replace(
        task,
        depends_on=normalize_ids(task.depends_on, task.id),
        blocks=normalize_ids(task.blocks, task.id),
    )


def link_pair(a: Task, b: Task) -> LinkedPair:
    """Record ``a`` blocks ``b`` on both endpoints (copy-on-write)."""
    new_a = normalize_edges(a)
    new_b = normalize_edges(b)
    new_a.blocks = normalize_ids([*new_a.blocks, new_b.id], new_a.id)
    new_b.depends_on = normalize_ids([*new_b.depends_on, new_a.id], new_b.id)
    return LinkedPair(new_a, new_b)


def unlink_pair(a: Task, b: Task) -> LinkedPair:
    """Remove ``a`` blocks ``b`` from both endpoints (copy-on-write)."""
    new_a = normalize_edges(a)
    new_b = normalize_edges(b)
    new_a.blocks = [tid for tid in new_a.blocks if tid != new_b.id]
    new_b.depends_on = [tid for tid in new_b.depends_on if tid != new_a.id]
    return LinkedPair(new_a, new_b)
