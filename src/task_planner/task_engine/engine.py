"""Task engine — CRUD, archiving and validated dependency management.

This is the primary entry-point for task manipulation.  It wraps
:class:`TaskStore` with the dependency rules: every link is validated
(policy + cycle check) against the same locked snapshot it is written to.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Literal, Optional

from ..constants import DEFAULT_CANDIDATE_LIMIT
from .graph import build_lookup, dependency_subgraph, would_create_cycle
from .links import LinkedPair, link_pair, unlink_pair
from .model import Task, TaskPriority, TaskStatus, normalize_ids
from .policy import DEFAULT_POLICY_CONFIG, LinkCheck, PolicyConfig, can_link
from .store import TaskStore
from .suggest import DEFAULT_SUGGESTION_LIMIT, suggest_candidates

logger = logging.getLogger(__name__)

LinkMode = Literal["blocks", "depends_on"]

# Edges only change through link_tasks / unlink_tasks, archive state through
# archive_task / restore_task.
_PROTECTED_FIELDS = frozenset(
    {"id", "created_at", "depends_on", "blocks", "archived", "archived_at", "archived_reason"}
)


class LinkRejected(ValueError):
    """A link failed validation; ``reason`` says why."""

    def __init__(self, blocker_id: str, blocked_id: str, reason: str) -> None:
        super().__init__(f"Cannot link {blocker_id} -> {blocked_id}: {reason}")
        self.blocker_id = blocker_id
        self.blocked_id = blocked_id
        self.reason = reason


class TaskEngine:
    """Manage tasks and their dependency edges.

    Parameters
    ----------
    state_dir:
        Path to the ``.planner/`` directory.
    policy_config:
        Linking policy used for validation and suggestions.  Injected once at
        startup and never mutated.
    """

    def __init__(self, state_dir: Path, policy_config: PolicyConfig = DEFAULT_POLICY_CONFIG) -> None:
        self.store = TaskStore(state_dir)
        self.policy_config = policy_config

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_task(
        self,
        title: str,
        *,
        kind: Optional[str] = None,
        domain: Optional[str] = None,
        epic_id: Optional[str] = None,
        etiquettes: Optional[list[str]] = None,
        priority: Optional[str] = None,
        status: Optional[str] = None,
        admin: str = "",
        assignees: Optional[list[str]] = None,
        start_date: Optional[str] = None,
        due_date: Optional[str] = None,
        notes: str = "",
        metadata: Optional[dict[str, Any]] = None,
    ) -> Task:
        """Create and persist a new task with no edges."""
        task = Task(
            title=title.strip() or "Untitled",
            kind=kind or None,
            domain=domain or None,
            epic_id=epic_id or None,
            etiquettes=normalize_ids(etiquettes),
            priority=TaskPriority(priority) if priority else None,
            status=TaskStatus(status) if status else TaskStatus.NOT_STARTED,
            admin=admin,
            assignees=list(assignees or []),
            start_date=start_date,
            due_date=due_date,
            notes=notes,
            metadata=metadata or {},
        )
        with self.store.transaction() as tx:
            tx.add(task)
        logger.info("Created task %s: %s", task.id, task.title)
        return task

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.store.get_one(task_id)

    def list_tasks(
        self,
        *,
        archived: Optional[bool] = None,
        kind: Optional[str] = None,
        domain: Optional[str] = None,
        epic_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[Task]:
        with self.store.transaction() as tx:
            return tx.find(archived=archived, kind=kind, domain=domain, epic_id=epic_id, search=search)

    def update_task(self, task_id: str, changes: dict[str, Any]) -> Optional[Task]:
        """Apply partial updates to a task.  Returns the updated task or None.

        Edge fields cannot be written here; use :meth:`link_tasks` and
        :meth:`unlink_tasks`.
        """
        forbidden = sorted(_PROTECTED_FIELDS.intersection(changes))
        if forbidden:
            raise ValueError(f"Fields cannot be updated directly: {forbidden}")

        changes = dict(changes)
        if isinstance(changes.get("status"), str):
            changes["status"] = TaskStatus(changes["status"])
        if isinstance(changes.get("priority"), str):
            changes["priority"] = TaskPriority(changes["priority"])
        if "etiquettes" in changes:
            changes["etiquettes"] = normalize_ids(changes["etiquettes"])
        for key in ("kind", "domain", "epic_id"):
            if key in changes and not changes[key]:
                changes[key] = None

        with self.store.transaction() as tx:
            return tx.update(task_id, changes)

    # ------------------------------------------------------------------
    # Archiving
    # ------------------------------------------------------------------

    def archive_task(self, task_id: str, reason: Optional[str] = None) -> Optional[Task]:
        """Archive a task.  Its edges stay in place."""
        with self.store.transaction() as tx:
            task = tx.get(task_id)
            if task is None:
                return None
            task.archive(reason)
            tx.dirty = True
        logger.info("Archived task %s", task_id)
        return task

    def restore_task(self, task_id: str) -> Optional[Task]:
        with self.store.transaction() as tx:
            task = tx.get(task_id)
            if task is None:
                return None
            task.restore()
            tx.dirty = True
        logger.info("Restored task %s", task_id)
        return task

    # ------------------------------------------------------------------
    # Dependency management
    # ------------------------------------------------------------------

    def _validate(self, lookup: dict[str, Task], blocker_id: str, blocked_id: str) -> LinkCheck:
        blocker = lookup.get(blocker_id)
        blocked = lookup.get(blocked_id)
        if blocker is None or blocked is None:
            return LinkCheck.reject("unknown task")
        policy = can_link(blocker, blocked, self.policy_config)
        if not policy.ok:
            return policy
        if blocked_id in blocker.blocks:
            return LinkCheck.reject("already linked")
        if would_create_cycle(lookup, blocker_id, blocked_id):
            return LinkCheck.reject("would create a cycle")
        return LinkCheck.accept()

    def check_link(self, blocker_id: str, blocked_id: str) -> LinkCheck:
        """Validate ``blocker_id -> blocked_id`` without changing anything."""
        return self._validate(build_lookup(self.store.read_snapshot()), blocker_id, blocked_id)

    def link_tasks(self, blocker_id: str, blocked_id: str) -> LinkedPair:
        """Add ``blocker_id -> blocked_id`` after full validation.

        Raises :class:`LinkRejected` when the policy or the cycle check
        refuses the edge; nothing is written in that case.
        """
        with self.store.transaction() as tx:
            lookup = build_lookup(tx.list_all())
            check = self._validate(lookup, blocker_id, blocked_id)
            if not check.ok:
                logger.warning("Rejected link %s -> %s: %s", blocker_id, blocked_id, check.reason)
                raise LinkRejected(blocker_id, blocked_id, check.reason or "rejected")
            pair = link_pair(lookup[blocker_id], lookup[blocked_id])
            pair.a.touch()
            pair.b.touch()
            tx.put(pair.a)
            tx.put(pair.b)
        logger.info("Linked %s -> %s", blocker_id, blocked_id)
        return pair

    def unlink_tasks(self, blocker_id: str, blocked_id: str) -> bool:
        """Remove ``blocker_id -> blocked_id`` from both endpoints.

        Unconditional.  When one endpoint no longer exists, the dangling
        reference on the other side is still cleaned up.  Returns False only
        if neither task exists.
        """
        with self.store.transaction() as tx:
            blocker = tx.get(blocker_id)
            blocked = tx.get(blocked_id)
            if blocker is None and blocked is None:
                return False
            if blocker is not None and blocked is not None:
                pair = unlink_pair(blocker, blocked)
                pair.a.touch()
                pair.b.touch()
                tx.put(pair.a)
                tx.put(pair.b)
            elif blocker is not None:
                blocker.blocks = [tid for tid in blocker.blocks if tid != blocked_id]
                blocker.touch()
                tx.dirty = True
            else:
                assert blocked is not None
                blocked.depends_on = [tid for tid in blocked.depends_on if tid != blocker_id]
                blocked.touch()
                tx.dirty = True
        logger.info("Unlinked %s -> %s", blocker_id, blocked_id)
        return True

    def suggest_links(self, task_id: str, limit: int = DEFAULT_SUGGESTION_LIMIT) -> list[Task]:
        """Rank tasks that *task_id* could block.  Raises if the task is unknown."""
        tasks = self.store.read_snapshot()
        source = build_lookup(tasks).get(task_id)
        if source is None:
            raise ValueError(f"Task {task_id} not found")
        return suggest_candidates(source, tasks, limit=limit, config=self.policy_config)

    def link_candidates(
        self,
        task_id: str,
        mode: LinkMode = "blocks",
        query: str = "",
        limit: int = DEFAULT_CANDIDATE_LIMIT,
    ) -> list[Task]:
        """List tasks that can be linked to *task_id* right now.

        ``mode="blocks"`` proposes targets the source would block;
        ``mode="depends_on"`` proposes blockers of the source.  Candidates
        pass the policy and the cycle check for that orientation, match the
        optional free-text *query*, and are sorted by title.
        """
        if mode not in ("blocks", "depends_on"):
            raise ValueError(f"Unknown link mode: {mode}")
        tasks = self.store.read_snapshot()
        lookup = build_lookup(tasks)
        source = lookup.get(task_id)
        if source is None:
            raise ValueError(f"Task {task_id} not found")

        q = query.strip().lower()
        out: list[Task] = []
        for t in tasks:
            if t.id == source.id or t.archived:
                continue
            blocker, blocked = (source, t) if mode == "blocks" else (t, source)
            if not can_link(blocker, blocked, self.policy_config).ok:
                continue
            if would_create_cycle(lookup, blocker.id, blocked.id):
                continue
            if q:
                hay = " ".join(
                    part for part in (t.id, t.title, t.kind, t.domain, t.epic_id, *t.etiquettes) if part
                ).lower()
                if q not in hay:
                    continue
            out.append(t)
        out.sort(key=lambda t: t.title.casefold())
        return out[:limit]

    def get_dependency_graph(self, task_id: Optional[str] = None) -> dict[str, list[str]]:
        """Return adjacency list ``{task_id: [depends_on_ids]}``."""
        return dependency_subgraph(self.store.read_snapshot(), task_id)
