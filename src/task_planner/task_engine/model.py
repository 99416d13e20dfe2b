"""Task model for the planner.

A task carries the planning fields shown on the board (status, priority,
dates, owners) plus the structural fields the dependency engine reads:
``kind``, ``domain``, ``epic_id``, ``etiquettes``, ``archived`` and the two
edge lists ``depends_on`` / ``blocks``.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Board-level status."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    WAITING = "waiting"
    BLOCKED = "blocked"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def sort_key(self) -> int:
        return {"high": 0, "medium": 1, "low": 2}[self.value]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _generate_id() -> str:
    """Short human-friendly task ID: ``task-<8hex>``."""
    return f"task-{uuid.uuid4().hex[:8]}"


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_ids(ids: Optional[Iterable[str]], self_id: Optional[str] = None) -> list[str]:
    """Deduplicate *ids* preserving first-seen order.

    Empty entries and *self_id* are dropped so an edge list never points back
    at its owner.
    """
    out: list[str] = []
    seen: set[str] = set()
    for raw in ids or []:
        if not raw:
            continue
        item = str(raw)
        if item == self_id or item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


# ---------------------------------------------------------------------------
# Task dataclass
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A unit of planned work.

    Edge lists have set semantics: ``depends_on`` holds the ids of tasks that
    block this one, ``blocks`` the ids of tasks this one blocks.  They are only
    changed through the link operations in :mod:`.links`, which keep both
    endpoints in sync.
    """

    # Identity
    id: str = field(default_factory=_generate_id)
    title: str = ""

    # Board fields
    status: TaskStatus = TaskStatus.NOT_STARTED
    priority: Optional[TaskPriority] = None
    admin: str = ""
    team: Optional[str] = None
    start_date: Optional[str] = None  # yyyy-mm-dd
    due_date: Optional[str] = None  # yyyy-mm-dd

    # Structure
    kind: Optional[str] = None  # "Dev", "Design", ...
    domain: Optional[str] = None  # "Frontend", "API", ...
    epic_id: Optional[str] = None

    # Dependencies
    depends_on: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)

    # Labels / people / progress
    etiquettes: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    notes: str = ""
    progress: Optional[int] = None  # 0-100

    # Archiving (tasks are never deleted)
    archived: bool = False
    archived_at: Optional[str] = None
    archived_reason: Optional[str] = None

    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    metadata: dict[str, Any] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for YAML/JSON persistence."""
        data: dict[str, Any] = {}
        for k, v in asdict(self).items():
            if isinstance(v, Enum):
                data[k] = v.value
            else:
                data[k] = v
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize from a plain dict, coercing enums gracefully."""
        d = dict(data)

        status_raw = d.get("status")
        try:
            status = TaskStatus(str(status_raw)) if status_raw is not None else TaskStatus.NOT_STARTED
        except ValueError:
            status = TaskStatus.NOT_STARTED

        priority_raw = d.get("priority")
        priority: Optional[TaskPriority] = None
        if priority_raw is not None:
            try:
                priority = TaskPriority(str(priority_raw))
            except ValueError:
                priority = None

        progress_raw = d.get("progress")
        progress = int(progress_raw) if isinstance(progress_raw, (int, float)) else None

        task_id = str(d.get("id") or _generate_id())
        return cls(
            id=task_id,
            title=str(d.get("title") or ""),
            status=status,
            priority=priority,
            admin=str(d.get("admin") or ""),
            team=_optional_str(d.get("team")),
            start_date=_optional_str(d.get("start_date")),
            due_date=_optional_str(d.get("due_date")),
            kind=_optional_str(d.get("kind")),
            domain=_optional_str(d.get("domain")),
            epic_id=_optional_str(d.get("epic_id")),
            depends_on=normalize_ids(d.get("depends_on"), task_id),
            blocks=normalize_ids(d.get("blocks"), task_id),
            etiquettes=normalize_ids(d.get("etiquettes")),
            assignees=[str(a) for a in (d.get("assignees") or []) if a],
            notes=str(d.get("notes") or ""),
            progress=progress,
            archived=bool(d.get("archived", False)),
            archived_at=d.get("archived_at"),
            archived_reason=d.get("archived_reason"),
            created_at=str(d.get("created_at") or _now_iso()),
            updated_at=str(d.get("updated_at") or _now_iso()),
            metadata=dict(d.get("metadata") or {}),
        )

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    def touch(self) -> None:
        """Bump ``updated_at`` to now."""
        self.updated_at = _now_iso()

    def archive(self, reason: Optional[str] = None) -> None:
        self.archived = True
        self.archived_at = _now_iso()
        self.archived_reason = reason
        self.touch()

    def restore(self) -> None:
        self.archived = False
        self.archived_at = None
        self.archived_reason = None
        self.touch()
