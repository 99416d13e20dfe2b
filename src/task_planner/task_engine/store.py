"""YAML-backed persistence for planner tasks.

The whole task set lives in ``.planner/tasks.yaml`` as
``{"version": 1, "tasks": [...]}``.  Tasks are never deleted here; retiring a
task means archiving it, so every id a dependency edge points at stays
resolvable unless the file was edited by hand.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import yaml
from filelock import FileLock

from ..constants import LOCK_TIMEOUT, STORE_FILENAME, STORE_LOCK_FILENAME
from .model import Task

STORE_VERSION = 1


# ---------------------------------------------------------------------------
# Low-level I/O
# ---------------------------------------------------------------------------

def _load_raw(path: Path) -> list[dict[str, Any]]:
    """Load the raw task list from *path*, returning ``[]`` if missing."""
    if not path.exists():
        return []
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or "tasks" not in data:
        return []
    tasks = data["tasks"]
    return [t for t in tasks if isinstance(t, dict)] if isinstance(tasks, list) else []


def _save_raw(path: Path, tasks: list[dict[str, Any]]) -> None:
    """Atomically write *tasks* to *path* (write-tmp-then-rename)."""
    payload = {"version": STORE_VERSION, "tasks": tasks}
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            yaml.safe_dump(payload, fh, default_flow_style=False, sort_keys=False, allow_unicode=True)
        shutil.move(tmp, str(path))
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


# ---------------------------------------------------------------------------
# TaskStore
# ---------------------------------------------------------------------------

class TaskStore:
    """File-backed store for :class:`Task` objects.

    Parameters
    ----------
    state_dir:
        Path to the ``.planner/`` directory for the project.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir
        self._store_path = state_dir / STORE_FILENAME
        state_dir.mkdir(parents=True, exist_ok=True)
        self._lock = FileLock(str(state_dir / STORE_LOCK_FILENAME), timeout=LOCK_TIMEOUT)

    @property
    def path(self) -> Path:
        return self._store_path

    def _load(self) -> list[Task]:
        return [Task.from_dict(d) for d in _load_raw(self._store_path)]

    def _save(self, tasks: list[Task]) -> None:
        _save_raw(self._store_path, [t.to_dict() for t in tasks])

    @contextmanager
    def transaction(self) -> Iterator[_TaskTx]:
        """Hold ``tasks.lock`` while the caller reads and edits the task set.

        The file is rewritten once on exit, and only if the transaction was
        marked dirty (``add``/``put``/``update`` do this, direct attribute
        edits must set ``tx.dirty`` themselves).  An exception inside the
        block leaves the file untouched.
        """
        with self._lock:
            tx = _TaskTx(self._load())
            yield tx
            if tx.dirty:
                self._save(tx.tasks)

    def read_snapshot(self) -> list[Task]:
        """Load every task under the lock; the result is detached from disk."""
        with self._lock:
            return self._load()

    def get_one(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.read_snapshot() if t.id == task_id), None)


class _TaskTx:
    """Working copy of the task set for one locked transaction.

    Records are keyed by id in file order.  ``put`` swaps in a replacement
    record (the copy-on-write link helpers return new objects); there is no
    removal operation.
    """

    def __init__(self, tasks: list[Task]) -> None:
        self._by_id: dict[str, Task] = {t.id: t for t in tasks}
        self.dirty = False

    @property
    def tasks(self) -> list[Task]:
        return list(self._by_id.values())

    def get(self, task_id: str) -> Optional[Task]:
        return self._by_id.get(task_id)

    def list_all(self) -> list[Task]:
        return self.tasks

    def find(
        self,
        *,
        archived: Optional[bool] = None,
        kind: Optional[str] = None,
        domain: Optional[str] = None,
        epic_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[Task]:
        needle = search.lower() if search else ""

        def _matches(t: Task) -> bool:
            if archived is not None and t.archived != archived:
                return False
            if (kind and t.kind != kind) or (domain and t.domain != domain) or (epic_id and t.epic_id != epic_id):
                return False
            return not needle or any(needle in text.lower() for text in (t.title, t.notes, t.id))

        return [t for t in self._by_id.values() if _matches(t)]

    def add(self, task: Task) -> Task:
        if task.id in self._by_id:
            raise ValueError(f"Task {task.id} already exists")
        self._by_id[task.id] = task
        self.dirty = True
        return task

    def put(self, task: Task) -> Task:
        """Replace the stored record that has ``task.id``."""
        if task.id not in self._by_id:
            raise ValueError(f"Task {task.id} not found")
        self._by_id[task.id] = task
        self.dirty = True
        return task

    def update(self, task_id: str, changes: dict[str, Any]) -> Optional[Task]:
        """Set the known attributes in *changes* and bump ``updated_at``."""
        task = self._by_id.get(task_id)
        if task is None:
            return None
        for key in changes.keys() & vars(task).keys():
            setattr(task, key, changes[key])
        task.touch()
        self.dirty = True
        return task
