"""Task API endpoints.

This module provides a FastAPI router with task CRUD, archiving and
dependency management (validated linking, link checks, suggestions and the
dependency picker).  It is mounted under ``/api/tasks`` by ``create_app``.
"""

from __future__ import annotations

from typing import Any, Callable, Literal, Optional

from fastapi import APIRouter, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, Field

from ..constants import DEFAULT_CANDIDATE_LIMIT
from ..task_engine.engine import LinkRejected, TaskEngine
from ..task_engine.suggest import DEFAULT_SUGGESTION_LIMIT


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class CreateTaskRequest(BaseModel):
    title: str
    kind: Optional[str] = None
    domain: Optional[str] = None
    epic_id: Optional[str] = None
    etiquettes: list[str] = Field(default_factory=list)
    priority: Optional[Literal["low", "medium", "high"]] = None
    status: Optional[str] = None
    admin: str = ""
    assignees: list[str] = Field(default_factory=list)
    start_date: Optional[str] = None
    due_date: Optional[str] = None
    notes: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


# Fields that may be cleared with an explicit null; for the rest null means "unchanged".
_NULLABLE_FIELDS = frozenset(
    {"kind", "domain", "epic_id", "priority", "team", "start_date", "due_date", "progress"}
)


class UpdateTaskRequest(BaseModel):
    title: Optional[str] = None
    kind: Optional[str] = None
    domain: Optional[str] = None
    epic_id: Optional[str] = None
    etiquettes: Optional[list[str]] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    admin: Optional[str] = None
    team: Optional[str] = None
    assignees: Optional[list[str]] = None
    start_date: Optional[str] = None
    due_date: Optional[str] = None
    notes: Optional[str] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    metadata: Optional[dict[str, Any]] = None


class ArchiveRequest(BaseModel):
    reason: Optional[str] = None


class AddDependencyRequest(BaseModel):
    depends_on: str


class AddBlockedRequest(BaseModel):
    blocked_id: str


class TaskResponse(BaseModel):
    """Standard wrapper for task responses."""
    task: dict[str, Any]


class TaskListResponse(BaseModel):
    tasks: list[dict[str, Any]]
    total: int


class LinkResponse(BaseModel):
    blocker: dict[str, Any]
    blocked: dict[str, Any]


class LinkCheckResponse(BaseModel):
    ok: bool
    reason: Optional[str] = None


class DependencyGraphResponse(BaseModel):
    graph: dict[str, list[str]]


def _task_list(tasks: list[Any]) -> TaskListResponse:
    data = [t.to_dict() for t in tasks]
    return TaskListResponse(tasks=data, total=len(data))


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------

def create_task_router(get_engine: Callable[[Optional[str]], TaskEngine]) -> APIRouter:
    """Create the task API router.

    Parameters
    ----------
    get_engine:
        A callable ``(project_dir_param: str | None) -> TaskEngine`` that
        resolves the engine for the current request's project directory.
    """
    router = APIRouter(prefix="/api/tasks", tags=["tasks"])

    def _link(engine: TaskEngine, blocker_id: str, blocked_id: str) -> LinkResponse:
        try:
            pair = engine.link_tasks(blocker_id, blocked_id)
        except LinkRejected as e:
            if e.reason == "unknown task":
                raise HTTPException(status_code=404, detail=str(e))
            raise HTTPException(status_code=400, detail=e.reason)
        logger.info("Linked {} -> {}", blocker_id, blocked_id)
        return LinkResponse(blocker=pair.a.to_dict(), blocked=pair.b.to_dict())

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @router.get("", response_model=TaskListResponse)
    async def list_tasks(
        project_dir: Optional[str] = Query(None),
        archived: Optional[bool] = Query(None),
        kind: Optional[str] = Query(None),
        domain: Optional[str] = Query(None),
        epic_id: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
    ) -> TaskListResponse:
        engine = get_engine(project_dir)
        tasks = engine.list_tasks(archived=archived, kind=kind, domain=domain, epic_id=epic_id, search=search)
        return _task_list(tasks)

    @router.post("", response_model=TaskResponse, status_code=201)
    async def create_task(
        body: CreateTaskRequest,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = get_engine(project_dir)
        try:
            task = engine.create_task(**body.model_dump())
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return TaskResponse(task=task.to_dict())

    @router.get("/{task_id}", response_model=TaskResponse)
    async def get_task(
        task_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = get_engine(project_dir)
        task = engine.get_task(task_id)
        if task is None:
            raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
        return TaskResponse(task=task.to_dict())

    @router.patch("/{task_id}", response_model=TaskResponse)
    async def update_task(
        task_id: str,
        body: UpdateTaskRequest,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = get_engine(project_dir)
        changes = {
            k: v
            for k, v in body.model_dump(exclude_unset=True).items()
            if v is not None or k in _NULLABLE_FIELDS
        }
        try:
            task = engine.update_task(task_id, changes)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if task is None:
            raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
        return TaskResponse(task=task.to_dict())

    @router.post("/{task_id}/archive", response_model=TaskResponse)
    async def archive_task(
        task_id: str,
        body: Optional[ArchiveRequest] = None,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = get_engine(project_dir)
        task = engine.archive_task(task_id, reason=body.reason if body else None)
        if task is None:
            raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
        return TaskResponse(task=task.to_dict())

    @router.post("/{task_id}/restore", response_model=TaskResponse)
    async def restore_task(
        task_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = get_engine(project_dir)
        task = engine.restore_task(task_id)
        if task is None:
            raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
        return TaskResponse(task=task.to_dict())

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    @router.get("/{task_id}/dependencies", response_model=DependencyGraphResponse)
    async def get_task_dependencies(
        task_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> DependencyGraphResponse:
        engine = get_engine(project_dir)
        return DependencyGraphResponse(graph=engine.get_dependency_graph(task_id))

    @router.post("/{task_id}/dependencies", response_model=LinkResponse)
    async def add_dependency(
        task_id: str,
        body: AddDependencyRequest,
        project_dir: Optional[str] = Query(None),
    ) -> LinkResponse:
        return _link(get_engine(project_dir), body.depends_on, task_id)

    @router.delete("/{task_id}/dependencies/{dep_id}")
    async def remove_dependency(
        task_id: str,
        dep_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, str]:
        engine = get_engine(project_dir)
        if not engine.unlink_tasks(dep_id, task_id):
            raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
        return {"status": "ok"}

    @router.post("/{task_id}/blocks", response_model=LinkResponse)
    async def add_blocked(
        task_id: str,
        body: AddBlockedRequest,
        project_dir: Optional[str] = Query(None),
    ) -> LinkResponse:
        return _link(get_engine(project_dir), task_id, body.blocked_id)

    @router.delete("/{task_id}/blocks/{blocked_id}")
    async def remove_blocked(
        task_id: str,
        blocked_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, str]:
        engine = get_engine(project_dir)
        if not engine.unlink_tasks(task_id, blocked_id):
            raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
        return {"status": "ok"}

    @router.get("/{task_id}/link-check", response_model=LinkCheckResponse)
    async def check_link(
        task_id: str,
        target: str = Query(...),
        mode: Literal["blocks", "depends_on"] = Query("blocks"),
        project_dir: Optional[str] = Query(None),
    ) -> LinkCheckResponse:
        engine = get_engine(project_dir)
        if mode == "blocks":
            check = engine.check_link(task_id, target)
        else:
            check = engine.check_link(target, task_id)
        return LinkCheckResponse(ok=check.ok, reason=check.reason)

    @router.get("/{task_id}/suggestions", response_model=TaskListResponse)
    async def suggest_links(
        task_id: str,
        limit: int = Query(DEFAULT_SUGGESTION_LIMIT, ge=0, le=100),
        project_dir: Optional[str] = Query(None),
    ) -> TaskListResponse:
        engine = get_engine(project_dir)
        try:
            return _task_list(engine.suggest_links(task_id, limit=limit))
        except ValueError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @router.get("/{task_id}/candidates", response_model=TaskListResponse)
    async def link_candidates(
        task_id: str,
        mode: Literal["blocks", "depends_on"] = Query("blocks"),
        q: str = Query(""),
        limit: int = Query(DEFAULT_CANDIDATE_LIMIT, ge=1, le=500),
        project_dir: Optional[str] = Query(None),
    ) -> TaskListResponse:
        engine = get_engine(project_dir)
        try:
            return _task_list(engine.link_candidates(task_id, mode=mode, query=q, limit=limit))
        except ValueError as e:
            raise HTTPException(status_code=404, detail=str(e))

    return router
