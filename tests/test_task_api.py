"""Tests for the task API endpoints."""

from __future__ import annotations

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from task_planner.server.api import create_app
from task_planner.task_engine.policy import DependencyPolicy, PolicyConfig


@pytest.fixture
def app(tmp_path: Path):
    """Create a test app with a temp project directory."""
    project_dir = tmp_path / "test_project"
    project_dir.mkdir()
    return create_app(
        project_dir=project_dir,
        enable_cors=False,
        policy_config=PolicyConfig(policy=DependencyPolicy.SAME_EPIC_OR_SAME_KIND),
    )


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _create(client: AsyncClient, title: str, **fields) -> str:
    resp = await client.post("/api/tasks", json={"title": title, **fields})
    assert resp.status_code == 201
    return resp.json()["task"]["id"]


@pytest.mark.anyio
class TestTaskCRUD:
    async def test_list_empty(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks")
        assert resp.status_code == 200
        assert resp.json() == {"tasks": [], "total": 0}

    async def test_create_and_get(self, client: AsyncClient) -> None:
        task_id = await _create(client, "Build login", kind="Dev", domain="Frontend", etiquettes=["auth"])
        resp = await client.get(f"/api/tasks/{task_id}")
        assert resp.status_code == 200
        task = resp.json()["task"]
        assert task["kind"] == "Dev"
        assert task["etiquettes"] == ["auth"]
        assert task["blocks"] == []

    async def test_get_nonexistent(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks/nope")
        assert resp.status_code == 404

    async def test_update(self, client: AsyncClient) -> None:
        task_id = await _create(client, "Old")
        resp = await client.patch(f"/api/tasks/{task_id}", json={"title": "New", "status": "done"})
        assert resp.status_code == 200
        assert resp.json()["task"]["title"] == "New"
        assert resp.json()["task"]["status"] == "done"

    async def test_update_null_keeps_required_fields(self, client: AsyncClient) -> None:
        task_id = await _create(client, "Keep me", kind="Dev", notes="context")
        resp = await client.patch(
            f"/api/tasks/{task_id}",
            json={"title": None, "status": None, "notes": None, "kind": None},
        )
        assert resp.status_code == 200
        task = (await client.get(f"/api/tasks/{task_id}")).json()["task"]
        assert task["title"] == "Keep me"
        assert task["status"] == "not_started"
        assert task["notes"] == "context"
        assert task["kind"] is None

    async def test_update_invalid_status(self, client: AsyncClient) -> None:
        task_id = await _create(client, "Task")
        resp = await client.patch(f"/api/tasks/{task_id}", json={"status": "someday"})
        assert resp.status_code == 400

    async def test_archive_restore_and_filter(self, client: AsyncClient) -> None:
        task_id = await _create(client, "Old")
        await _create(client, "Current")
        resp = await client.post(f"/api/tasks/{task_id}/archive", json={"reason": "stale"})
        assert resp.status_code == 200
        assert resp.json()["task"]["archived"] is True

        resp = await client.get("/api/tasks?archived=false")
        assert [t["title"] for t in resp.json()["tasks"]] == ["Current"]

        resp = await client.post(f"/api/tasks/{task_id}/restore")
        assert resp.json()["task"]["archived"] is False

    async def test_archive_unknown(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tasks/nope/archive")
        assert resp.status_code == 404


@pytest.mark.anyio
class TestDependencies:
    async def test_add_and_get_dependency(self, client: AsyncClient) -> None:
        id1 = await _create(client, "First", kind="Dev")
        id2 = await _create(client, "Second", kind="Dev")

        resp = await client.post(f"/api/tasks/{id2}/dependencies", json={"depends_on": id1})
        assert resp.status_code == 200
        assert resp.json()["blocker"]["blocks"] == [id2]
        assert resp.json()["blocked"]["depends_on"] == [id1]

        resp = await client.get(f"/api/tasks/{id2}/dependencies")
        assert resp.status_code == 200
        assert resp.json()["graph"][id2] == [id1]

    async def test_add_blocked(self, client: AsyncClient) -> None:
        id1 = await _create(client, "First", epic_id="E1")
        id2 = await _create(client, "Second", epic_id="E1")
        resp = await client.post(f"/api/tasks/{id1}/blocks", json={"blocked_id": id2})
        assert resp.status_code == 200
        assert (await client.get(f"/api/tasks/{id2}")).json()["task"]["depends_on"] == [id1]

    async def test_cycle_returns_400(self, client: AsyncClient) -> None:
        id1 = await _create(client, "A", kind="Dev")
        id2 = await _create(client, "B", kind="Dev")
        await client.post(f"/api/tasks/{id2}/dependencies", json={"depends_on": id1})
        resp = await client.post(f"/api/tasks/{id1}/dependencies", json={"depends_on": id2})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "would create a cycle"

    async def test_policy_rejection_returns_400(self, client: AsyncClient) -> None:
        id1 = await _create(client, "A", kind="Dev")
        id2 = await _create(client, "B", kind="Design")
        resp = await client.post(f"/api/tasks/{id1}/blocks", json={"blocked_id": id2})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "neither same kind nor same epic/project"

    async def test_unknown_target_returns_404(self, client: AsyncClient) -> None:
        id1 = await _create(client, "A", kind="Dev")
        resp = await client.post(f"/api/tasks/{id1}/blocks", json={"blocked_id": "ghost"})
        assert resp.status_code == 404

    async def test_remove_dependency(self, client: AsyncClient) -> None:
        id1 = await _create(client, "A", kind="Dev")
        id2 = await _create(client, "B", kind="Dev")
        await client.post(f"/api/tasks/{id2}/dependencies", json={"depends_on": id1})
        resp = await client.delete(f"/api/tasks/{id2}/dependencies/{id1}")
        assert resp.status_code == 200
        assert (await client.get(f"/api/tasks/{id1}")).json()["task"]["blocks"] == []

    async def test_remove_blocked(self, client: AsyncClient) -> None:
        id1 = await _create(client, "A", kind="Dev")
        id2 = await _create(client, "B", kind="Dev")
        await client.post(f"/api/tasks/{id1}/blocks", json={"blocked_id": id2})
        resp = await client.delete(f"/api/tasks/{id1}/blocks/{id2}")
        assert resp.status_code == 200
        assert (await client.get(f"/api/tasks/{id2}")).json()["task"]["depends_on"] == []

    async def test_remove_unknown_returns_404(self, client: AsyncClient) -> None:
        resp = await client.delete("/api/tasks/x/blocks/y")
        assert resp.status_code == 404

    async def test_link_check(self, client: AsyncClient) -> None:
        id1 = await _create(client, "A", kind="Dev", domain="API")
        id2 = await _create(client, "B", kind="Dev", domain="Mobile")
        resp = await client.get(f"/api/tasks/{id1}/link-check", params={"target": id2})
        assert resp.json() == {"ok": False, "reason": "different domains"}

        id3 = await _create(client, "C", kind="Dev")
        resp = await client.get(f"/api/tasks/{id1}/link-check", params={"target": id3, "mode": "depends_on"})
        assert resp.json() == {"ok": True, "reason": None}

    async def test_suggestions(self, client: AsyncClient) -> None:
        src = await _create(client, "Source", kind="Dev", epic_id="E1")
        mate = await _create(client, "Mate", kind="Design", epic_id="E1")
        await _create(client, "Stranger", kind="Ops")
        resp = await client.get(f"/api/tasks/{src}/suggestions")
        assert resp.status_code == 200
        assert [t["id"] for t in resp.json()["tasks"]] == [mate]

    async def test_suggestions_unknown_source(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks/nope/suggestions")
        assert resp.status_code == 404

    async def test_candidates(self, client: AsyncClient) -> None:
        src = await _create(client, "Source", kind="Dev")
        other = await _create(client, "Other", kind="Dev")
        await client.post(f"/api/tasks/{src}/blocks", json={"blocked_id": other})
        resp = await client.get(f"/api/tasks/{src}/candidates", params={"mode": "depends_on"})
        assert resp.status_code == 200
        assert resp.json()["total"] == 0
        resp = await client.get(f"/api/tasks/{other}/candidates", params={"mode": "depends_on", "q": "sour"})
        assert [t["id"] for t in resp.json()["tasks"]] == [src]
