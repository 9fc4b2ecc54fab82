"""Tests for the HTTP adapter."""

from __future__ import annotations

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from taskboard_engine.config import EngineConfig
from taskboard_engine.models import Task, TaskStatus
from taskboard_engine.persistence.memory import InMemoryPersistence
from taskboard_engine.server.api import create_app

PROJECT = "proj"
BASE = f"/api/v1/projects/{PROJECT}"


@pytest.fixture
def persistence() -> InMemoryPersistence:
    p = InMemoryPersistence()
    for tid, title in (("A", "Design"), ("B", "Build"), ("C", "Ship")):
        p.upsert_task(Task(id=tid, title=title, project_id=PROJECT))
    return p


@pytest.fixture
def app(tmp_path: Path, persistence: InMemoryPersistence):
    config = EngineConfig(persistence_timeout=0.1)
    return create_app(project_dir=tmp_path, persistence=persistence, config=config, enable_cors=False)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.mark.anyio
class TestDependencies:
    async def test_list_empty(self, client: AsyncClient) -> None:
        resp = await client.get(f"{BASE}/dependencies")
        assert resp.status_code == 200
        assert resp.json() == {"dependencies": [], "total": 0}

    async def test_add_and_list(self, client: AsyncClient) -> None:
        resp = await client.post(f"{BASE}/dependencies", json={"task_id": "B", "depends_on_task_id": "A"})
        assert resp.status_code == 201
        edge = resp.json()["dependency"]
        assert edge["task_id"] == "B"
        assert edge["depends_on_task_id"] == "A"

        resp = await client.get(f"{BASE}/dependencies", params={"task_id": "B"})
        assert resp.json()["total"] == 1
        resp = await client.get(f"{BASE}/dependencies", params={"task_id": "A"})
        assert resp.json()["total"] == 0

    async def test_cycle_rejected(self, client: AsyncClient) -> None:
        await client.post(f"{BASE}/dependencies", json={"task_id": "B", "depends_on_task_id": "A"})
        resp = await client.post(f"{BASE}/dependencies", json={"task_id": "A", "depends_on_task_id": "B"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "cyclic_dependency"
        assert "cycle" in body["message"]

    async def test_self_rejected(self, client: AsyncClient) -> None:
        resp = await client.post(f"{BASE}/dependencies", json={"task_id": "A", "depends_on_task_id": "A"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "self_dependency"

    async def test_duplicate_rejected(self, client: AsyncClient) -> None:
        payload = {"task_id": "A", "depends_on_task_id": "B"}
        await client.post(f"{BASE}/dependencies", json=payload)
        resp = await client.post(f"{BASE}/dependencies", json=payload)
        assert resp.status_code == 400
        assert resp.json()["error"] == "duplicate_edge"

    async def test_unknown_task(self, client: AsyncClient) -> None:
        resp = await client.post(f"{BASE}/dependencies", json={"task_id": "A", "depends_on_task_id": "Z"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    async def test_persistence_failure(self, client: AsyncClient, persistence: InMemoryPersistence) -> None:
        persistence.fail_next("save_edge")
        resp = await client.post(f"{BASE}/dependencies", json={"task_id": "B", "depends_on_task_id": "A"})
        assert resp.status_code == 503
        assert resp.json()["error"] == "persistence_failure"
        resp = await client.get(f"{BASE}/dependencies")
        assert resp.json()["total"] == 0

    async def test_delete(self, client: AsyncClient) -> None:
        resp = await client.post(f"{BASE}/dependencies", json={"task_id": "B", "depends_on_task_id": "A"})
        edge_id = resp.json()["dependency"]["id"]

        resp = await client.delete(f"{BASE}/dependencies/{edge_id}")
        assert resp.status_code == 200
        assert resp.json()["status"] == "deleted"

        resp = await client.delete(f"{BASE}/dependencies/{edge_id}")
        assert resp.status_code == 404

    async def test_invalid_project_id(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/projects/bad id!/dependencies")
        assert resp.status_code == 422


@pytest.mark.anyio
class TestViews:
    async def test_graph(self, client: AsyncClient) -> None:
        await client.post(f"{BASE}/dependencies", json={"task_id": "B", "depends_on_task_id": "A"})
        await client.post(f"{BASE}/dependencies", json={"task_id": "C", "depends_on_task_id": "B"})

        resp = await client.get(f"{BASE}/graph")
        assert resp.status_code == 200
        data = resp.json()
        ranks = {n["id"]: n["rank"] for n in data["nodes"]}
        assert ranks == {"A": 0, "B": 1, "C": 2}
        assert len(data["edges"]) == 2

    async def test_board(self, client: AsyncClient) -> None:
        resp = await client.get(f"{BASE}/board")
        assert resp.status_code == 200
        columns = resp.json()["columns"]
        assert len(columns["todo"]) == 3
        assert columns["done"] == []

    async def test_state_machine(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/meta/state-machine")
        assert resp.status_code == 200
        data = resp.json()
        assert data["states"] == ["todo", "in_progress", "review", "done"]
        assert data["initial"] == "todo"
        assert "todo" in data["transitions"]["done"]

    async def test_activity(self, client: AsyncClient) -> None:
        await client.post(f"{BASE}/dependencies", json={"task_id": "B", "depends_on_task_id": "A"})
        await client.post(f"{BASE}/tasks/A/transition", json={"status": "done"})

        resp = await client.get(f"{BASE}/activity")
        types = [e["type"] for e in resp.json()["events"]]
        assert types == ["dependency.added", "task.status_changed"]

        resp = await client.get(f"{BASE}/activity", params={"task_id": "A"})
        assert [e["type"] for e in resp.json()["events"]] == ["task.status_changed"]


@pytest.mark.anyio
class TestTransitions:
    async def test_transition(self, client: AsyncClient, persistence: InMemoryPersistence) -> None:
        resp = await client.post(f"{BASE}/tasks/A/transition", json={"status": "in_progress"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["outcome"]["phase"] == "committed"
        assert data["task"]["status"] == "in_progress"
        assert persistence.stored_status(PROJECT, "A") is TaskStatus.IN_PROGRESS

    async def test_invalid_status(self, client: AsyncClient) -> None:
        resp = await client.post(f"{BASE}/tasks/A/transition", json={"status": "archived"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_status"

    async def test_unknown_task(self, client: AsyncClient) -> None:
        resp = await client.post(f"{BASE}/tasks/ghost/transition", json={"status": "done"})
        assert resp.status_code == 404

    async def test_timeout_reverts(self, client: AsyncClient, persistence: InMemoryPersistence) -> None:
        persistence.set_delay("save_task_status", 1.0)
        resp = await client.post(f"{BASE}/tasks/A/transition", json={"status": "done", "timeout": 0.05})
        assert resp.status_code == 503
        body = resp.json()
        assert body["error"] == "persistence_failure"
        assert body["outcome"]["phase"] == "reverted"
        assert body["outcome"]["final_status"] == "todo"

        resp = await client.get(f"{BASE}/board")
        assert [t["id"] for t in resp.json()["columns"]["todo"]] == ["A", "B", "C"]

        resp = await client.get("/api/v1/notifications")
        notes = resp.json()["notifications"]
        assert len(notes) == 1
        assert notes[0]["task_id"] == "A"
        resp = await client.get("/api/v1/notifications")
        assert resp.json()["notifications"] == []

    async def test_in_progress_conflict(self, client: AsyncClient, app) -> None:
        workspace = await app.state.registry.get(PROJECT)
        workspace.coordinator.drag_start("A")
        resp = await client.post(f"{BASE}/tasks/A/transition", json={"status": "done"})
        assert resp.status_code == 409
        assert resp.json()["error"] == "transition_in_progress"
