"""Tests for per-project workspace wiring."""

from __future__ import annotations

from pathlib import Path

import pytest

from taskboard_engine.config import EngineConfig
from taskboard_engine.errors import NotFound, PersistenceFailure
from taskboard_engine.models import DependencyEdge, Task, TaskPriority, TaskStatus
from taskboard_engine.persistence.file_repo import FileProjectRepository
from taskboard_engine.persistence.memory import InMemoryPersistence
from taskboard_engine.workflow.coordinator import TransitionPhase
from taskboard_engine.workspace import ProjectWorkspace, WorkspaceRegistry

PROJECT = "proj"


@pytest.fixture
def persistence() -> InMemoryPersistence:
    p = InMemoryPersistence()
    p.upsert_task(Task(id="A", title="Design", project_id=PROJECT))
    p.upsert_task(Task(id="B", title="Build", priority=TaskPriority.HIGH, project_id=PROJECT))
    p.upsert_task(Task(id="C", title="Ship", status=TaskStatus.REVIEW, project_id=PROJECT))
    return p


@pytest.mark.anyio
class TestProjectWorkspace:
    async def test_open_loads_tasks_and_edges(self, persistence: InMemoryPersistence) -> None:
        await persistence.save_edge(PROJECT, DependencyEdge(task_id="B", depends_on_task_id="A"))
        workspace = await ProjectWorkspace.open(PROJECT, persistence)
        assert len(workspace.board) == 3
        assert workspace.engine.dependencies_of("B") == ["A"]

    async def test_graph_view(self, persistence: InMemoryPersistence) -> None:
        workspace = await ProjectWorkspace.open(PROJECT, persistence)
        await workspace.engine.add_dependency("B", "A")
        await workspace.engine.add_dependency("C", "B")

        view = workspace.graph_view()
        nodes = {n["id"]: n for n in view["nodes"]}
        assert [nodes[t]["rank"] for t in ("A", "B", "C")] == [0, 1, 2]
        assert nodes["C"]["y"] == 300
        assert nodes["B"]["priority"] == "high"
        assert nodes["C"]["status"] == "review"
        assert len(view["edges"]) == 2

    async def test_dependency_on_unknown_task(self, persistence: InMemoryPersistence) -> None:
        workspace = await ProjectWorkspace.open(PROJECT, persistence)
        with pytest.raises(NotFound):
            await workspace.engine.add_dependency("A", "ghost")

    async def test_board_view_sorted_by_priority(self, persistence: InMemoryPersistence) -> None:
        workspace = await ProjectWorkspace.open(PROJECT, persistence)
        columns = workspace.board_view()
        assert set(columns) == {"todo", "in_progress", "review", "done"}
        assert [t["id"] for t in columns["todo"]] == ["B", "A"]
        assert [t["id"] for t in columns["review"]] == ["C"]

    async def test_transition_uses_config_timeout(self, persistence: InMemoryPersistence) -> None:
        workspace = await ProjectWorkspace.open(
            PROJECT, persistence, EngineConfig(persistence_timeout=0.05)
        )
        persistence.set_delay("save_task_status", 1.0)
        outcome = await workspace.coordinator.transition("A", "done")
        assert outcome.phase is TransitionPhase.REVERTED
        assert workspace.board.status_of("A") is TaskStatus.TODO
        assert len(workspace.notifications.unread()) == 1

    async def test_remove_task(self, persistence: InMemoryPersistence) -> None:
        workspace = await ProjectWorkspace.open(PROJECT, persistence)
        await workspace.engine.add_dependency("B", "A")
        removed = await workspace.remove_task("A")
        assert removed.id == "A"
        assert "A" not in workspace.board
        assert workspace.engine.edges() == []
        assert [n["id"] for n in workspace.graph_view()["nodes"]] == ["B", "C"]

    async def test_open_failure(self, persistence: InMemoryPersistence) -> None:
        persistence.fail_next("load_tasks")
        with pytest.raises(PersistenceFailure):
            await ProjectWorkspace.open(PROJECT, persistence)

    async def test_file_backed_round_trip(self, tmp_path: Path) -> None:
        repo = FileProjectRepository(tmp_path)
        repo.upsert_task(Task(id="A", title="Design", project_id=PROJECT))
        repo.upsert_task(Task(id="B", title="Build", project_id=PROJECT))

        workspace = await ProjectWorkspace.open(PROJECT, repo)
        edge = await workspace.engine.add_dependency("B", "A")
        await workspace.coordinator.transition("A", "done")

        reopened = await ProjectWorkspace.open(PROJECT, repo)
        assert [e.id for e in reopened.engine.edges()] == [edge.id]
        assert reopened.board.status_of("A") is TaskStatus.DONE


@pytest.mark.anyio
class TestWorkspaceRegistry:
    async def test_caches_workspaces(self, persistence: InMemoryPersistence) -> None:
        registry = WorkspaceRegistry(persistence)
        first = await registry.get(PROJECT)
        second = await registry.get(PROJECT)
        assert first is second
        assert PROJECT in registry
        assert registry.open_projects() == [PROJECT]
        assert len(persistence.calls_to("load_tasks")) == 1

    async def test_evict(self, persistence: InMemoryPersistence) -> None:
        registry = WorkspaceRegistry(persistence)
        first = await registry.get(PROJECT)
        assert registry.evict(PROJECT)
        assert not registry.evict(PROJECT)
        assert await registry.get(PROJECT) is not first

    async def test_shares_notifications(self, persistence: InMemoryPersistence) -> None:
        registry = WorkspaceRegistry(persistence)
        workspace = await registry.get(PROJECT)
        assert workspace.notifications is registry.notifications
        assert workspace.events is registry.events
