"""Per-project wiring of board state, dependency engine and coordinator."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from loguru import logger

from .config import EngineConfig
from .engine import DependencyEngine
from .events import EventLog
from .logging_utils import pretty
from .models import Task
from .notifications import NotificationCenter
from .persistence.interfaces import PersistenceCollaborator, guarded_call
from .workflow.board import BoardState
from .workflow.coordinator import TransitionCoordinator
from .workflow.state_machine import WorkflowStateMachine


class ProjectWorkspace:
    """Everything needed to render and edit one project's board and graph."""

    def __init__(
        self,
        project_id: str,
        persistence: PersistenceCollaborator,
        config: Optional[EngineConfig] = None,
        *,
        events: Optional[EventLog] = None,
        notifications: Optional[NotificationCenter] = None,
    ) -> None:
        self.project_id = project_id
        self.persistence = persistence
        self.config = config or EngineConfig()
        self.events = events or EventLog(enabled=False)
        self.notifications = notifications or NotificationCenter()
        self.state_machine = WorkflowStateMachine()
        self.board = BoardState(project_id)
        self.engine = DependencyEngine(
            project_id,
            persistence,
            self.config,
            tasks=self.board,
            events=self.events,
            notifications=self.notifications,
        )
        self.coordinator = TransitionCoordinator(
            self.board,
            persistence,
            self.engine.store,
            state_machine=self.state_machine,
            timeout=self.config.persistence_timeout,
            require_dependencies_done=self.config.require_dependencies_done,
            notifications=self.notifications,
            events=self.events,
        )

    @classmethod
    async def open(
        cls,
        project_id: str,
        persistence: PersistenceCollaborator,
        config: Optional[EngineConfig] = None,
        *,
        events: Optional[EventLog] = None,
        notifications: Optional[NotificationCenter] = None,
    ) -> "ProjectWorkspace":
        """Create a workspace and load its tasks and edges from *persistence*."""
        workspace = cls(project_id, persistence, config, events=events, notifications=notifications)
        await workspace.reload()
        return workspace

    async def reload(self) -> None:
        tasks = await guarded_call(
            "load_tasks", self.persistence.load_tasks(self.project_id), self.config.persistence_timeout
        )
        for task in tasks:
            self.track_task(task)
        await self.engine.load()
        logger.debug("Dependency graph for {}:\n{}", self.project_id, pretty(self.engine.graph()))
        logger.info(
            "Opened project {} ({} task(s), {} edge(s))",
            self.project_id,
            len(self.board),
            len(self.engine.store),
        )

    def track_task(self, task: Task) -> Task:
        """Add or refresh a task in the visible board and the graph's node set."""
        task.project_id = self.project_id
        self.board.upsert(task)
        self.engine.register_task(task.id)
        return task

    async def remove_task(self, task_id: str) -> Optional[Task]:
        """Cascade the task's edges, then drop it from the board."""
        self.board.require(task_id)
        await self.engine.remove_task(task_id)
        return self.board.remove(task_id)

    def graph_view(self) -> dict[str, Any]:
        """Nodes with layout positions plus the live edge list."""
        node_ids = [tid for tid in self.engine.store.nodes() if tid in self.board]
        positions = self.engine.layout(node_ids)
        nodes = []
        for pos in positions:
            task = self.board.require(pos.node_id)
            nodes.append({
                "id": task.id,
                "title": task.title,
                "status": task.status.value,
                "priority": task.priority.value,
                "rank": pos.rank,
                "order": pos.order,
                "x": pos.x,
                "y": pos.y,
            })
        edges = [
            e.to_dict()
            for e in self.engine.edges()
            if e.task_id in self.board and e.depends_on_task_id in self.board
        ]
        return {"nodes": nodes, "edges": edges}

    def board_view(self) -> dict[str, list[dict[str, Any]]]:
        return self.board.columns()


class WorkspaceRegistry:
    """Cache of open workspaces keyed by project id.

    Passed explicitly to whoever needs it (e.g. the HTTP app) instead of
    living in module globals.
    """

    def __init__(
        self,
        persistence: PersistenceCollaborator,
        config: Optional[EngineConfig] = None,
        *,
        events: Optional[EventLog] = None,
        notifications: Optional[NotificationCenter] = None,
    ) -> None:
        self.persistence = persistence
        self.config = config or EngineConfig()
        self.events = events or EventLog(enabled=False)
        self.notifications = notifications or NotificationCenter()
        self._workspaces: dict[str, ProjectWorkspace] = {}
        self._lock = asyncio.Lock()

    def __contains__(self, project_id: object) -> bool:
        return project_id in self._workspaces

    def open_projects(self) -> list[str]:
        return list(self._workspaces)

    async def get(self, project_id: str) -> ProjectWorkspace:
        """Return the cached workspace, opening it on first use."""
        async with self._lock:
            workspace = self._workspaces.get(project_id)
            if workspace is None:
                workspace = await ProjectWorkspace.open(
                    project_id,
                    self.persistence,
                    self.config,
                    events=self.events,
                    notifications=self.notifications,
                )
                self._workspaces[project_id] = workspace
            return workspace

    def evict(self, project_id: str) -> bool:
        return self._workspaces.pop(project_id, None) is not None
