"""In-process persistence collaborator.

Useful for embedding and for tests: failures and latency can be injected
per operation to exercise the engine's timeout and rollback paths.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, Optional

from ..errors import NotFound
from ..models import DependencyEdge, Task, TaskStatus
from .interfaces import PersistenceCollaborator


class InMemoryPersistence(PersistenceCollaborator):
    def __init__(self) -> None:
        self._tasks: dict[str, dict[str, Task]] = defaultdict(dict)
        self._edges: dict[str, dict[str, DependencyEdge]] = defaultdict(dict)
        self._failures: dict[str, list[BaseException]] = defaultdict(list)
        self._delays: dict[str, float] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    # -- fault injection ----------------------------------------------------

    def fail_next(self, operation: str, error: Optional[BaseException] = None) -> None:
        """Make the next call to *operation* raise *error*."""
        self._failures[operation].append(error or RuntimeError(f"{operation} unavailable"))

    def set_delay(self, operation: str, seconds: float) -> None:
        """Sleep *seconds* inside every call to *operation*."""
        if seconds > 0:
            self._delays[operation] = seconds
        else:
            self._delays.pop(operation, None)

    def calls_to(self, operation: str) -> list[tuple[Any, ...]]:
        return [args for op, args in self.calls if op == operation]

    async def _enter(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        delay = self._delays.get(operation)
        if delay:
            await asyncio.sleep(delay)
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    # -- seeding ------------------------------------------------------------

    def upsert_task(self, task: Task) -> Task:
        if not task.project_id:
            raise ValueError(f"Task {task.id} has no project_id")
        self._tasks[task.project_id][task.id] = task
        return task

    def delete_task(self, project_id: str, task_id: str) -> bool:
        return self._tasks[project_id].pop(task_id, None) is not None

    def stored_status(self, project_id: str, task_id: str) -> Optional[TaskStatus]:
        task = self._tasks[project_id].get(task_id)
        return task.status if task else None

    def stored_edges(self, project_id: str) -> list[DependencyEdge]:
        return list(self._edges[project_id].values())

    # -- collaborator API ---------------------------------------------------

    async def load_tasks(self, project_id: str) -> list[Task]:
        await self._enter("load_tasks", project_id)
        return [Task.from_dict(t.to_dict()) for t in self._tasks[project_id].values()]

    async def load_edges(self, project_id: str) -> list[DependencyEdge]:
        await self._enter("load_edges", project_id)
        return [DependencyEdge.from_dict(e.to_dict()) for e in self._edges[project_id].values()]

    async def save_edge(self, project_id: str, edge: DependencyEdge) -> str:
        await self._enter("save_edge", project_id, edge.id)
        self._edges[project_id][edge.id] = DependencyEdge.from_dict(edge.to_dict())
        return edge.id

    async def delete_edge(self, project_id: str, edge_id: str) -> None:
        await self._enter("delete_edge", project_id, edge_id)
        if self._edges[project_id].pop(edge_id, None) is None:
            raise NotFound("edge", edge_id)

    async def save_task_status(self, project_id: str, task_id: str, status: TaskStatus) -> None:
        await self._enter("save_task_status", project_id, task_id, status)
        task = self._tasks[project_id].get(task_id)
        if task is None:
            raise NotFound("task", task_id)
        task.status = status
        task.touch()
