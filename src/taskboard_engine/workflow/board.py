"""Cached, visible state of a project's Kanban board."""

from __future__ import annotations

import threading
from typing import Any, Iterable, Optional

from ..errors import NotFound
from ..models import Task, TaskPriority, TaskStatus


class BoardState:
    """Local copy of a project's tasks, mutated optimistically.

    Statuses here are what the user sees; they may run ahead of the
    persisted value while a transition is pending.
    """

    def __init__(self, project_id: str = "", tasks: Iterable[Task] = ()) -> None:
        self.project_id = project_id
        self._lock = threading.Lock()
        self._tasks: dict[str, Task] = {}
        for task in tasks:
            self._tasks[task.id] = task

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFound("task", task_id)
        return task

    def task_ids(self) -> list[str]:
        return list(self._tasks)

    def tasks(self) -> list[Task]:
        return list(self._tasks.values())

    def status_of(self, task_id: str) -> TaskStatus:
        return self.require(task_id).status

    def set_status(self, task_id: str, status: TaskStatus) -> TaskStatus:
        """Set the visible status and return the previous one."""
        with self._lock:
            task = self.require(task_id)
            previous = task.status
            task.status = status
            return previous

    def upsert(self, task: Task) -> Task:
        with self._lock:
            self._tasks[task.id] = task
            return task

    def remove(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._tasks.pop(task_id, None)

    def columns(self) -> dict[str, list[dict[str, Any]]]:
        """Tasks grouped by status column, sorted by priority then creation time."""
        columns: dict[str, list[dict[str, Any]]] = {s.value: [] for s in TaskStatus}
        for task in self._tasks.values():
            columns[task.status.value].append(task.to_dict())
        for col_tasks in columns.values():
            col_tasks.sort(key=lambda d: (
                TaskPriority(d.get("priority", "medium")).sort_key,
                d.get("created_at", ""),
            ))
        return columns
