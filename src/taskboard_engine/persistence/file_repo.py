"""File-based project repository with cross-process locking.

Each project lives in a single YAML file
(``.taskboard/projects/<project_id>.yaml``) holding its tasks and dependency
edges.  All reads and writes go through :meth:`FileProjectRepository.transaction`,
which holds an exclusive file lock for the duration.
"""

from __future__ import annotations

import asyncio
import re
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TypeVar

from loguru import logger

from ..constants import LOCK_SUFFIX, PROJECTS_DIR, STATE_DIR_NAME
from ..errors import NotFound, PersistenceFailure
from ..io_utils import FileLock, _atomic_write_yaml, _load_data_with_error
from ..models import DependencyEdge, Task, TaskStatus
from .interfaces import PersistenceCollaborator

STORE_VERSION = 1
_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9._-]+$")

T = TypeVar("T")


class _ProjectTx:
    """In-memory transaction over one project's tasks and edges.

    Mutations are flushed back to disk when the ``transaction`` context
    manager exits with ``dirty`` set.
    """

    def __init__(self, project_id: str, tasks: list[Task], edges: list[DependencyEdge]) -> None:
        self.project_id = project_id
        self.tasks: dict[str, Task] = {t.id: t for t in tasks}
        self.edges: dict[str, DependencyEdge] = {e.id: e for e in edges}
        self.dirty = False

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.tasks.get(task_id)

    def upsert_task(self, task: Task) -> Task:
        task.project_id = self.project_id
        self.tasks[task.id] = task
        self.dirty = True
        return task

    def remove_task(self, task_id: str) -> bool:
        """Remove a task and cascade its edges."""
        if self.tasks.pop(task_id, None) is None:
            return False
        for edge_id in [
            e.id for e in self.edges.values() if task_id in (e.task_id, e.depends_on_task_id)
        ]:
            del self.edges[edge_id]
        self.dirty = True
        return True

    def add_edge(self, edge: DependencyEdge) -> DependencyEdge:
        self.edges[edge.id] = edge
        self.dirty = True
        return edge

    def remove_edge(self, edge_id: str) -> DependencyEdge:
        edge = self.edges.pop(edge_id, None)
        if edge is None:
            raise NotFound("edge", edge_id)
        self.dirty = True
        return edge


class FileProjectRepository(PersistenceCollaborator):
    """YAML-file persistence collaborator rooted at ``<project_dir>/.taskboard``.

    Parameters
    ----------
    project_dir:
        Directory whose ``.taskboard/projects/`` folder holds the project files.
    """

    def __init__(self, project_dir: Path) -> None:
        self.project_dir = project_dir.resolve()
        self._root = self.project_dir / STATE_DIR_NAME / PROJECTS_DIR

    # -- paths --------------------------------------------------------------

    def _path(self, project_id: str) -> Path:
        if not _SAFE_ID_RE.match(project_id or ""):
            raise ValueError(f"Invalid project id: {project_id!r}")
        return self._root / f"{project_id}.yaml"

    def _lock(self, project_id: str) -> FileLock:
        path = self._path(project_id)
        return FileLock(path.with_suffix(path.suffix + LOCK_SUFFIX))

    # -- low-level I/O ------------------------------------------------------

    def _load(self, project_id: str) -> tuple[list[Task], list[DependencyEdge]]:
        path = self._path(project_id)
        data, err = _load_data_with_error(path, {})
        if err:
            raise PersistenceFailure("load", err, project_id=project_id)
        tasks = [Task.from_dict(t) for t in data.get("tasks") or [] if isinstance(t, dict)]
        edges = [
            DependencyEdge.from_dict(e)
            for e in data.get("edges") or []
            if isinstance(e, dict) and e.get("task_id") and e.get("depends_on_task_id")
        ]
        return tasks, edges

    def _save(self, tx: _ProjectTx) -> None:
        payload: dict[str, Any] = {
            "version": STORE_VERSION,
            "project_id": tx.project_id,
            "tasks": [t.to_dict() for t in tx.tasks.values()],
            "edges": [e.to_dict() for e in tx.edges.values()],
        }
        _atomic_write_yaml(self._path(tx.project_id), payload)

    @contextmanager
    def transaction(
        self,
        project_id: str,
        abandoned: Optional[threading.Event] = None,
    ) -> Iterator[_ProjectTx]:
        """Acquire the lock, load the project, yield a transaction, save on exit.

        Nothing is saved once *abandoned* is set.

        Usage::

            with repo.transaction("proj") as tx:
                tx.upsert_task(Task(title="Write docs"))
                # automatically saved on exit
        """
        with self._lock(project_id):
            tasks, edges = self._load(project_id)
            tx = _ProjectTx(project_id, tasks, edges)
            yield tx
            if not tx.dirty:
                return
            if abandoned is not None and abandoned.is_set():
                logger.warning("Dropping abandoned write to project {}", project_id)
                return
            self._save(tx)

    # -- seeding helpers ----------------------------------------------------

    def upsert_task(self, task: Task) -> Task:
        if not task.project_id:
            raise ValueError(f"Task {task.id} has no project_id")
        with self.transaction(task.project_id) as tx:
            return tx.upsert_task(task)

    def delete_task(self, project_id: str, task_id: str) -> bool:
        with self.transaction(project_id) as tx:
            return tx.remove_task(task_id)

    # -- collaborator API ---------------------------------------------------
    #
    # Each call runs its locked transaction on the default executor.  A call
    # whose awaiter is cancelled (including by a timeout) is marked abandoned
    # and never writes.

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        abandoned = threading.Event()
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn, abandoned, *args)
        except asyncio.CancelledError:
            abandoned.set()
            raise

    def _read(
        self, abandoned: threading.Event, project_id: str
    ) -> tuple[list[Task], list[DependencyEdge]]:
        with self._lock(project_id):
            return self._load(project_id)

    def _write_edge(self, abandoned: threading.Event, project_id: str, edge: DependencyEdge) -> None:
        with self.transaction(project_id, abandoned) as tx:
            tx.add_edge(edge)

    def _drop_edge(self, abandoned: threading.Event, project_id: str, edge_id: str) -> None:
        with self.transaction(project_id, abandoned) as tx:
            tx.remove_edge(edge_id)

    def _write_status(
        self, abandoned: threading.Event, project_id: str, task_id: str, status: TaskStatus
    ) -> None:
        with self.transaction(project_id, abandoned) as tx:
            task = tx.get_task(task_id)
            if task is None:
                raise NotFound("task", task_id)
            task.status = status
            task.touch()
            tx.dirty = True

    async def load_tasks(self, project_id: str) -> list[Task]:
        tasks, _ = await self._run(self._read, project_id)
        return tasks

    async def load_edges(self, project_id: str) -> list[DependencyEdge]:
        _, edges = await self._run(self._read, project_id)
        return edges

    async def save_edge(self, project_id: str, edge: DependencyEdge) -> str:
        await self._run(self._write_edge, project_id, edge)
        logger.debug("Persisted edge {} in project {}", edge.id, project_id)
        return edge.id

    async def delete_edge(self, project_id: str, edge_id: str) -> None:
        await self._run(self._drop_edge, project_id, edge_id)

    async def save_task_status(self, project_id: str, task_id: str, status: TaskStatus) -> None:
        await self._run(self._write_status, project_id, task_id, status)
