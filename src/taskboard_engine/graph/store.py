"""In-memory dependency graph for one project's tasks.

Nodes are task ids mapped onto integer slots; adjacency is kept per slot in
both directions so traversals never chase object references.  Every public
method takes the store's readers-writer lock, so synchronous readers (layout,
guard traversal) never observe a half-applied mutation.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from loguru import logger

from ..errors import DuplicateEdge, NotFound
from ..models import DependencyEdge


class _ReadWriteLock:
    """Many readers or one writer.  The writing thread may re-enter freely."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer: Optional[int] = None
        self._write_depth = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        me = threading.get_ident()
        if self._writer == me:
            yield
            return
        with self._cond:
            while self._writer is not None:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        me = threading.get_ident()
        with self._cond:
            if self._writer != me:
                while self._writer is not None or self._readers > 0:
                    self._cond.wait()
                self._writer = me
            self._write_depth += 1
        try:
            yield
        finally:
            with self._cond:
                self._write_depth -= 1
                if self._write_depth == 0:
                    self._writer = None
                    self._cond.notify_all()


class GraphStore:
    """Authoritative edge set for a single project.

    Parameters
    ----------
    project_id:
        Owning project; used only for log context.
    edges:
        Optional initial edges (e.g. from ``load_edges``).  Duplicates raise.
    """

    def __init__(self, project_id: str = "", edges: Iterable[DependencyEdge] = ()) -> None:
        self.project_id = project_id
        self._lock = _ReadWriteLock()
        self._slots: dict[str, int] = {}
        self._ids: list[Optional[str]] = []
        # slot -> {prerequisite slot: edge id}, insertion ordered
        self._depends_on: list[dict[int, str]] = []
        # slot -> {dependent slot: edge id}
        self._dependents: list[dict[int, str]] = []
        self._edges: dict[str, DependencyEdge] = {}
        for edge in edges:
            self.add_edge(edge.task_id, edge.depends_on_task_id, edge_id=edge.id, created_at=edge.created_at)

    # -- locking ------------------------------------------------------------

    def read(self):
        """Context manager granting shared read access."""
        return self._lock.read()

    def write(self):
        """Context manager granting exclusive write access."""
        return self._lock.write()

    # -- internal helpers ---------------------------------------------------

    def _slot(self, task_id: str) -> int:
        slot = self._slots.get(task_id)
        if slot is None:
            slot = len(self._ids)
            self._slots[task_id] = slot
            self._ids.append(task_id)
            self._depends_on.append({})
            self._dependents.append({})
        return slot

    # -- nodes --------------------------------------------------------------

    def add_node(self, task_id: str) -> None:
        with self.write():
            self._slot(task_id)

    def has_node(self, task_id: str) -> bool:
        with self.read():
            return task_id in self._slots

    def nodes(self) -> list[str]:
        """Known task ids in registration order."""
        with self.read():
            return [tid for tid in self._ids if tid is not None]

    def remove_node(self, task_id: str) -> list[DependencyEdge]:
        """Drop *task_id* and cascade every edge touching it.

        Returns the removed edges (empty if the node was unknown).
        """
        with self.write():
            slot = self._slots.get(task_id)
            if slot is None:
                return []
            edge_ids = list(self._depends_on[slot].values()) + list(self._dependents[slot].values())
            removed = [self._remove_edge_locked(eid) for eid in edge_ids]
            del self._slots[task_id]
            self._ids[slot] = None
            if removed:
                logger.debug("Cascaded {} edge(s) from removed task {}", len(removed), task_id)
            return removed

    # -- edges --------------------------------------------------------------

    def outgoing_dependencies(self, task_id: str) -> list[str]:
        """What *task_id* depends on (its prerequisites)."""
        with self.read():
            slot = self._slots.get(task_id)
            if slot is None:
                return []
            return [self._ids[s] for s in self._depends_on[slot]]  # type: ignore[misc]

    def dependents(self, task_id: str) -> list[str]:
        """Tasks that depend on *task_id*."""
        with self.read():
            slot = self._slots.get(task_id)
            if slot is None:
                return []
            return [self._ids[s] for s in self._dependents[slot]]  # type: ignore[misc]

    def find_edge(self, task_id: str, depends_on_task_id: str) -> Optional[DependencyEdge]:
        with self.read():
            slot = self._slots.get(task_id)
            dep_slot = self._slots.get(depends_on_task_id)
            if slot is None or dep_slot is None:
                return None
            edge_id = self._depends_on[slot].get(dep_slot)
            return self._edges[edge_id] if edge_id is not None else None

    def has_edge(self, task_id: str, depends_on_task_id: str) -> bool:
        return self.find_edge(task_id, depends_on_task_id) is not None

    def get_edge(self, edge_id: str) -> Optional[DependencyEdge]:
        with self.read():
            return self._edges.get(edge_id)

    def edges(self) -> list[DependencyEdge]:
        with self.read():
            return list(self._edges.values())

    def edges_for(self, task_id: str) -> list[DependencyEdge]:
        """Edges where *task_id* is the dependent."""
        with self.read():
            slot = self._slots.get(task_id)
            if slot is None:
                return []
            return [self._edges[eid] for eid in self._depends_on[slot].values()]

    def adjacency(self) -> dict[str, list[str]]:
        """``{task_id: [depends_on ids]}`` for every known node."""
        with self.read():
            return {
                tid: [self._ids[s] for s in self._depends_on[slot]]  # type: ignore[misc]
                for tid, slot in self._slots.items()
            }

    def add_edge(
        self,
        task_id: str,
        depends_on_task_id: str,
        *,
        edge_id: Optional[str] = None,
        created_at: Optional[str] = None,
    ) -> DependencyEdge:
        """Insert ``task_id -> depends_on_task_id``.

        Raises :class:`DuplicateEdge` if the ordered pair already exists.
        Acyclicity is the caller's job (see :class:`CycleGuard`).
        """
        with self.write():
            existing = self.find_edge(task_id, depends_on_task_id)
            if existing is not None:
                raise DuplicateEdge(task_id, depends_on_task_id, existing.id)
            kwargs = {}
            if edge_id:
                if edge_id in self._edges:
                    raise DuplicateEdge(task_id, depends_on_task_id, edge_id)
                kwargs["id"] = edge_id
            if created_at:
                kwargs["created_at"] = created_at
            edge = DependencyEdge(task_id=task_id, depends_on_task_id=depends_on_task_id, **kwargs)
            slot = self._slot(task_id)
            dep_slot = self._slot(depends_on_task_id)
            self._depends_on[slot][dep_slot] = edge.id
            self._dependents[dep_slot][slot] = edge.id
            self._edges[edge.id] = edge
            return edge

    def remove_edge(self, edge_id: str) -> DependencyEdge:
        """Remove an edge by id; raises :class:`NotFound` if it does not exist."""
        with self.write():
            if edge_id not in self._edges:
                raise NotFound("edge", edge_id)
            return self._remove_edge_locked(edge_id)

    def _remove_edge_locked(self, edge_id: str) -> DependencyEdge:
        edge = self._edges.pop(edge_id)
        slot = self._slots[edge.task_id]
        dep_slot = self._slots[edge.depends_on_task_id]
        self._depends_on[slot].pop(dep_slot, None)
        self._dependents[dep_slot].pop(slot, None)
        return edge

    def replace(self, edges: Iterable[DependencyEdge]) -> None:
        """Swap the whole edge set (used when reloading from persistence)."""
        with self.write():
            nodes = [tid for tid in self._ids if tid is not None]
            self._slots.clear()
            self._ids.clear()
            self._depends_on.clear()
            self._dependents.clear()
            self._edges.clear()
            for tid in nodes:
                self._slot(tid)
            for edge in edges:
                self.add_edge(edge.task_id, edge.depends_on_task_id, edge_id=edge.id, created_at=edge.created_at)

    def __len__(self) -> int:
        with self.read():
            return len(self._edges)
