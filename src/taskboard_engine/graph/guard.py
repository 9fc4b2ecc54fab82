"""Admission check for new dependency edges.

The guard never mutates the store.  Callers run ``check`` and
``GraphStore.add_edge`` as one logical operation under the project's write
serialization (see :class:`taskboard_engine.engine.DependencyEngine`).
"""

from __future__ import annotations

from collections import deque

from loguru import logger

from ..errors import CyclicDependency, DuplicateEdge, SelfDependency
from .store import GraphStore


def path_exists(store: GraphStore, start: str, target: str) -> bool:
    """True if *target* is reachable from *start* following depends-on edges.

    Breadth-first with a seen-set: each node is expanded at most once, so
    the walk is O(V+E) even with heavily re-converging paths.
    """
    if start == target:
        return True
    seen: set[str] = {start}
    queue: deque[str] = deque([start])
    while queue:
        current = queue.popleft()
        for dep in store.outgoing_dependencies(current):
            if dep == target:
                return True
            if dep not in seen:
                seen.add(dep)
                queue.append(dep)
    return False


class CycleGuard:
    """Reject self-loops, duplicates, and edges that would close a cycle."""

    def check(self, store: GraphStore, task_id: str, depends_on_task_id: str) -> None:
        """Raise if ``task_id -> depends_on_task_id`` is not admissible.

        Order of checks: self-dependency, duplicate, cycle.  A cycle exists
        when *depends_on_task_id* already (transitively) depends on *task_id*.
        """
        if task_id == depends_on_task_id:
            raise SelfDependency(task_id)
        with store.read():
            existing = store.find_edge(task_id, depends_on_task_id)
            if existing is not None:
                raise DuplicateEdge(task_id, depends_on_task_id, existing.id)
            if path_exists(store, depends_on_task_id, task_id):
                logger.debug("Cycle guard: {} reaches {}", depends_on_task_id, task_id)
                raise CyclicDependency(task_id, depends_on_task_id)

    def admissible(self, store: GraphStore, task_id: str, depends_on_task_id: str) -> bool:
        try:
            self.check(store, task_id, depends_on_task_id)
        except (SelfDependency, DuplicateEdge, CyclicDependency):
            return False
        return True
