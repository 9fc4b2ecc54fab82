"""Project-level facade over the dependency graph.

Every edit runs guard, persistence and store mutation as one step under the
engine's ``asyncio.Lock``, so two concurrent insertions can never both pass
the cycle check against the same stale graph.
"""

from __future__ import annotations

import asyncio
from typing import Container, Optional, Sequence

from loguru import logger

from .config import EngineConfig
from .errors import DependencyError, NotFound
from .events import EventLog
from .graph.guard import CycleGuard
from .graph.layout import LayoutEngine
from .graph.store import GraphStore
from .models import DependencyEdge, LayoutPosition
from .notifications import NotificationCenter
from .persistence.interfaces import PersistenceCollaborator, guarded_call


class DependencyEngine:
    """Owns one project's graph store, cycle guard and layout engine.

    Parameters
    ----------
    project_id:
        Project whose edges are managed.
    persistence:
        Durable collaborator; edge writes go through it before the store.
    config:
        Layout spacing and persistence timeout.
    tasks:
        Optional registry of known task ids.  When given, edits naming an
        unknown task raise :class:`NotFound`.
    """

    def __init__(
        self,
        project_id: str,
        persistence: PersistenceCollaborator,
        config: Optional[EngineConfig] = None,
        *,
        store: Optional[GraphStore] = None,
        guard: Optional[CycleGuard] = None,
        layout_engine: Optional[LayoutEngine] = None,
        tasks: Optional[Container[str]] = None,
        events: Optional[EventLog] = None,
        notifications: Optional[NotificationCenter] = None,
    ) -> None:
        self.project_id = project_id
        self.persistence = persistence
        self.config = config or EngineConfig()
        self.store = store if store is not None else GraphStore(project_id)
        self.guard = guard or CycleGuard()
        self.layout_engine = layout_engine or LayoutEngine(
            node_spacing=self.config.node_spacing,
            rank_spacing=self.config.rank_spacing,
            sweep_passes=self.config.sweep_passes,
            cache_size=self.config.layout_cache_size,
        )
        self.tasks = tasks
        self.events = events or EventLog(enabled=False)
        self.notifications = notifications or NotificationCenter()
        self._edit_lock = asyncio.Lock()

    @property
    def timeout(self) -> float:
        return self.config.persistence_timeout

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """Replace the in-memory edges with the collaborator's; returns the edge count."""
        async with self._edit_lock:
            edges = await guarded_call(
                "load_edges", self.persistence.load_edges(self.project_id), self.timeout
            )
            self.store.replace(edges)
            self.layout_engine.clear_cache()
        logger.debug("Loaded {} edge(s) for project {}", len(edges), self.project_id)
        return len(edges)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def _require_task(self, task_id: str) -> None:
        if self.tasks is not None and task_id not in self.tasks:
            raise NotFound("task", task_id)

    async def add_dependency(self, task_id: str, depends_on_task_id: str) -> DependencyEdge:
        """Record that *task_id* depends on *depends_on_task_id*.

        Raises ``SelfDependency``, ``DuplicateEdge`` or ``CyclicDependency``
        when rejected, ``NotFound`` for an unknown task, and
        ``PersistenceFailure`` when the collaborator fails (the store is then
        left untouched).
        """
        async with self._edit_lock:
            if task_id != depends_on_task_id:
                self._require_task(task_id)
                self._require_task(depends_on_task_id)
            try:
                self.guard.check(self.store, task_id, depends_on_task_id)
            except DependencyError as exc:
                logger.warning("Rejected dependency {} -> {}: {}", task_id, depends_on_task_id, exc)
                self.notifications.notify_dependency_rejected(
                    task_id, str(exc), project_id=self.project_id
                )
                raise

            candidate = DependencyEdge(task_id=task_id, depends_on_task_id=depends_on_task_id)
            edge_id = await guarded_call(
                "save_edge", self.persistence.save_edge(self.project_id, candidate), self.timeout
            )
            edge = self.store.add_edge(
                task_id,
                depends_on_task_id,
                edge_id=edge_id or candidate.id,
                created_at=candidate.created_at,
            )

        logger.info("Added dependency {} ({} -> {})", edge.id, task_id, depends_on_task_id)
        self.events.emit(
            "dependency.added",
            self.project_id,
            task_id,
            field="depends_on",
            old=None,
            new=depends_on_task_id,
            edge_id=edge.id,
        )
        return edge

    async def remove_dependency(self, edge_id: str) -> DependencyEdge:
        async with self._edit_lock:
            edge = self.store.get_edge(edge_id)
            if edge is None:
                raise NotFound("edge", edge_id)
            await guarded_call(
                "delete_edge", self.persistence.delete_edge(self.project_id, edge_id), self.timeout
            )
            self.store.remove_edge(edge_id)

        logger.info("Removed dependency {} ({} -> {})", edge_id, edge.task_id, edge.depends_on_task_id)
        self.events.emit(
            "dependency.removed",
            self.project_id,
            edge.task_id,
            field="depends_on",
            old=edge.depends_on_task_id,
            new=None,
            edge_id=edge_id,
        )
        return edge

    async def remove_task(self, task_id: str) -> list[DependencyEdge]:
        """Delete every edge touching *task_id*, then drop the node.

        Each edge is deleted through the collaborator first; a failure stops
        the cascade with the remaining edges still in place.
        """
        async with self._edit_lock:
            touching = [
                e for e in self.store.edges()
                if task_id in (e.task_id, e.depends_on_task_id)
            ]
            for edge in touching:
                await guarded_call(
                    "delete_edge", self.persistence.delete_edge(self.project_id, edge.id), self.timeout
                )
                self.store.remove_edge(edge.id)
            self.store.remove_node(task_id)

        for edge in touching:
            self.events.emit(
                "dependency.removed",
                self.project_id,
                edge.task_id,
                field="depends_on",
                old=edge.depends_on_task_id,
                new=None,
                edge_id=edge.id,
                cascade=task_id,
            )
        if touching:
            logger.info("Removed task {} and {} dependent edge(s)", task_id, len(touching))
        return touching

    def register_task(self, task_id: str) -> None:
        """Make *task_id* part of the default layout even without edges."""
        self.store.add_node(task_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def dependencies_of(self, task_id: str) -> list[str]:
        return self.store.outgoing_dependencies(task_id)

    def dependents_of(self, task_id: str) -> list[str]:
        return self.store.dependents(task_id)

    def edges(self, task_id: Optional[str] = None) -> list[DependencyEdge]:
        """All edges, or only those where *task_id* is the dependent."""
        if task_id is None:
            return self.store.edges()
        return self.store.edges_for(task_id)

    def graph(self) -> dict[str, list[str]]:
        return self.store.adjacency()

    def layout(self, nodes: Optional[Sequence[str]] = None) -> list[LayoutPosition]:
        """Positions for *nodes* (default: every registered node)."""
        with self.store.read():
            node_ids = list(nodes) if nodes is not None else self.store.nodes()
            edges = self.store.edges()
        return self.layout_engine.layout(node_ids, edges)
