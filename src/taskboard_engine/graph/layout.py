"""Layered (rank-based) layout of the dependency graph.

Ranks follow the longest path from any source in the prerequisite ->
dependent direction, so prerequisites always sit on a lower rank than the
tasks that depend on them.  Within a rank, nodes are ordered by a bounded
number of barycenter sweeps; ties fall back to the previous position and then
to input order, which keeps the whole computation deterministic.
"""

from __future__ import annotations

from collections import OrderedDict, deque
from typing import Iterable, Sequence, Union

from loguru import logger

from ..constants import (
    DEFAULT_LAYOUT_CACHE_SIZE,
    DEFAULT_NODE_SPACING,
    DEFAULT_RANK_SPACING,
    DEFAULT_SWEEP_PASSES,
)
from ..errors import LayoutCycleDetected
from ..models import DependencyEdge, LayoutPosition

EdgeLike = Union[DependencyEdge, tuple[str, str]]


def _pair(edge: EdgeLike) -> tuple[str, str]:
    if isinstance(edge, DependencyEdge):
        return edge.pair
    task_id, depends_on = edge
    return str(task_id), str(depends_on)


class LayoutEngine:
    """Compute ``LayoutPosition`` values for a node list and edge list."""

    def __init__(
        self,
        *,
        node_spacing: float = DEFAULT_NODE_SPACING,
        rank_spacing: float = DEFAULT_RANK_SPACING,
        sweep_passes: int = DEFAULT_SWEEP_PASSES,
        cache_size: int = DEFAULT_LAYOUT_CACHE_SIZE,
    ) -> None:
        self.node_spacing = node_spacing
        self.rank_spacing = rank_spacing
        self.sweep_passes = max(0, int(sweep_passes))
        self.cache_size = max(0, int(cache_size))
        self._cache: OrderedDict[tuple, list[LayoutPosition]] = OrderedDict()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def layout(self, nodes: Sequence[str], edges: Iterable[EdgeLike]) -> list[LayoutPosition]:
        """Return one position per distinct node, in input order.

        Raises :class:`LayoutCycleDetected` if the edges contain a cycle.
        """
        order, succ, pred = self._build(nodes, edges)
        key = (tuple(order), tuple(sorted((order[a], order[b]) for a in succ for b in succ[a])))
        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            logger.debug("Layout cache hit for {} node(s)", len(order))
            return list(cached)

        rank = self._rank(order, succ, pred)
        layers = self._layers(order, rank)
        pos = self._sweep(layers, succ, pred)

        result = [
            LayoutPosition(
                node_id=node_id,
                rank=rank[i],
                order=pos[i],
                x=pos[i] * self.node_spacing,
                y=rank[i] * self.rank_spacing,
            )
            for i, node_id in enumerate(order)
        ]
        if self.cache_size:
            self._cache[key] = result
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
        return list(result)

    def ranks(self, nodes: Sequence[str], edges: Iterable[EdgeLike]) -> dict[str, int]:
        order, succ, pred = self._build(nodes, edges)
        rank = self._rank(order, succ, pred)
        return {node_id: rank[i] for i, node_id in enumerate(order)}

    def clear_cache(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    @staticmethod
    def _build(
        nodes: Sequence[str], edges: Iterable[EdgeLike]
    ) -> tuple[list[str], dict[int, list[int]], dict[int, list[int]]]:
        order: list[str] = []
        index: dict[str, int] = {}
        for node_id in nodes:
            if node_id not in index:
                index[node_id] = len(order)
                order.append(node_id)

        succ: dict[int, list[int]] = {i: [] for i in range(len(order))}
        pred: dict[int, list[int]] = {i: [] for i in range(len(order))}
        seen: set[tuple[int, int]] = set()
        for edge in edges:
            task_id, depends_on = _pair(edge)
            if task_id not in index or depends_on not in index:
                logger.debug("Layout ignoring edge {} -> {} with unknown endpoint", task_id, depends_on)
                continue
            # prerequisite -> dependent
            link = (index[depends_on], index[task_id])
            if link in seen:
                continue
            seen.add(link)
            succ[link[0]].append(link[1])
            pred[link[1]].append(link[0])
        return order, succ, pred

    @staticmethod
    def _rank(order: list[str], succ: dict[int, list[int]], pred: dict[int, list[int]]) -> list[int]:
        """Longest-path ranking via Kahn's algorithm.

        Each node is dequeued at most once, so the loop is bounded by the
        node count; anything left with in-degree > 0 sits on a cycle.
        """
        n = len(order)
        in_degree = [len(pred[i]) for i in range(n)]
        rank = [0] * n
        queue: deque[int] = deque(i for i in range(n) if in_degree[i] == 0)
        processed = 0
        while queue and processed < n:
            u = queue.popleft()
            processed += 1
            for v in succ[u]:
                if rank[u] + 1 > rank[v]:
                    rank[v] = rank[u] + 1
                in_degree[v] -= 1
                if in_degree[v] == 0:
                    queue.append(v)

        if processed < n:
            stuck = [order[i] for i in range(n) if in_degree[i] > 0]
            logger.error("Dependency cycle reached the layout engine: {}", stuck)
            raise LayoutCycleDetected(stuck)
        return rank

    @staticmethod
    def _layers(order: list[str], rank: list[int]) -> list[list[int]]:
        if not order:
            return []
        layers: list[list[int]] = [[] for _ in range(max(rank) + 1)]
        for i in range(len(order)):
            layers[rank[i]].append(i)
        return layers

    def _sweep(
        self,
        layers: list[list[int]],
        succ: dict[int, list[int]],
        pred: dict[int, list[int]],
    ) -> dict[int, int]:
        pos: dict[int, int] = {}
        for layer in layers:
            for p, i in enumerate(layer):
                pos[i] = p

        for sweep in range(self.sweep_passes):
            downward = sweep % 2 == 0
            layer_range = range(1, len(layers)) if downward else range(len(layers) - 2, -1, -1)
            neighbours = pred if downward else succ
            for r in layer_range:
                layer = layers[r]

                def sort_key(i: int) -> tuple[float, int, int]:
                    adj = neighbours[i]
                    if adj:
                        bary = sum(pos[j] for j in adj) / len(adj)
                    else:
                        bary = float(pos[i])
                    return (bary, pos[i], i)

                layer.sort(key=sort_key)
                for p, i in enumerate(layer):
                    pos[i] = p
        return pos
