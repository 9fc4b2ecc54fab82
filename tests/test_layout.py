"""Tests for the layered layout engine."""

from __future__ import annotations

import random

import pytest

from taskboard_engine.errors import LayoutCycleDetected
from taskboard_engine.graph.layout import LayoutEngine
from taskboard_engine.models import DependencyEdge


@pytest.fixture
def engine() -> LayoutEngine:
    return LayoutEngine(node_spacing=100, rank_spacing=50)


class TestRanks:
    def test_chain(self, engine: LayoutEngine) -> None:
        ranks = engine.ranks(["A", "B", "C"], [("B", "A"), ("C", "B")])
        assert ranks == {"A": 0, "B": 1, "C": 2}

    def test_longest_path_wins(self, engine: LayoutEngine) -> None:
        # D depends on A directly and via B -> C
        edges = [("B", "A"), ("C", "B"), ("D", "C"), ("D", "A")]
        ranks = engine.ranks(["A", "B", "C", "D"], edges)
        assert ranks["D"] == 3

    def test_isolated_nodes_rank_zero(self, engine: LayoutEngine) -> None:
        ranks = engine.ranks(["x", "y", "z"], [])
        assert ranks == {"x": 0, "y": 0, "z": 0}

    def test_accepts_edge_objects(self, engine: LayoutEngine) -> None:
        edges = [DependencyEdge(task_id="B", depends_on_task_id="A")]
        assert engine.ranks(["A", "B"], edges) == {"A": 0, "B": 1}

    def test_unknown_endpoints_ignored(self, engine: LayoutEngine) -> None:
        ranks = engine.ranks(["A", "B"], [("B", "A"), ("C", "B")])
        assert ranks == {"A": 0, "B": 1}

    @pytest.mark.parametrize("seed", range(10))
    def test_prerequisite_ranks_below_dependent(self, engine: LayoutEngine, seed: int) -> None:
        rng = random.Random(seed)
        nodes = [f"n{i}" for i in range(10)]
        edges = [
            (nodes[i], nodes[j])
            for i in range(len(nodes))
            for j in range(i)
            if rng.random() < 0.25
        ]
        rng.shuffle(nodes)
        ranks = engine.ranks(nodes, edges)
        for task_id, depends_on in edges:
            assert ranks[depends_on] < ranks[task_id]
        assert max(ranks.values()) <= len(nodes) - 1


class TestLayout:
    def test_positions_follow_spacing(self, engine: LayoutEngine) -> None:
        positions = engine.layout(["A", "B", "C"], [("B", "A"), ("C", "B")])
        by_id = {p.node_id: p for p in positions}
        assert [p.node_id for p in positions] == ["A", "B", "C"]
        assert by_id["A"].rank == 0 and by_id["B"].rank == 1 and by_id["C"].rank == 2
        assert by_id["C"].y == 100
        assert all(p.order == 0 and p.x == 0 for p in positions)

    def test_orders_within_rank_are_distinct(self, engine: LayoutEngine) -> None:
        nodes = ["root", "a", "b", "c"]
        edges = [("a", "root"), ("b", "root"), ("c", "root")]
        positions = engine.layout(nodes, edges)
        layer = [p for p in positions if p.rank == 1]
        assert sorted(p.order for p in layer) == [0, 1, 2]
        assert sorted(p.x for p in layer) == [0, 100, 200]

    def test_duplicate_nodes_collapsed(self, engine: LayoutEngine) -> None:
        positions = engine.layout(["A", "A", "B"], [("B", "A")])
        assert [p.node_id for p in positions] == ["A", "B"]

    def test_empty(self, engine: LayoutEngine) -> None:
        assert engine.layout([], []) == []

    def test_idempotent(self, engine: LayoutEngine) -> None:
        nodes = ["a", "b", "c", "d", "e"]
        edges = [("c", "a"), ("d", "b"), ("e", "a"), ("e", "b")]
        first = engine.layout(nodes, edges)
        second = engine.layout(nodes, edges)
        assert first == second

    def test_deterministic_without_cache(self) -> None:
        nodes = ["a", "b", "c", "d", "e", "f"]
        edges = [("d", "a"), ("d", "c"), ("e", "b"), ("f", "a"), ("f", "b")]
        one = LayoutEngine(cache_size=0).layout(nodes, edges)
        two = LayoutEngine(cache_size=0).layout(nodes, edges)
        assert one == two

    def test_barycenter_reduces_crossings(self, engine: LayoutEngine) -> None:
        # x depends on b, y depends on a: sweeping should place y before x.
        nodes = ["a", "b", "x", "y"]
        positions = {p.node_id: p for p in engine.layout(nodes, [("x", "b"), ("y", "a")])}
        assert positions["y"].order < positions["x"].order

    def test_cache_returns_fresh_list(self, engine: LayoutEngine) -> None:
        first = engine.layout(["A", "B"], [("B", "A")])
        first.clear()
        assert len(engine.layout(["A", "B"], [("B", "A")])) == 2

    def test_cache_bounded(self) -> None:
        engine = LayoutEngine(cache_size=2)
        for i in range(5):
            engine.layout([f"n{i}"], [])
        assert len(engine._cache) == 2
        engine.clear_cache()
        assert len(engine._cache) == 0


class TestCycleDefect:
    def test_cycle_raises(self, engine: LayoutEngine) -> None:
        with pytest.raises(LayoutCycleDetected) as exc_info:
            engine.layout(["A", "B", "C"], [("A", "B"), ("B", "A"), ("C", "A")])
        assert set(exc_info.value.node_ids) == {"A", "B", "C"}
        assert exc_info.value.code == "layout_cycle_detected"

    def test_two_node_loop_in_larger_graph(self, engine: LayoutEngine) -> None:
        with pytest.raises(LayoutCycleDetected) as exc_info:
            engine.ranks(["ok", "p", "q"], [("p", "q"), ("q", "p")])
        assert "ok" not in exc_info.value.node_ids
