"""Dependency graph: edge store, cycle guard, and layered layout."""

from .guard import CycleGuard, path_exists
from .layout import LayoutEngine
from .store import GraphStore

__all__ = [
    "CycleGuard",
    "GraphStore",
    "LayoutEngine",
    "path_exists",
]
