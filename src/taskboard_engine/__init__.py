"""Provide the public `taskboard_engine` package exports."""

from __future__ import annotations

from .config import EngineConfig
from .engine import DependencyEngine
from .graph import CycleGuard, GraphStore, LayoutEngine
from .models import DependencyEdge, LayoutPosition, Task, TaskPriority, TaskStatus
from .workflow import TransitionCoordinator, WorkflowStateMachine
from .workspace import ProjectWorkspace, WorkspaceRegistry

__all__ = [
    "CycleGuard",
    "DependencyEdge",
    "DependencyEngine",
    "EngineConfig",
    "GraphStore",
    "LayoutEngine",
    "LayoutPosition",
    "ProjectWorkspace",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "TransitionCoordinator",
    "WorkflowStateMachine",
    "WorkspaceRegistry",
]
