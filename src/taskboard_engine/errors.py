"""Error taxonomy for the dependency and workflow engine.

Every error carries a stable ``code`` (used by the HTTP adapter and by UI
messages) plus a ``details`` mapping with the ids involved.
"""

from __future__ import annotations

from typing import Any, Optional


class TaskboardError(Exception):
    """Base class for all engine errors."""

    code = "taskboard_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": dict(self.details)}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Dependency edits (caller-correctable)
# ---------------------------------------------------------------------------

class DependencyError(TaskboardError):
    code = "dependency_error"


class SelfDependency(DependencyError):
    code = "self_dependency"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} cannot depend on itself", task_id=task_id)


class DuplicateEdge(DependencyError):
    code = "duplicate_edge"

    def __init__(self, task_id: str, depends_on_task_id: str, edge_id: Optional[str] = None) -> None:
        super().__init__(
            f"Task {task_id} already depends on {depends_on_task_id}",
            task_id=task_id,
            depends_on_task_id=depends_on_task_id,
            edge_id=edge_id,
        )


class CyclicDependency(DependencyError):
    code = "cyclic_dependency"

    def __init__(self, task_id: str, depends_on_task_id: str) -> None:
        super().__init__(
            f"Adding dependency {task_id} -> {depends_on_task_id} would create a cycle "
            f"({depends_on_task_id} already depends on {task_id})",
            task_id=task_id,
            depends_on_task_id=depends_on_task_id,
        )


class NotFound(TaskboardError, KeyError):
    code = "not_found"

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind.capitalize()} {identifier} not found", kind=kind, id=identifier)
        self.kind = kind
        self.identifier = identifier

    # KeyError.__str__ would quote the message
    __str__ = TaskboardError.__str__


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

class InvalidStatus(TaskboardError, ValueError):
    code = "invalid_status"

    def __init__(self, status: Any, valid: Optional[list[str]] = None, message: Optional[str] = None) -> None:
        valid = valid or []
        super().__init__(
            message or f"Invalid status {status!r}. Valid statuses: {valid}",
            status=status if isinstance(status, str) else repr(status),
            valid=valid,
        )


class UnresolvedDependencies(InvalidStatus):
    code = "unresolved_dependencies"

    def __init__(self, task_id: str, status: str, blockers: list[str]) -> None:
        super().__init__(
            status,
            message=f"Cannot move {task_id} to {status}; unresolved prerequisites: {blockers}",
        )
        self.details.update(task_id=task_id, blockers=list(blockers))
        self.blockers = list(blockers)


class TransitionInProgress(TaskboardError):
    code = "transition_in_progress"

    def __init__(self, task_id: str) -> None:
        super().__init__(
            f"Task {task_id} already has a pending status transition",
            task_id=task_id,
        )


# ---------------------------------------------------------------------------
# Defects and collaborator faults
# ---------------------------------------------------------------------------

class LayoutCycleDetected(TaskboardError):
    """A cycle reached the layout engine, i.e. something bypassed the guard."""

    code = "layout_cycle_detected"

    def __init__(self, node_ids: list[str]) -> None:
        super().__init__(
            f"Dependency cycle detected during layout among tasks: {node_ids}",
            node_ids=list(node_ids),
        )
        self.node_ids = list(node_ids)


class PersistenceFailure(TaskboardError):
    code = "persistence_failure"

    def __init__(self, operation: str, reason: str, *, timed_out: bool = False, **details: Any) -> None:
        super().__init__(f"{operation} failed: {reason}", operation=operation, timed_out=timed_out, **details)
        self.operation = operation
        self.timed_out = timed_out
