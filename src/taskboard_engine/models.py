"""Task, dependency edge, and layout position models.

Tasks and edges are plain dataclasses that serialize to YAML/JSON-friendly
dicts.  Layout positions are derived view artifacts and are never persisted.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

from .constants import EDGE_ID_PREFIX, TASK_ID_PREFIX
from .utils import _generate_id, _now_iso


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Workflow status; doubles as the Kanban column id."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"

    @classmethod
    def values(cls) -> list[str]:
        return [s.value for s in cls]


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def sort_key(self) -> int:
        return {"critical": 0, "high": 1, "medium": 2, "low": 3}[self.value]


def _task_id() -> str:
    return _generate_id(TASK_ID_PREFIX)


def _edge_id() -> str:
    return _generate_id(EDGE_ID_PREFIX)


def _coerce_enum(enum_cls: type[Enum], raw: Any, default: Enum) -> Any:
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A work item owned by a project."""

    id: str = field(default_factory=_task_id)
    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    project_id: Optional[str] = None
    assignee_id: Optional[str] = None
    due_date: Optional[str] = None
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for YAML/JSON persistence."""
        data: dict[str, Any] = {}
        for k, v in asdict(self).items():
            data[k] = v.value if isinstance(v, Enum) else v
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize from a plain dict, coercing enums gracefully."""
        d = dict(data)
        return cls(
            id=str(d.get("id") or _task_id()),
            title=str(d.get("title") or ""),
            description=str(d.get("description") or ""),
            status=_coerce_enum(TaskStatus, d.get("status"), TaskStatus.TODO),
            priority=_coerce_enum(TaskPriority, d.get("priority"), TaskPriority.MEDIUM),
            project_id=d.get("project_id"),
            assignee_id=d.get("assignee_id"),
            due_date=d.get("due_date"),
            created_at=str(d.get("created_at") or _now_iso()),
            updated_at=str(d.get("updated_at") or _now_iso()),
        )

    def touch(self) -> None:
        """Bump ``updated_at`` to now."""
        self.updated_at = _now_iso()

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE


# ---------------------------------------------------------------------------
# Dependency edge
# ---------------------------------------------------------------------------

@dataclass
class DependencyEdge:
    """``task_id`` depends on ``depends_on_task_id`` (the prerequisite)."""

    task_id: str
    depends_on_task_id: str
    id: str = field(default_factory=_edge_id)
    created_at: str = field(default_factory=_now_iso)

    @property
    def pair(self) -> tuple[str, str]:
        return (self.task_id, self.depends_on_task_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "depends_on_task_id": self.depends_on_task_id,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DependencyEdge":
        return cls(
            task_id=str(data["task_id"]),
            depends_on_task_id=str(data["depends_on_task_id"]),
            id=str(data.get("id") or _edge_id()),
            created_at=str(data.get("created_at") or _now_iso()),
        )


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LayoutPosition:
    node_id: str
    rank: int
    order: int
    x: float
    y: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
