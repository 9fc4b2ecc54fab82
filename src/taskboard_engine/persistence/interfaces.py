from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Optional, TypeVar

from ..errors import PersistenceFailure
from ..models import DependencyEdge, Task, TaskStatus

T = TypeVar("T")


class PersistenceCollaborator(ABC):
    """Durable store the engine writes through.

    Every method may be slow or fail; the engine bounds calls with a timeout
    and wraps any exception in :class:`~taskboard_engine.errors.PersistenceFailure`.
    """

    @abstractmethod
    async def load_tasks(self, project_id: str) -> list[Task]:
        raise NotImplementedError

    @abstractmethod
    async def load_edges(self, project_id: str) -> list[DependencyEdge]:
        raise NotImplementedError

    @abstractmethod
    async def save_edge(self, project_id: str, edge: DependencyEdge) -> str:
        """Persist *edge* and return its durable id."""
        raise NotImplementedError

    @abstractmethod
    async def delete_edge(self, project_id: str, edge_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def save_task_status(self, project_id: str, task_id: str, status: TaskStatus) -> None:
        raise NotImplementedError


async def guarded_call(operation: str, awaitable: Awaitable[T], timeout: Optional[float]) -> T:
    """Await a collaborator call, bounding it by *timeout* seconds.

    Any exception or timeout is re-raised as :class:`PersistenceFailure`
    with the original error chained.
    """
    try:
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as exc:
        raise PersistenceFailure(operation, f"timed out after {timeout}s", timed_out=True) from exc
    except PersistenceFailure:
        raise
    except Exception as exc:
        raise PersistenceFailure(operation, f"{exc.__class__.__name__}: {exc}") from exc
