"""Optimistic, reversible status transitions driven by drag-and-drop.

The visible status in :class:`BoardState` changes as soon as the user drags a
card; persistence catches up asynchronously.  If the collaborator fails or
times out, the card snaps back to where the drag started.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from loguru import logger

from ..constants import DEFAULT_PERSISTENCE_TIMEOUT_SECONDS
from ..errors import (
    InvalidStatus,
    NotFound,
    PersistenceFailure,
    TransitionInProgress,
    UnresolvedDependencies,
)
from ..events import EventLog
from ..graph.store import GraphStore
from ..models import TaskStatus
from ..notifications import NotificationCenter
from ..persistence.interfaces import PersistenceCollaborator, guarded_call
from .board import BoardState
from .state_machine import WorkflowStateMachine


class TransitionPhase(str, Enum):
    DRAGGING = "dragging"
    SPECULATIVE = "speculative"
    COMMITTED = "committed"
    REVERTED = "reverted"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (TransitionPhase.COMMITTED, TransitionPhase.REVERTED, TransitionPhase.CANCELLED)


@dataclass
class PendingTransition:
    task_id: str
    original_status: TaskStatus
    phase: TransitionPhase = TransitionPhase.DRAGGING
    speculative_status: Optional[TaskStatus] = None


@dataclass
class TransitionOutcome:
    """Result of a finished interaction."""

    task_id: str
    original_status: TaskStatus
    final_status: TaskStatus
    phase: TransitionPhase
    changed: bool = False
    persisted: bool = False
    error: Optional[PersistenceFailure] = None
    blockers: list[str] = field(default_factory=list)

    @property
    def reverted(self) -> bool:
        return self.phase == TransitionPhase.REVERTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "original_status": self.original_status.value,
            "final_status": self.final_status.value,
            "phase": self.phase.value,
            "changed": self.changed,
            "persisted": self.persisted,
            "error": self.error.to_dict() if self.error else None,
            "blockers": list(self.blockers),
        }


class TransitionCoordinator:
    """Drive drag-start / drag-over / drag-end / cancel for one project board.

    Parameters
    ----------
    board:
        Visible task state, mutated optimistically.
    persistence:
        Collaborator receiving ``save_task_status`` calls.
    store:
        Dependency graph, consulted for prerequisite context.
    state_machine:
        Validates requested statuses; a default instance is used if omitted.
    timeout:
        Default bound, in seconds, on each persistence call.
    require_dependencies_done:
        When set, moving a task to ``done`` is rejected while any
        prerequisite is not done.
    """

    def __init__(
        self,
        board: BoardState,
        persistence: PersistenceCollaborator,
        store: Optional[GraphStore] = None,
        *,
        state_machine: Optional[WorkflowStateMachine] = None,
        timeout: float = DEFAULT_PERSISTENCE_TIMEOUT_SECONDS,
        require_dependencies_done: bool = False,
        notifications: Optional[NotificationCenter] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        self.board = board
        self.persistence = persistence
        self.store = store if store is not None else GraphStore(board.project_id)
        self.state_machine = state_machine or WorkflowStateMachine()
        self.timeout = timeout
        self.require_dependencies_done = require_dependencies_done
        self.notifications = notifications or NotificationCenter()
        self.events = events or EventLog(enabled=False)
        self._pending: dict[str, PendingTransition] = {}
        self._lock = threading.Lock()

    @property
    def project_id(self) -> str:
        return self.board.project_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def pending(self, task_id: str) -> Optional[PendingTransition]:
        return self._pending.get(task_id)

    def is_pending(self, task_id: str) -> bool:
        return task_id in self._pending

    def dependency_context(self, task_id: str) -> dict[str, list[str]]:
        """Prerequisites of *task_id* and the subset not yet done."""
        prerequisites = self.store.outgoing_dependencies(task_id)
        blockers = []
        for dep_id in prerequisites:
            dep = self.board.get(dep_id)
            if dep is None or not dep.is_done:
                blockers.append(dep_id)
        return {"dependencies": prerequisites, "blockers": blockers}

    def resolve_target(self, target_id: Optional[str]) -> Optional[TaskStatus]:
        """Map a drop target to a status.

        A column id (a status value) wins; otherwise a task id adopts that
        task's current visible status.  Anything else resolves to ``None``.
        """
        if target_id is None:
            return None
        if WorkflowStateMachine.is_valid(target_id):
            return WorkflowStateMachine.coerce(target_id)
        task = self.board.get(target_id)
        if task is not None:
            return task.status
        return None

    # ------------------------------------------------------------------
    # Interaction events
    # ------------------------------------------------------------------

    def drag_start(self, task_id: str) -> PendingTransition:
        with self._lock:
            task = self.board.require(task_id)
            if task_id in self._pending:
                raise TransitionInProgress(task_id)
            pending = PendingTransition(task_id=task_id, original_status=task.status)
            self._pending[task_id] = pending
        logger.debug("Drag started for {} from {}", task_id, pending.original_status.value)
        return pending

    def drag_over(self, task_id: str, target_id: Optional[str]) -> Optional[TaskStatus]:
        """Speculatively move the card over *target_id*.

        Returns the status now shown, or ``None`` if the target did not
        resolve (the visible state is left as it was).
        """
        pending = self._require_pending(task_id)
        status = self.resolve_target(target_id)
        if status is None:
            return None
        self.board.set_status(task_id, status)
        pending.speculative_status = status
        pending.phase = TransitionPhase.SPECULATIVE
        return status

    def drag_cancel(self, task_id: str) -> TransitionOutcome:
        pending = self._require_pending(task_id)
        self.board.set_status(task_id, pending.original_status)
        return self._finish(pending, TransitionPhase.CANCELLED, pending.original_status)

    async def drag_end(
        self,
        task_id: str,
        target_id: Optional[str],
        *,
        timeout: Optional[float] = None,
    ) -> TransitionOutcome:
        """Resolve the drop and persist the new status.

        ``InvalidStatus`` (including ``UnresolvedDependencies``) propagates
        after reverting.  Persistence failures never propagate: the outcome
        carries the error and the phase is ``reverted``.
        """
        pending = self._require_pending(task_id)
        original = pending.original_status
        target = self.resolve_target(target_id)

        if target is None:
            self.board.set_status(task_id, original)
            return self._finish(pending, TransitionPhase.CANCELLED, original)

        if target == original:
            self.board.set_status(task_id, original)
            return self._finish(pending, TransitionPhase.COMMITTED, original)

        try:
            new_status = self.state_machine.apply_transition(original, target)
            blockers = self.dependency_context(task_id)["blockers"]
            if self.require_dependencies_done and new_status == TaskStatus.DONE and blockers:
                raise UnresolvedDependencies(task_id, new_status.value, blockers)
        except InvalidStatus:
            self.board.set_status(task_id, original)
            self._finish(pending, TransitionPhase.REVERTED, original)
            raise

        self.board.set_status(task_id, new_status)
        pending.speculative_status = new_status
        pending.phase = TransitionPhase.SPECULATIVE

        try:
            await guarded_call(
                "save_task_status",
                self.persistence.save_task_status(self.project_id, task_id, new_status),
                self.timeout if timeout is None else timeout,
            )
        except PersistenceFailure as exc:
            return self._revert(pending, exc, blockers)
        except asyncio.CancelledError:
            self.board.set_status(task_id, original)
            self._finish(pending, TransitionPhase.REVERTED, original)
            logger.warning("Transition of {} cancelled while persisting; reverted", task_id)
            raise

        task = self.board.get(task_id)
        if task is not None:
            task.touch()
        logger.info("Task {} moved {} -> {}", task_id, original.value, new_status.value)
        self.events.emit(
            "task.status_changed",
            self.project_id,
            task_id,
            field="status",
            old=original.value,
            new=new_status.value,
        )
        outcome = self._finish(pending, TransitionPhase.COMMITTED, new_status)
        outcome.persisted = True
        outcome.blockers = blockers
        return outcome

    async def transition(
        self,
        task_id: str,
        status: Any,
        timeout: Optional[float] = None,
    ) -> TransitionOutcome:
        """Non-drag status change: validate, start and drop in one call."""
        requested = self.state_machine.coerce(status)
        self.drag_start(task_id)
        return await self.drag_end(task_id, requested.value, timeout=timeout)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_pending(self, task_id: str) -> PendingTransition:
        pending = self._pending.get(task_id)
        if pending is None:
            if task_id not in self.board:
                raise NotFound("task", task_id)
            raise NotFound("transition", task_id)
        return pending

    def _finish(
        self,
        pending: PendingTransition,
        phase: TransitionPhase,
        final_status: TaskStatus,
    ) -> TransitionOutcome:
        pending.phase = phase
        with self._lock:
            self._pending.pop(pending.task_id, None)
        return TransitionOutcome(
            task_id=pending.task_id,
            original_status=pending.original_status,
            final_status=final_status,
            phase=phase,
            changed=final_status != pending.original_status,
        )

    def _revert(
        self,
        pending: PendingTransition,
        error: PersistenceFailure,
        blockers: list[str],
    ) -> TransitionOutcome:
        task_id = pending.task_id
        original = pending.original_status
        target = pending.speculative_status or original
        self.board.set_status(task_id, original)
        self.notifications.notify_transition_failed(
            task_id, target.value, str(error), project_id=self.project_id
        )
        self.events.emit(
            "task.transition_reverted",
            self.project_id,
            task_id,
            field="status",
            old=original.value,
            new=target.value,
            error=error.code,
            timed_out=error.timed_out,
        )
        outcome = self._finish(pending, TransitionPhase.REVERTED, original)
        outcome.error = error
        outcome.blockers = blockers
        return outcome
