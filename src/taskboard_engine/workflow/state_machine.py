"""Workflow status state machine.

Every status may move to every other status, including ``done`` back to
``todo``.  The only rejected input is a value outside :class:`TaskStatus`.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from ..errors import InvalidStatus
from ..models import TaskStatus

StatusLike = Union[TaskStatus, str]

_VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    status: {other for other in TaskStatus if other != status} for status in TaskStatus
}


class WorkflowStateMachine:
    initial = TaskStatus.TODO

    @staticmethod
    def coerce(value: Any) -> TaskStatus:
        """Return *value* as a :class:`TaskStatus` or raise :class:`InvalidStatus`."""
        if isinstance(value, TaskStatus):
            return value
        if isinstance(value, str):
            try:
                return TaskStatus(value)
            except ValueError:
                pass
        raise InvalidStatus(value, TaskStatus.values())

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        try:
            cls.coerce(value)
        except InvalidStatus:
            return False
        return True

    def initial_status(self, requested: Optional[StatusLike] = None) -> TaskStatus:
        if requested is None:
            return self.initial
        return self.coerce(requested)

    def apply_transition(self, current: StatusLike, requested: StatusLike) -> TaskStatus:
        """Return the new status for a ``current -> requested`` move.

        The current status is validated too, so a corrupted cache entry is
        reported instead of silently overwritten.
        """
        self.coerce(current)
        return self.coerce(requested)

    def allowed_targets(self, current: StatusLike) -> list[TaskStatus]:
        status = self.coerce(current)
        return [s for s in TaskStatus if s in _VALID_TRANSITIONS[status]]

    def describe(self, *, require_dependencies_done: bool = False) -> dict[str, Any]:
        guards: dict[str, str] = {}
        if require_dependencies_done:
            guards[TaskStatus.DONE.value] = "All prerequisites must be done before transition."
        return {
            "states": TaskStatus.values(),
            "transitions": {
                s.value: [t.value for t in self.allowed_targets(s)] for s in TaskStatus
            },
            "guards": guards,
            "initial": self.initial.value,
        }
