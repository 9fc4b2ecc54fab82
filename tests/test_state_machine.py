"""Tests for the workflow status state machine."""

from __future__ import annotations

import pytest

from taskboard_engine.errors import InvalidStatus
from taskboard_engine.models import TaskStatus
from taskboard_engine.workflow.state_machine import WorkflowStateMachine


@pytest.fixture
def machine() -> WorkflowStateMachine:
    return WorkflowStateMachine()


class TestTransitions:
    @pytest.mark.parametrize("current", list(TaskStatus))
    @pytest.mark.parametrize("requested", list(TaskStatus))
    def test_every_pair_is_allowed(
        self, machine: WorkflowStateMachine, current: TaskStatus, requested: TaskStatus
    ) -> None:
        assert machine.apply_transition(current, requested) == requested

    def test_done_back_to_todo(self, machine: WorkflowStateMachine) -> None:
        assert machine.apply_transition("done", "todo") is TaskStatus.TODO

    def test_accepts_string_values(self, machine: WorkflowStateMachine) -> None:
        assert machine.apply_transition("todo", "in_progress") is TaskStatus.IN_PROGRESS

    @pytest.mark.parametrize("bad", ["archived", "DONE", "", None, 3])
    def test_rejects_unknown_status(self, machine: WorkflowStateMachine, bad: object) -> None:
        with pytest.raises(InvalidStatus) as exc_info:
            machine.apply_transition(TaskStatus.TODO, bad)
        assert exc_info.value.details["valid"] == TaskStatus.values()

    def test_invalid_status_is_value_error(self, machine: WorkflowStateMachine) -> None:
        with pytest.raises(ValueError):
            machine.apply_transition("todo", "blocked")

    def test_rejects_corrupt_current(self, machine: WorkflowStateMachine) -> None:
        with pytest.raises(InvalidStatus):
            machine.apply_transition("bogus", "done")


class TestMetadata:
    def test_initial_status(self, machine: WorkflowStateMachine) -> None:
        assert machine.initial_status() is TaskStatus.TODO
        assert machine.initial_status("review") is TaskStatus.REVIEW
        with pytest.raises(InvalidStatus):
            machine.initial_status("nope")

    def test_allowed_targets_exclude_self(self, machine: WorkflowStateMachine) -> None:
        targets = machine.allowed_targets(TaskStatus.REVIEW)
        assert TaskStatus.REVIEW not in targets
        assert set(targets) == {TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.DONE}

    def test_is_valid(self) -> None:
        assert WorkflowStateMachine.is_valid("in_progress")
        assert not WorkflowStateMachine.is_valid("in progress")

    def test_describe(self, machine: WorkflowStateMachine) -> None:
        described = machine.describe()
        assert described["states"] == ["todo", "in_progress", "review", "done"]
        assert described["initial"] == "todo"
        assert described["transitions"]["done"] == ["todo", "in_progress", "review"]
        assert described["guards"] == {}

    def test_describe_with_dependency_guard(self, machine: WorkflowStateMachine) -> None:
        described = machine.describe(require_dependencies_done=True)
        assert "done" in described["guards"]
