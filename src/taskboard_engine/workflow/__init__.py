from .board import BoardState
from .coordinator import PendingTransition, TransitionCoordinator, TransitionOutcome, TransitionPhase
from .state_machine import WorkflowStateMachine

__all__ = [
    "BoardState",
    "PendingTransition",
    "TransitionCoordinator",
    "TransitionOutcome",
    "TransitionPhase",
    "WorkflowStateMachine",
]
