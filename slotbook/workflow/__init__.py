from slotbook.workflow.state_machine import (
    InvalidTransitionError,
    ReservationState,
    ReservationStateMachine,
    ReservationTrigger,
)

__all__ = [
    "ReservationStateMachine",
    "ReservationState",
    "ReservationTrigger",
    "InvalidTransitionError",
]
