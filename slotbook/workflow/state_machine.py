"""
Finite state machine for the booking saga.

A booking is two writes the store cannot commit together: insert the
appointment, then claim the slot flag. Every booking walks an explicit
path through the states below, so a lost race or a storage failure after
the appointment write always ends in COMPENSATED (appointment cancelled)
or a recorded FAILED state rather than a half-finished booking.

Usage:
    sm = ReservationStateMachine()
    sm.transition(ReservationTrigger.INPUT_VALID)
    assert sm.current_state == ReservationState.VALIDATED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class ReservationState(str, Enum):
    """All possible states of one booking attempt."""
    STARTED = "started"
    VALIDATED = "validated"
    APPOINTMENT_CREATED = "appointment_created"
    SLOT_CLAIMED = "slot_claimed"
    RESERVED = "reserved"
    STALE = "stale"
    COMPENSATING = "compensating"
    COMPENSATED = "compensated"
    FAILED = "failed"


class ReservationTrigger(str, Enum):
    """Events that cause state transitions."""
    INPUT_VALID = "input_valid"
    INPUT_INVALID = "input_invalid"
    APPOINTMENT_WRITTEN = "appointment_written"
    APPOINTMENT_REJECTED = "appointment_rejected"
    SLOT_FLIPPED = "slot_flipped"
    SLOT_MISSING = "slot_missing"
    STALE_REJECTED = "stale_rejected"
    CLAIM_LOST = "claim_lost"
    CLAIM_ERROR = "claim_error"
    FINALIZED = "finalized"
    COMPENSATION_DONE = "compensation_done"
    COMPENSATION_FAILED = "compensation_failed"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: ReservationState
    to_state: ReservationState
    trigger: ReservationTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: ReservationState
    entered_at: datetime
    trigger: Optional[ReservationTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


class ReservationStateMachine:
    """
    Deterministic state machine for one booking attempt.

    Every transition must be explicitly defined. Reservation code that
    tries to skip a step is rejected with the list of allowed triggers.
    """

    TRANSITIONS: list[Transition] = [
        # --- Input ---
        Transition(ReservationState.STARTED, ReservationState.VALIDATED,
                   ReservationTrigger.INPUT_VALID),
        Transition(ReservationState.STARTED, ReservationState.FAILED,
                   ReservationTrigger.INPUT_INVALID),

        # --- Appointment write ---
        Transition(ReservationState.VALIDATED, ReservationState.APPOINTMENT_CREATED,
                   ReservationTrigger.APPOINTMENT_WRITTEN),
        Transition(ReservationState.VALIDATED, ReservationState.FAILED,
                   ReservationTrigger.APPOINTMENT_REJECTED),

        # --- Slot claim ---
        Transition(ReservationState.APPOINTMENT_CREATED, ReservationState.SLOT_CLAIMED,
                   ReservationTrigger.SLOT_FLIPPED),
        Transition(ReservationState.APPOINTMENT_CREATED, ReservationState.STALE,
                   ReservationTrigger.SLOT_MISSING),
        Transition(ReservationState.APPOINTMENT_CREATED, ReservationState.COMPENSATING,
                   ReservationTrigger.STALE_REJECTED),
        Transition(ReservationState.APPOINTMENT_CREATED, ReservationState.COMPENSATING,
                   ReservationTrigger.CLAIM_LOST),
        Transition(ReservationState.APPOINTMENT_CREATED, ReservationState.COMPENSATING,
                   ReservationTrigger.CLAIM_ERROR),

        # --- Completion ---
        Transition(ReservationState.SLOT_CLAIMED, ReservationState.RESERVED,
                   ReservationTrigger.FINALIZED),

        # --- Compensation ---
        Transition(ReservationState.COMPENSATING, ReservationState.COMPENSATED,
                   ReservationTrigger.COMPENSATION_DONE),
        Transition(ReservationState.COMPENSATING, ReservationState.FAILED,
                   ReservationTrigger.COMPENSATION_FAILED),
    ]

    def __init__(self) -> None:
        self._current_state = ReservationState.STARTED
        self._history: list[StateEntry] = [
            StateEntry(state=ReservationState.STARTED, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> ReservationState:
        return self._current_state

    def transition(self, trigger: ReservationTrigger) -> ReservationState:
        """
        Execute a state transition.

        Args:
            trigger: The event triggering the transition.

        Returns:
            The new reservation state.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state

                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))

                logger.debug(
                    "Reservation transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[ReservationTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        """Return the full state transition history."""
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        """A state is terminal when no transition leaves it."""
        return not self.get_valid_triggers()
