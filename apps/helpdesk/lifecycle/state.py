from __future__ import annotations

from enum import Enum
from typing import Mapping


class TicketState(str, Enum):
    """Supported states for a ticket's lifecycle."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PENDING_APPROVAL = "pending_approval"
    CLOSED = "closed"


class TicketStateMachine:
    """Validate ticket lifecycle transitions."""

    _TRANSITIONS: Mapping[TicketState, tuple[TicketState, ...]] = {
        TicketState.OPEN: (TicketState.IN_PROGRESS,),
        TicketState.IN_PROGRESS: (TicketState.PENDING_APPROVAL, TicketState.OPEN),
        TicketState.PENDING_APPROVAL: (TicketState.CLOSED, TicketState.IN_PROGRESS),
        TicketState.CLOSED: (),
    }

    _LABELS: Mapping[TicketState, str] = {
        TicketState.OPEN: "Open",
        TicketState.IN_PROGRESS: "In Progress",
        TicketState.PENDING_APPROVAL: "Pending Approval",
        TicketState.CLOSED: "Closed",
    }

    _CLOSE_CONFIRMATION = (
        "Are you sure you want to close this ticket? "
        "This marks the ticket as resolved and it cannot be changed afterwards."
    )

    @classmethod
    def initial_state(cls) -> TicketState:
        return TicketState.OPEN

    @classmethod
    def valid_transitions(cls, state: TicketState | str) -> tuple[TicketState, ...]:
        return cls._TRANSITIONS.get(TicketState(state), ())

    @classmethod
    def is_valid_transition(cls, current: TicketState | str, target: TicketState | str) -> bool:
        return TicketState(target) in cls.valid_transitions(current)

    @classmethod
    def requires_confirmation(cls, target: TicketState | str) -> bool:
        """Closing is irreversible and visible to the client, so it is confirmed first."""

        return TicketState(target) is TicketState.CLOSED

    @classmethod
    def is_terminal(cls, state: TicketState | str) -> bool:
        return not cls.valid_transitions(state)

    @classmethod
    def label(cls, state: TicketState | str) -> str:
        return cls._LABELS[TicketState(state)]

    @classmethod
    def confirmation_message(cls, target: TicketState | str) -> str:
        if cls.requires_confirmation(target):
            return cls._CLOSE_CONFIRMATION
        return f'Confirm the state change to "{cls.label(target)}"?'
