from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from .authorization import AuthorizationGate
from .collaborators import TicketStore
from .errors import InvalidTransitionError, UnauthorizedError
from .models import Actor, AssignmentOutcome, TransitionOutcome
from .side_effects import SideEffectDispatcher
from .state import TicketState, TicketStateMachine

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_state(value: TicketState | str) -> TicketState:
    try:
        return TicketState(value)
    except ValueError as exc:
        raise InvalidTransitionError(f"Unknown ticket state: {value!r}", details={"target_state": str(value)}) from exc


class TransitionExecutor:
    """Apply one state change: validate, authorize, persist, then fan out side effects."""

    def __init__(
        self,
        tickets: TicketStore,
        dispatcher: SideEffectDispatcher,
        *,
        state_machine: TicketStateMachine | None = None,
        gate: AuthorizationGate | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._tickets = tickets
        self._dispatcher = dispatcher
        self._state_machine = state_machine or TicketStateMachine()
        self._gate = gate or AuthorizationGate()
        self._clock = clock

    async def execute(self, ticket_id: str, target_state: TicketState | str, actor: Actor) -> TransitionOutcome:
        if not self._gate.may_ever_transition(actor):
            raise UnauthorizedError(
                f"Actor {actor.id} is not allowed to change ticket states",
                details={"ticket_id": ticket_id, "actor_id": actor.id, "role": actor.role.value},
            )
        target = _coerce_state(target_state)

        ticket = await self._tickets.get(ticket_id)
        current = ticket.state
        if not self._state_machine.is_valid_transition(current, target):
            raise InvalidTransitionError(
                f"Cannot transition ticket {ticket.number} from {current.value} to {target.value}",
                details={"ticket_id": ticket_id, "from_state": current.value, "to_state": target.value},
            )
        if not self._gate.can_transition(actor, ticket):
            raise UnauthorizedError(
                f"Actor {actor.id} may not change the state of ticket {ticket.number}",
                details={"ticket_id": ticket_id, "actor_id": actor.id, "role": actor.role.value},
            )

        partial: dict[str, Any] = {"state": target}
        if target is TicketState.CLOSED:
            partial["closed_at"] = self._clock()

        updated = await self._tickets.update(ticket_id, partial)
        logger.info(
            "Ticket %s moved from %s to %s by %s", updated.number, current.value, target.value, actor.id
        )

        await self._dispatcher.state_changed(updated, old_state=current, actor=actor)
        return TransitionOutcome(ticket=updated, old_state=current)


class AssignmentExecutor:
    """Set or clear the technician of one ticket; never touches its state."""

    def __init__(
        self,
        tickets: TicketStore,
        dispatcher: SideEffectDispatcher,
        *,
        gate: AuthorizationGate | None = None,
    ) -> None:
        self._tickets = tickets
        self._dispatcher = dispatcher
        self._gate = gate or AuthorizationGate()

    async def execute(self, ticket_id: str, technician_id: str | None, actor: Actor) -> AssignmentOutcome:
        if not self._gate.can_assign(actor):
            raise UnauthorizedError(
                f"Actor {actor.id} is not allowed to assign tickets",
                details={"ticket_id": ticket_id, "actor_id": actor.id, "role": actor.role.value},
            )

        ticket = await self._tickets.get(ticket_id)
        previous = ticket.technician_id
        updated = await self._tickets.update(ticket_id, {"technician_id": technician_id})
        if technician_id is None:
            logger.info("Ticket %s unassigned by %s", updated.number, actor.id)
        else:
            logger.info("Ticket %s assigned to %s by %s", updated.number, technician_id, actor.id)

        await self._dispatcher.assigned(updated, actor=actor)
        return AssignmentOutcome(ticket=updated, previous_technician_id=previous)
