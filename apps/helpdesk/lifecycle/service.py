from __future__ import annotations

import logging
from typing import Any, Awaitable, Sequence

from opentelemetry import trace

from apps.helpdesk.metrics import MetricsRegistry, register_default_metrics
from apps.helpdesk.metrics.definitions import (
    ASSIGNMENTS_TOTAL,
    OPERATION_DURATION_SECONDS,
    TRANSITIONS_TOTAL,
)

from .authorization import AuthorizationGate
from .bulk import BulkOperationCoordinator, TicketRef
from .collaborators import NotificationStore, TicketStore, TimelineStore
from .errors import LifecycleError, PersistenceError
from .executors import AssignmentExecutor, Clock, TransitionExecutor, utc_now
from .models import (
    Actor,
    BulkOperationResult,
    Notification,
    OperationResult,
    Ticket,
    TimelineEvent,
    TransitionTarget,
)
from .side_effects import SideEffectDispatcher
from .state import TicketState, TicketStateMachine

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def _ticket_id(ticket: TicketRef) -> str:
    return ticket.id if isinstance(ticket, Ticket) else str(ticket)


class TicketLifecycleService:
    """Operations exposed to callers: single and bulk transitions and assignments.

    Executors raise; this facade turns their errors into ``OperationResult``
    values so that callers (UI adapters, the optimistic cache) can surface
    failures inline without exception handling of their own.
    """

    def __init__(
        self,
        tickets: TicketStore,
        timeline: TimelineStore,
        notifications: NotificationStore,
        *,
        dispatcher: SideEffectDispatcher | None = None,
        state_machine: TicketStateMachine | None = None,
        gate: AuthorizationGate | None = None,
        metrics: MetricsRegistry | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._tickets = tickets
        self._timeline = timeline
        self._notifications = notifications
        self._metrics = register_default_metrics(metrics)
        self._state_machine = state_machine or TicketStateMachine()
        gate = gate or AuthorizationGate()
        self.dispatcher = dispatcher or SideEffectDispatcher(timeline, notifications, metrics=self._metrics)
        self.transitions = TransitionExecutor(
            tickets, self.dispatcher, state_machine=self._state_machine, gate=gate, clock=clock
        )
        self.assignments = AssignmentExecutor(tickets, self.dispatcher, gate=gate)
        self.bulk = BulkOperationCoordinator(metrics=self._metrics)

    async def get_ticket(self, ticket_id: str) -> Ticket:
        return await self._tickets.get(ticket_id)

    async def get_timeline(self, ticket_id: str) -> Sequence[TimelineEvent]:
        return await self._timeline.list_events(ticket_id)

    async def get_notifications(self, recipient_id: str) -> Sequence[Notification]:
        return await self._notifications.list_for_recipient(recipient_id)

    async def mark_notification_read(self, notification_id: str, recipient_id: str) -> bool:
        return await self._notifications.mark_read(notification_id, recipient_id=recipient_id)

    def get_available_targets(self, ticket: Ticket) -> list[TransitionTarget]:
        return [
            TransitionTarget(
                state=state,
                requires_confirmation=self._state_machine.requires_confirmation(state),
                label=self._state_machine.label(state),
                confirmation_message=(
                    self._state_machine.confirmation_message(state)
                    if self._state_machine.requires_confirmation(state)
                    else None
                ),
            )
            for state in self._state_machine.valid_transitions(ticket.state)
        ]

    async def transition(self, ticket: TicketRef, target_state: TicketState | str, actor: Actor) -> OperationResult:
        ticket_id = _ticket_id(ticket)
        with tracer.start_as_current_span("lifecycle.transition") as span:
            span.set_attribute("ticket.id", ticket_id)
            span.set_attribute("ticket.target_state", str(getattr(target_state, "value", target_state)))
            return await self._single(
                "transition", TRANSITIONS_TOTAL, self.transitions.execute(ticket_id, target_state, actor)
            )

    async def assign(self, ticket: TicketRef, technician_id: str | None, actor: Actor) -> OperationResult:
        ticket_id = _ticket_id(ticket)
        with tracer.start_as_current_span("lifecycle.assign") as span:
            span.set_attribute("ticket.id", ticket_id)
            span.set_attribute("ticket.technician_id", technician_id or "")
            return await self._single(
                "assign", ASSIGNMENTS_TOTAL, self.assignments.execute(ticket_id, technician_id, actor)
            )

    async def bulk_transition(
        self, tickets: Sequence[TicketRef], target_state: TicketState | str, actor: Actor
    ) -> BulkOperationResult:
        with tracer.start_as_current_span("lifecycle.bulk_transition") as span:
            span.set_attribute("bulk.size", len(tickets))
            with self._metrics.time(OPERATION_DURATION_SECONDS, labels={"operation": "bulk_transition"}):
                return await self.bulk.run(
                    "transition",
                    tickets,
                    lambda ticket_id: self.transitions.execute(ticket_id, target_state, actor),
                )

    async def bulk_assign(
        self, tickets: Sequence[TicketRef], technician_id: str | None, actor: Actor
    ) -> BulkOperationResult:
        with tracer.start_as_current_span("lifecycle.bulk_assign") as span:
            span.set_attribute("bulk.size", len(tickets))
            with self._metrics.time(OPERATION_DURATION_SECONDS, labels={"operation": "bulk_assign"}):
                return await self.bulk.run(
                    "assign",
                    tickets,
                    lambda ticket_id: self.assignments.execute(ticket_id, technician_id, actor),
                )

    async def drain(self) -> None:
        await self.dispatcher.drain()

    async def _single(self, operation: str, counter_name: str, call: Awaitable[Any]) -> OperationResult:
        counter = self._metrics.counter(counter_name)
        with self._metrics.time(OPERATION_DURATION_SECONDS, labels={"operation": operation}):
            try:
                data = await call
            except LifecycleError as exc:
                logger.info("Ticket %s rejected: %s", operation, exc.message)
                counter.inc(labels={"outcome": exc.code})
                return OperationResult.failed(exc)
            except Exception as exc:
                logger.exception("Ticket %s failed unexpectedly", operation)
                error = PersistenceError.wrap(operation, exc)
                counter.inc(labels={"outcome": error.code})
                return OperationResult.failed(error)
        counter.inc(labels={"outcome": "success"})
        return OperationResult.ok(data)
