"""Timeline and notification fan-out for committed ticket mutations.

Every write performed here happens strictly after the primary mutation was
persisted. Each write is an isolated unit: a failing unit is logged, counted
and reported, but never raised to the caller and never undoes the mutation.
There is no retry and no durable queue, so delivery is at-most-once.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Coroutine, Iterable, Sequence

from apps.helpdesk.metrics import MetricsRegistry, register_default_metrics
from apps.helpdesk.metrics.definitions import SIDE_EFFECT_FAILURES_TOTAL

from .collaborators import NotificationStore, TimelineStore, UserDirectory
from .errors import SideEffectError
from .models import Actor, EventType, Notification, NotificationType, Ticket, TimelineEvent
from .state import TicketState, TicketStateMachine

logger = logging.getLogger(__name__)

TIMELINE = "timeline"
NOTIFICATION = "notification"

SideEffectUnit = Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class DispatchReport:
    """What one dispatch managed to write."""

    events: list[TimelineEvent] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)
    failures: list[SideEffectError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class SideEffectDispatcher:
    """Write the audit event and notifications that follow a mutation."""

    def __init__(
        self,
        timeline: TimelineStore,
        notifications: NotificationStore,
        *,
        directory: UserDirectory | None = None,
        metrics: MetricsRegistry | None = None,
        run_in_background: bool = True,
    ) -> None:
        self._timeline = timeline
        self._notifications = notifications
        self._directory = directory
        self._metrics = register_default_metrics(metrics)
        self._run_in_background = run_in_background
        self._pending: set[asyncio.Task[DispatchReport]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    @staticmethod
    def state_change_recipients(ticket: Ticket, actor: Actor) -> list[str]:
        """The client always; the assigned technician unless they made the change."""

        recipients: list[str] = []
        if ticket.client_id:
            recipients.append(ticket.client_id)
        technician_id = ticket.technician_id
        if technician_id and technician_id != actor.id and technician_id not in recipients:
            recipients.append(technician_id)
        return recipients

    async def state_changed(
        self, ticket: Ticket, *, old_state: TicketState, actor: Actor
    ) -> DispatchReport | None:
        return await self._submit(self._dispatch_state_change(ticket, old_state, actor))

    async def assigned(self, ticket: Ticket, *, actor: Actor) -> DispatchReport | None:
        return await self._submit(self._dispatch_assignment(ticket, actor))

    async def drain(self) -> None:
        """Wait for every side effect scheduled in background mode."""

        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _submit(self, dispatch: Coroutine[Any, Any, DispatchReport]) -> DispatchReport | None:
        if not self._run_in_background:
            return await dispatch
        task = asyncio.create_task(dispatch)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return None

    async def _dispatch_state_change(
        self, ticket: Ticket, old_state: TicketState, actor: Actor
    ) -> DispatchReport:
        names = await self._resolve_names([actor.id])
        changed_by = actor.name or names.get(actor.id) or actor.id

        units: list[tuple[str, SideEffectUnit]] = [
            (TIMELINE, partial(self._append_state_changed, ticket, old_state, actor)),
        ]
        for recipient_id in self.state_change_recipients(ticket, actor):
            units.append(
                (
                    NOTIFICATION,
                    partial(self._notify_state_change, ticket, recipient_id, old_state, actor, changed_by),
                )
            )
        return await self._run_units(ticket.id, units)

    async def _dispatch_assignment(self, ticket: Ticket, actor: Actor) -> DispatchReport:
        technician_id = ticket.technician_id
        lookup = [actor.id, ticket.client_id]
        if technician_id:
            lookup.append(technician_id)
        names = await self._resolve_names(lookup)
        assigned_by = actor.name or names.get(actor.id) or actor.id
        technician_name = (names.get(technician_id) or technician_id) if technician_id else None

        units: list[tuple[str, SideEffectUnit]] = [
            (TIMELINE, partial(self._append_assignment, ticket, technician_name, actor)),
        ]
        if technician_id:
            client_name = names.get(ticket.client_id) or ticket.client_id
            units.append(
                (NOTIFICATION, partial(self._notify_assignment, ticket, technician_id, assigned_by, client_name))
            )
        return await self._run_units(ticket.id, units)

    async def _run_units(self, ticket_id: str, units: Sequence[tuple[str, SideEffectUnit]]) -> DispatchReport:
        outcomes = await asyncio.gather(*(self._guard(kind, ticket_id, unit) for kind, unit in units))
        report = DispatchReport()
        for (kind, _), outcome in zip(units, outcomes):
            if isinstance(outcome, SideEffectError):
                report.failures.append(outcome)
            elif kind == TIMELINE:
                report.events.append(outcome)
            else:
                report.notifications.append(outcome)
        return report

    async def _guard(self, kind: str, ticket_id: str, unit: SideEffectUnit) -> Any:
        try:
            return await unit()
        except Exception as exc:
            logger.exception("Discarding failed %s side effect for ticket %s", kind, ticket_id)
            self._metrics.counter(SIDE_EFFECT_FAILURES_TOTAL).inc(labels={"kind": kind})
            return SideEffectError(kind, ticket_id, exc)

    async def _resolve_names(self, user_ids: Iterable[str | None]) -> dict[str, str]:
        names: dict[str, str] = {}
        if self._directory is None:
            return names
        for user_id in dict.fromkeys(uid for uid in user_ids if uid):
            try:
                name = await self._directory.display_name(user_id)
            except Exception:
                logger.warning("Could not resolve display name for user %s", user_id, exc_info=True)
                continue
            if name:
                names[user_id] = name
        return names

    async def _append_state_changed(self, ticket: Ticket, old_state: TicketState, actor: Actor) -> TimelineEvent:
        description = (
            f"State changed from {TicketStateMachine.label(old_state)} "
            f"to {TicketStateMachine.label(ticket.state)}"
        )
        return await self._timeline.append(
            ticket.id,
            EventType.STATE_CHANGED,
            description,
            actor.id,
            {"old_state": old_state.value, "new_state": ticket.state.value, "changed_by": actor.id},
        )

    async def _append_assignment(self, ticket: Ticket, technician_name: str | None, actor: Actor) -> TimelineEvent:
        if ticket.technician_id:
            description = f"Ticket assigned to {technician_name}"
        else:
            description = "Ticket assignment removed"
        return await self._timeline.append(
            ticket.id,
            EventType.TICKET_ASSIGNED,
            description,
            actor.id,
            {
                "technician_id": ticket.technician_id,
                "technician_name": technician_name,
                "assigned_by": actor.id,
            },
        )

    async def _notify_state_change(
        self,
        ticket: Ticket,
        recipient_id: str,
        old_state: TicketState,
        actor: Actor,
        changed_by: str,
    ) -> Notification:
        old_label = TicketStateMachine.label(old_state)
        new_label = TicketStateMachine.label(ticket.state)
        return await self._notifications.append(
            NotificationType.STATE_CHANGE,
            recipient_id,
            ticket.id,
            "Ticket state updated",
            f'Ticket #{ticket.number} changed from "{old_label}" to "{new_label}" by {changed_by}',
            {
                "ticket_number": ticket.number,
                "ticket_title": ticket.title,
                "old_state": old_state.value,
                "new_state": ticket.state.value,
                "old_state_label": old_label,
                "new_state_label": new_label,
                "changed_by": changed_by,
                "changed_by_role": actor.role.value,
            },
        )

    async def _notify_assignment(
        self, ticket: Ticket, technician_id: str, assigned_by: str, client_name: str
    ) -> Notification:
        return await self._notifications.append(
            NotificationType.TICKET_ASSIGNMENT,
            technician_id,
            ticket.id,
            "New ticket assigned",
            f'You have been assigned ticket #{ticket.number}: "{ticket.title}" by {assigned_by}',
            {
                "ticket_number": ticket.number,
                "ticket_title": ticket.title,
                "client_name": client_name,
                "assigned_by": assigned_by,
            },
        )
