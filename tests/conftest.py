from __future__ import annotations

import itertools
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Mapping

import pytest

from apps.helpdesk.lifecycle import (
    Actor,
    EventType,
    Notification,
    NotificationType,
    PersistenceError,
    Role,
    SideEffectDispatcher,
    Ticket,
    TicketLifecycleService,
    TicketNotFoundError,
    TicketState,
    TimelineEvent,
)
from apps.helpdesk.metrics import MetricsRegistry

FIXED_NOW = datetime(2024, 10, 1, 12, 0, tzinfo=timezone.utc)


class InMemoryTicketStore:
    """Ticket store double that hands out copies, like a real backend would."""

    def __init__(self, tickets: list[Ticket] | None = None) -> None:
        self._tickets: dict[str, Ticket] = {ticket.id: replace(ticket) for ticket in tickets or []}
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.fail_updates_for: set[str] = set()
        self.broken_reads: dict[str, Exception] = {}

    def add(self, ticket: Ticket) -> Ticket:
        self._tickets[ticket.id] = replace(ticket)
        return ticket

    def stored(self, ticket_id: str) -> Ticket:
        return self._tickets[ticket_id]

    async def get(self, ticket_id: str) -> Ticket:
        if ticket_id in self.broken_reads:
            raise self.broken_reads[ticket_id]
        if ticket_id not in self._tickets:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found", details={"ticket_id": ticket_id})
        return replace(self._tickets[ticket_id])

    async def update(self, ticket_id: str, partial: Mapping[str, Any]) -> Ticket:
        if ticket_id in self.fail_updates_for:
            raise PersistenceError(f"Failed to update ticket {ticket_id}")
        if ticket_id not in self._tickets:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found", details={"ticket_id": ticket_id})
        self.updates.append((ticket_id, dict(partial)))
        updated = replace(self._tickets[ticket_id], **partial, updated_at=FIXED_NOW)
        self._tickets[ticket_id] = updated
        return replace(updated)


class InMemoryTimeline:
    def __init__(self) -> None:
        self.events: list[TimelineEvent] = []
        self.fail = False

    async def append(
        self,
        ticket_id: str,
        event_type: EventType,
        description: str,
        actor_id: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> TimelineEvent:
        if self.fail:
            raise RuntimeError("timeline backend unavailable")
        event = TimelineEvent(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            event_type=event_type,
            description=description,
            actor_id=actor_id,
            data=dict(data or {}),
            created_at=FIXED_NOW,
        )
        self.events.append(event)
        return event

    async def list_events(self, ticket_id: str) -> list[TimelineEvent]:
        return [event for event in self.events if event.ticket_id == ticket_id]


class InMemoryNotifications:
    def __init__(self) -> None:
        self.notifications: list[Notification] = []
        self.fail = False

    async def append(
        self,
        notification_type: NotificationType,
        recipient_id: str,
        ticket_id: str,
        title: str,
        message: str,
        data: Mapping[str, Any],
    ) -> Notification:
        if self.fail:
            raise RuntimeError("notification backend unavailable")
        notification = Notification(
            id=str(uuid.uuid4()),
            notification_type=notification_type,
            recipient_id=recipient_id,
            ticket_id=ticket_id,
            title=title,
            message=message,
            data=dict(data),
            created_at=FIXED_NOW,
        )
        self.notifications.append(notification)
        return notification

    async def list_for_recipient(self, recipient_id: str) -> list[Notification]:
        return [item for item in self.notifications if item.recipient_id == recipient_id]

    async def mark_read(self, notification_id: str, *, recipient_id: str | None = None) -> bool:
        for item in self.notifications:
            if item.id == notification_id and recipient_id in (None, item.recipient_id):
                item.read = True
                return True
        return False


class StaticDirectory:
    def __init__(self, names: Mapping[str, str]) -> None:
        self._names = dict(names)

    async def display_name(self, user_id: str) -> str | None:
        return self._names.get(user_id)


_numbers = itertools.count(1)


def make_ticket(
    *,
    state: TicketState = TicketState.OPEN,
    technician_id: str | None = None,
    client_id: str = "client-1",
    ticket_id: str | None = None,
    number: str | None = None,
    title: str = "Printer on fire",
) -> Ticket:
    return Ticket(
        id=ticket_id or str(uuid.uuid4()),
        number=number or f"TK-{next(_numbers):04d}",
        title=title,
        description="The office printer is emitting smoke.",
        state=state,
        priority="high",
        client_id=client_id,
        technician_id=technician_id,
        type_id=None,
        created_at=FIXED_NOW,
        updated_at=FIXED_NOW,
    )


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin-1", role=Role.ADMIN, name="Ada Admin")


@pytest.fixture
def technician() -> Actor:
    return Actor(id="tech-1", role=Role.TECHNICIAN, name="Tom Tech")


@pytest.fixture
def client_actor() -> Actor:
    return Actor(id="client-1", role=Role.CLIENT, name="Cleo Client")


@pytest.fixture
def tickets() -> InMemoryTicketStore:
    return InMemoryTicketStore()


@pytest.fixture
def timeline() -> InMemoryTimeline:
    return InMemoryTimeline()


@pytest.fixture
def notifications() -> InMemoryNotifications:
    return InMemoryNotifications()


@pytest.fixture
def directory() -> StaticDirectory:
    return StaticDirectory({"client-1": "Cleo Client", "tech-1": "Tom Tech", "tech-2": "Tina Tech"})


@pytest.fixture
def registry() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture
def dispatcher(timeline, notifications, directory, registry) -> SideEffectDispatcher:
    return SideEffectDispatcher(
        timeline, notifications, directory=directory, metrics=registry, run_in_background=False
    )


@pytest.fixture
def service(tickets, timeline, notifications, dispatcher, registry) -> TicketLifecycleService:
    return TicketLifecycleService(
        tickets,
        timeline,
        notifications,
        dispatcher=dispatcher,
        metrics=registry,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def ticket_factory():
    return make_ticket


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW
