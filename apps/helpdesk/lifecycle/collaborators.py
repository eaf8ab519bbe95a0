"""Protocols the lifecycle core consumes from its environment."""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence

from .models import EventType, Notification, NotificationType, Ticket, TimelineEvent


class TicketStore(Protocol):
    """Authoritative ticket persistence.

    Implementations raise ``TicketNotFoundError`` for unknown ids and
    ``PersistenceError`` when the backend fails.
    """

    async def get(self, ticket_id: str) -> Ticket:
        ...

    async def update(self, ticket_id: str, partial: Mapping[str, Any]) -> Ticket:
        ...


class TimelineStore(Protocol):
    async def append(
        self,
        ticket_id: str,
        event_type: EventType,
        description: str,
        actor_id: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> TimelineEvent:
        ...

    async def list_events(self, ticket_id: str) -> Sequence[TimelineEvent]:
        ...


class NotificationStore(Protocol):
    async def append(
        self,
        notification_type: NotificationType,
        recipient_id: str,
        ticket_id: str,
        title: str,
        message: str,
        data: Mapping[str, Any],
    ) -> Notification:
        ...

    async def list_for_recipient(self, recipient_id: str) -> Sequence[Notification]:
        ...

    async def mark_read(self, notification_id: str, *, recipient_id: str | None = None) -> bool:
        ...


class UserDirectory(Protocol):
    async def display_name(self, user_id: str) -> str | None:
        ...
