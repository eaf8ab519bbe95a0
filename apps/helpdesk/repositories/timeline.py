from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from apps.helpdesk.lifecycle.models import EventType, TimelineEvent
from packages.db.models import TicketTimelineTable

from .common import ensure_datetime, persistence_errors


class TimelineRepository:
    """Append-only store for ticket timeline events."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(
        self,
        ticket_id: str,
        event_type: EventType,
        description: str,
        actor_id: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> TimelineEvent:
        row = TicketTimelineTable(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            event_type=EventType(event_type).value,
            description=description,
            actor_id=actor_id,
            data=dict(data or {}),
            created_at=datetime.now(timezone.utc),
        )
        async with persistence_errors(f"append timeline event for ticket {ticket_id}"):
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(row)
        return self._table_to_event(row)

    async def list_events(self, ticket_id: str) -> Sequence[TimelineEvent]:
        statement = (
            select(TicketTimelineTable)
            .where(TicketTimelineTable.ticket_id == ticket_id)
            .order_by(TicketTimelineTable.created_at.asc())
        )
        async with persistence_errors(f"list timeline for ticket {ticket_id}"):
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return [self._table_to_event(row) for row in result.scalars().all()]

    @staticmethod
    def _table_to_event(row: TicketTimelineTable) -> TimelineEvent:
        return TimelineEvent(
            id=row.id,
            ticket_id=row.ticket_id,
            event_type=EventType(row.event_type),
            description=row.description,
            actor_id=row.actor_id,
            data=dict(row.data or {}),
            created_at=ensure_datetime(row.created_at),
        )
