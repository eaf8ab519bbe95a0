from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from apps.helpdesk.lifecycle.errors import TicketNotFoundError
from apps.helpdesk.lifecycle.models import Ticket
from apps.helpdesk.lifecycle.state import TicketState
from packages.db.models import TicketTable

from .common import ensure_datetime, optional_datetime, persistence_errors


class TicketRepository:
    """Ticket persistence backed by the ``tickets`` table."""

    _UPDATABLE_FIELDS = frozenset({"state", "technician_id", "closed_at"})

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def add(self, ticket: Ticket) -> Ticket:
        async with persistence_errors(f"insert ticket {ticket.id}"):
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(
                        TicketTable(
                            id=ticket.id,
                            number=ticket.number,
                            title=ticket.title,
                            description=ticket.description,
                            state=TicketState(ticket.state).value,
                            priority=ticket.priority,
                            client_id=ticket.client_id,
                            technician_id=ticket.technician_id,
                            type_id=ticket.type_id,
                            created_at=ticket.created_at,
                            updated_at=ticket.updated_at,
                            closed_at=ticket.closed_at,
                        )
                    )
        return ticket

    async def get(self, ticket_id: str) -> Ticket:
        async with persistence_errors(f"load ticket {ticket_id}"):
            async with self._session_factory() as session:
                row = await session.get(TicketTable, ticket_id)
        if row is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found", details={"ticket_id": ticket_id})
        return self._table_to_ticket(row)

    async def update(self, ticket_id: str, partial: Mapping[str, Any]) -> Ticket:
        unknown = set(partial) - self._UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported ticket fields for update: {sorted(unknown)}")

        async with persistence_errors(f"update ticket {ticket_id}"):
            async with self._session_factory() as session:
                row = await session.get(TicketTable, ticket_id)
                if row is None:
                    raise TicketNotFoundError(f"Ticket {ticket_id} not found", details={"ticket_id": ticket_id})
                if "state" in partial:
                    row.state = TicketState(partial["state"]).value
                if "technician_id" in partial:
                    row.technician_id = partial["technician_id"]
                if "closed_at" in partial:
                    row.closed_at = partial["closed_at"]
                row.updated_at = datetime.now(timezone.utc)
                await session.commit()
                await session.refresh(row)
                return self._table_to_ticket(row)

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            id=row.id,
            number=row.number,
            title=row.title,
            description=row.description,
            state=TicketState(row.state),
            priority=row.priority,
            client_id=row.client_id,
            technician_id=row.technician_id,
            type_id=row.type_id,
            created_at=ensure_datetime(row.created_at),
            updated_at=ensure_datetime(row.updated_at),
            closed_at=optional_datetime(row.closed_at),
        )
